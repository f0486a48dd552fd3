"""Change detection for sync operations."""

from dataclasses import dataclass, field

from .scanner import LocalDirectory
from .state import TreeSnapshot


@dataclass
class ChangeSet:
    """Classification of paths between a snapshot and a newer state.

    The four sets are disjoint and together cover every path of both sides.
    """

    added: set[str] = field(default_factory=set)
    """Paths only present in the newer state"""

    modified: set[str] = field(default_factory=set)
    """Paths present on both sides whose content changed"""

    deleted: set[str] = field(default_factory=set)
    """Paths only present in the snapshot"""

    unchanged: set[str] = field(default_factory=set)
    """Paths present on both sides with the same content"""

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.deleted)

    @property
    def all_changed(self) -> set[str]:
        """Added, modified and deleted paths."""
        return self.added | self.modified | self.deleted

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary with sorted path lists."""
        return {
            "added": sorted(self.added),
            "modified": sorted(self.modified),
            "deleted": sorted(self.deleted),
            "unchanged": sorted(self.unchanged),
        }


def detect_local_changes(
    directory: LocalDirectory, tracked: TreeSnapshot
) -> ChangeSet:
    """Classify local files against the last synced snapshot.

    The modification marker is the only change signal; no content is
    hashed, so a rewrite with identical bytes still counts as modified.

    Args:
        directory: Working copy
        tracked: Snapshot of the last synced tree

    Returns:
        ChangeSet of local changes
    """
    changes = ChangeSet()
    local_paths = directory.enumerate()

    for path in local_paths:
        if path not in tracked:
            changes.added.add(path)
        elif directory.is_modified(path):
            changes.modified.add(path)
        else:
            changes.unchanged.add(path)

    changes.deleted = set(tracked) - set(local_paths)
    return changes


def detect_remote_changes(old: TreeSnapshot, new: TreeSnapshot) -> ChangeSet:
    """Classify paths between two remote snapshots by blob hash.

    Sizes are ignored.

    Args:
        old: Snapshot of the last synced tree
        new: Snapshot of the current remote tree

    Returns:
        ChangeSet of remote changes
    """
    old_paths = set(old)
    new_paths = set(new)
    common = old_paths & new_paths

    return ChangeSet(
        added=new_paths - old_paths,
        deleted=old_paths - new_paths,
        modified={p for p in common if old[p].blob_hash != new[p].blob_hash},
        unchanged={p for p in common if old[p].blob_hash == new[p].blob_hash},
    )
