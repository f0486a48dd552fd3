"""Conflict strategies and conflict kinds for pulls."""

from enum import Enum


class ConflictStrategy(str, Enum):
    """How to settle paths changed on both sides during a pull."""

    ASK = "ask"
    """Ask the decision provider for every conflicting path"""

    KEEP_LOCAL = "keepLocal"
    """Keep the local version"""

    OVERWRITE_WITH_REMOTE = "overwriteWithRemote"
    """Replace the local version with the remote one"""

    @classmethod
    def from_string(cls, value: str) -> "ConflictStrategy":
        """Parse a strategy name or abbreviation.

        Examples:
            >>> ConflictStrategy.from_string("l")
            <ConflictStrategy.KEEP_LOCAL: 'keepLocal'>
        """
        normalized = value.strip().lower()
        aliases = {
            "a": cls.ASK,
            "ask": cls.ASK,
            "l": cls.KEEP_LOCAL,
            "local": cls.KEEP_LOCAL,
            "keeplocal": cls.KEEP_LOCAL,
            "r": cls.OVERWRITE_WITH_REMOTE,
            "remote": cls.OVERWRITE_WITH_REMOTE,
            "overwritewithremote": cls.OVERWRITE_WITH_REMOTE,
        }
        if normalized not in aliases:
            raise ValueError(f"Unknown conflict strategy: {value}")
        return aliases[normalized]


class ConflictChoice(str, Enum):
    """Outcome for a single conflicting path."""

    KEEP_LOCAL = "keep_local"
    TAKE_REMOTE = "take_remote"


class ConflictKind(str, Enum):
    """The four ways local and remote changes can overlap."""

    MODIFIED_BOTH = "modified_both"
    """Modified remotely and locally"""

    MODIFIED_REMOTELY_DELETED_LOCALLY = "modified_remotely_deleted_locally"
    """Modified remotely, deleted locally"""

    DELETED_REMOTELY_MODIFIED_LOCALLY = "deleted_remotely_modified_locally"
    """Deleted remotely, modified locally"""

    ADDED_BOTH = "added_both"
    """Added remotely and locally"""

    @property
    def remote_side_deletes(self) -> bool:
        """Whether taking the remote side means deleting the local file."""
        return self is ConflictKind.DELETED_REMOTELY_MODIFIED_LOCALLY

    @property
    def description(self) -> str:
        return {
            ConflictKind.MODIFIED_BOTH: "was modified both locally and remotely",
            ConflictKind.MODIFIED_REMOTELY_DELETED_LOCALLY: (
                "was modified remotely but deleted locally"
            ),
            ConflictKind.DELETED_REMOTELY_MODIFIED_LOCALLY: (
                "was deleted remotely but modified locally"
            ),
            ConflictKind.ADDED_BOTH: "was added both locally and remotely",
        }[self]
