"""Core sync engine for linked working copies."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..api import GitHubClient
from ..exceptions import (
    AlreadyLinkedError,
    BranchMissingError,
    DirectoryNotEmptyError,
    EmptyRepositoryError,
    NothingToCommitError,
    NotFoundError,
    NotLinkedError,
    PreconditionError,
    RemoteApiError,
    RemoteRepositoryMissingError,
    StaleLocalError,
    UpToDateError,
)
from ..output import OutputFormatter
from ..utils import EMPTY_TREE_SHA, looks_like_sha, path_matches
from .comparator import ChangeSet, detect_local_changes, detect_remote_changes
from .conflicts import ConflictResolver, DecisionProvider
from .modes import ConflictChoice, ConflictKind, ConflictStrategy
from .operations import SyncOperations
from .scanner import LocalDirectory
from .state import (
    LedgerStore,
    RepositoryLinkState,
    TreeSnapshot,
    check_ledger_paths,
    find_repository_root,
    snapshot_from_files,
)

logger = logging.getLogger(__name__)

# Placeholder written to give an empty repository its first commit
BOOTSTRAP_FILE_NAME = "placeholder"


class PullPhase(str, Enum):
    """Progress of a pull."""

    IDLE = "idle"
    COMPUTING_REMOTE_DIFF = "computing_remote_diff"
    COMPUTING_LOCAL_DIFF = "computing_local_diff"
    RESOLVING_CONFLICTS = "resolving_conflicts"
    APPLYING_DOWNLOADS = "applying_downloads"
    APPLYING_DELETIONS = "applying_deletions"
    PERSISTING_STATE = "persisting_state"


class RemoteCondition(str, Enum):
    """How the remote relates to the working copy."""

    MISSING = "missing"
    BRANCH_MISSING = "branch_missing"
    UP_TO_DATE = "up_to_date"
    BEHIND = "behind"
    UNKNOWN = "unknown"


@dataclass
class SyncResult:
    """What a workflow did."""

    commit: Optional[str] = None
    downloaded: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    uploaded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    conflicts: list[tuple[ConflictKind, str, ConflictChoice]] = field(
        default_factory=list
    )
    up_to_date: bool = False

    def to_dict(self) -> dict:
        return {
            "commit": self.commit,
            "downloaded": self.downloaded,
            "deleted": self.deleted,
            "uploaded": self.uploaded,
            "skipped": self.skipped,
            "conflicts": [
                {"kind": kind.value, "path": path, "choice": choice.value}
                for kind, path, choice in self.conflicts
            ],
            "up_to_date": self.up_to_date,
        }


@dataclass
class RepositoryStatus:
    """Local and remote status of a working copy."""

    repository: str
    branch: str
    commit: Optional[str]
    remote: RemoteCondition
    changes: ChangeSet
    remote_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "repository": self.repository,
            "branch": self.branch,
            "commit": self.commit,
            "remote": self.remote.value,
            "remote_error": self.remote_error,
            "changes": self.changes.to_dict(),
        }


class SyncEngine:
    """Runs clone, link, pull, commit and friends on one working copy.

    Every call works on the repository context held by the instance (API
    client, local directory and ledgers). Ledgers are written only as the
    last step of a successful operation, so a failure at any earlier point
    leaves them exactly as they were.
    """

    def __init__(
        self,
        client: GitHubClient,
        directory: LocalDirectory,
        output: Optional[OutputFormatter] = None,
        decide: Optional[DecisionProvider] = None,
        max_workers: int = 1,
    ):
        """Initialize sync engine.

        Args:
            client: GitHub API client for the linked (or to be linked) repository
            directory: Working copy
            output: Output formatter for progress messages
            decide: Decision provider for the ``ASK`` conflict strategy
            max_workers: Number of parallel blob uploads during commit
        """
        self.client = client
        self.directory = directory
        self.output = output or OutputFormatter()
        self.decide = decide
        self.max_workers = max_workers
        self.operations = SyncOperations(client, directory)
        self.ledgers = LedgerStore(directory.root)
        self.state: Optional[RepositoryLinkState] = (
            self.ledgers.load_state() if self.ledgers.exists() else None
        )
        self.phase = PullPhase.IDLE

    @classmethod
    def open(
        cls,
        path: Path,
        client_factory: Callable[[str], GitHubClient],
        **kwargs,
    ) -> "SyncEngine":
        """Open the working copy containing ``path``.

        Args:
            path: Directory inside a linked working copy
            client_factory: Creates a client for a repository name
            **kwargs: Passed to the constructor

        Raises:
            NotLinkedError: If no linked working copy contains ``path``
        """
        root = find_repository_root(path)
        if root is None:
            raise NotLinkedError(f"{path} is not linked to any remote repository")
        state = LedgerStore(root).load_state()
        return cls(client_factory(state.repository), LocalDirectory(root), **kwargs)

    # =========================
    # Helpers
    # =========================

    def _require_state(self) -> RepositoryLinkState:
        if self.state is None:
            raise NotLinkedError(
                f"{self.directory.root} is not linked to any remote repository"
            )
        return self.state

    def _fetch_snapshot(self, commit: str) -> TreeSnapshot:
        tree_sha = self.client.get_commit_tree(commit)
        if tree_sha is None:
            raise NotFoundError(f"Commit {commit} not found", 404)
        return snapshot_from_files(self.client.get_tree_files(tree_sha, recursive=True))

    def _persist(self, state: RepositoryLinkState, snapshot: TreeSnapshot) -> None:
        self.ledgers.save(state, snapshot)
        self.directory.save_index()
        self.state = state

    def _create_initial_commit(self, branch: str, author: Optional[dict]) -> str:
        """Give an empty repository its first commit, pointing to the empty tree."""
        self.output.info("Creating initial empty commit...")
        # The git data API refuses to work on a repository without commits
        self.client.create_file(BOOTSTRAP_FILE_NAME, branch, "Bootstrap", b"\0")
        commit = self.client.create_commit("Initial commit", EMPTY_TREE_SHA, None, author)
        self.client.set_branch_head_commit(branch, commit, force=True)
        return commit

    # =========================
    # Clone / link / unlink
    # =========================

    def clone(self, repository: str) -> SyncResult:
        """Clone a repository into the (empty) directory.

        Re-running a clone into a directory already linked to the same
        repository resumes it: files already present with the expected size
        are not downloaded again.

        Args:
            repository: Full repository name

        Returns:
            SyncResult with downloaded and skipped files
        """
        if self.state is not None:
            if self.state.repository.lower() != repository.lower():
                raise AlreadyLinkedError(
                    f"The directory '{self.directory.root}' is already linked to "
                    f"repository {self.state.repository}"
                )
        elif self.directory.has_contents():
            raise DirectoryNotEmptyError(
                f"The target directory '{self.directory.root}' is not empty"
            )

        if self.state is not None:
            self.output.info(
                f"Repository {repository} already initialized, continuing the clone"
            )
            state = self.state
            snapshot = self.ledgers.load_tree()
        else:
            self.output.info("Getting repository information...")
            if self.client.branch_count() == 0:
                raise EmptyRepositoryError(
                    f"The repository {repository} is empty, please use 'link' "
                    "instead of 'clone'"
                )
            info = self.client.get_repository_info()
            commit = self.client.get_branch_head_commit(info.default_branch)
            if commit is None:
                raise BranchMissingError(
                    f"Default branch '{info.default_branch}' has no commit"
                )
            snapshot = self._fetch_snapshot(commit)
            state = RepositoryLinkState(
                repository=info.full_name or repository,
                branch=info.default_branch,
                commit=commit,
            )
            self.directory.root.mkdir(parents=True, exist_ok=True)
            # Recorded before downloading so an interrupted clone can resume
            self.ledgers.save(state, snapshot)
            self.state = state

        result = SyncResult(commit=state.commit)
        self.output.info(f"Getting files for branch {state.branch}")
        for path in sorted(snapshot):
            ref = snapshot[path]
            if self.operations.is_present(ref):
                self.output.progress_message(f"{path} - already exists, skipping")
                result.skipped.append(path)
            else:
                self.output.progress_message(
                    f"{path} ({self.output.format_size(ref.size)}) ..."
                )
                self.operations.download_file(ref)
                result.downloaded.append(path)

        for path in self.directory.enumerate():
            self.directory.clear_modified(path)
        self._persist(state, snapshot)
        return result

    def link(self, repository: str) -> SyncResult:
        """Link the directory to a repository without downloading anything.

        Every existing local file is marked modified, so the next commit
        reconciles them with the remote.

        Args:
            repository: Full repository name

        Returns:
            SyncResult holding the linked commit (None for an empty repository)
        """
        if self.state is not None:
            raise AlreadyLinkedError(
                f"The directory '{self.directory.root}' is already linked to "
                f"repository {self.state.repository}"
            )

        self.output.info("Getting repository information...")
        info = self.client.get_repository_info()
        branch = info.default_branch
        commit: Optional[str] = None
        snapshot: TreeSnapshot = {}

        if self.client.branch_count() > 0:
            commit = self.client.get_branch_head_commit(branch)
            if commit is not None:
                snapshot = self._fetch_snapshot(commit)

        self.directory.root.mkdir(parents=True, exist_ok=True)
        for path in self.directory.enumerate():
            self.directory.set_modified(path)

        self._persist(
            RepositoryLinkState(
                repository=info.full_name or repository, branch=branch, commit=commit
            ),
            snapshot,
        )
        return SyncResult(commit=commit)

    def unlink(self) -> None:
        """Remove the link metadata, keeping the files."""
        self._require_state()
        self.ledgers.clear()
        self.state = None

    # =========================
    # Pull
    # =========================

    def pull(
        self, strategy: ConflictStrategy = ConflictStrategy.ASK
    ) -> SyncResult:
        """Bring the working copy up to date with the tracked branch.

        Args:
            strategy: How to settle paths changed on both sides

        Returns:
            SyncResult; ``up_to_date`` is set when there was nothing to pull
        """
        state = self._require_state()
        self.output.info("Checking remote status...")

        if not self.client.repository_exists():
            raise RemoteRepositoryMissingError("The remote repository doesn't exist!")

        remote_commit = self.client.get_branch_head_commit(state.branch)
        if remote_commit is None:
            raise BranchMissingError(f"Branch '{state.branch}' doesn't exist remotely!")

        if remote_commit == state.commit:
            return SyncResult(commit=state.commit, up_to_date=True)

        return self._pull_to(remote_commit, strategy, state.branch)

    def _pull_to(
        self, commit: str, strategy: ConflictStrategy, branch: str
    ) -> SyncResult:
        state = self._require_state()
        result = SyncResult(commit=commit)

        try:
            self.phase = PullPhase.COMPUTING_REMOTE_DIFF
            self.output.info("Calculating changes...")
            old = self.ledgers.load_tree()
            new = self._fetch_snapshot(commit)
            check_ledger_paths(new)
            remote_changes = detect_remote_changes(old, new)

            self.phase = PullPhase.COMPUTING_LOCAL_DIFF
            local_changes = detect_local_changes(self.directory, old)

            self.phase = PullPhase.RESOLVING_CONFLICTS
            resolver = ConflictResolver(strategy, self.decide)
            resolution = resolver.resolve(remote_changes, local_changes)
            result.conflicts = resolution.conflicts
            for kind, path, choice in resolution.conflicts:
                kept = "local" if choice is ConflictChoice.KEEP_LOCAL else "remote"
                self.output.warning(f"{path} {kind.description}, keeping {kept}")

            self.phase = PullPhase.APPLYING_DOWNLOADS
            for path in sorted(resolution.download):
                self.output.progress_message(f"Downloading {path} ...")
                self.operations.download_file(new[path])
                result.downloaded.append(path)

            self.phase = PullPhase.APPLYING_DELETIONS
            for path in sorted(resolution.delete):
                self.output.progress_message(f"Deleting {path} ...")
                self.operations.delete_local(path)
                result.deleted.append(path)

            self.phase = PullPhase.PERSISTING_STATE
            self._persist(
                RepositoryLinkState(state.repository, branch, commit), new
            )
        finally:
            self.phase = PullPhase.IDLE

        return result

    # =========================
    # Commit
    # =========================

    def commit(self, message: str, author: Optional[dict] = None) -> SyncResult:
        """Commit and push all local changes.

        Args:
            message: Commit message
            author: Optional ``{"name": ..., "email": ...}``

        Returns:
            SyncResult with the new commit and uploaded files
        """
        state = self._require_state()

        self.output.info("Checking local changes...")
        old = self.ledgers.load_tree()
        local_changes = detect_local_changes(self.directory, old)
        if not local_changes.has_changes:
            raise NothingToCommitError("No local changes, nothing to commit")

        to_upload = sorted(local_changes.added | local_changes.modified)
        check_ledger_paths(to_upload)

        self.output.info("Checking state of remote repository...")
        if not self.client.repository_exists():
            raise RemoteRepositoryMissingError("The remote repository doesn't exist!")

        parent = state.commit
        head = self.client.get_branch_head_commit(state.branch)
        if head is None:
            if self.client.branch_count() > 0:
                raise BranchMissingError(
                    f"Branch {state.branch} doesn't exist remotely, you can create "
                    f"it with 'ghsync branch -n {state.branch}'"
                )
            parent = self._create_initial_commit(state.branch, author)
        elif head != state.commit:
            raise StaleLocalError(
                "Your local repository isn't up to date with the remote "
                "repository, you need to pull before you can commit"
            )

        if to_upload:
            self.output.info("Pushing new and changed files...")
        refs = self.operations.upload_files(
            to_upload,
            max_workers=self.max_workers,
            on_uploaded=lambda ref: self.output.progress_message(ref.path),
        )

        snapshot = {
            path: ref
            for path, ref in old.items()
            if path not in local_changes.all_changed
        }
        snapshot.update(snapshot_from_files(refs))

        self.output.info("Creating remote tree...")
        tree_sha = self.client.create_tree([snapshot[p] for p in sorted(snapshot)])

        self.output.info("Creating commit...")
        new_commit = self.client.create_commit(message, tree_sha, parent, author)

        self.output.info("Updating branch reference...")
        self.client.set_branch_head_commit(state.branch, new_commit, force=False)

        self.output.info("Updating local state...")
        for path in to_upload:
            self.directory.clear_modified(path)
        self._persist(
            RepositoryLinkState(state.repository, state.branch, new_commit), snapshot
        )

        return SyncResult(
            commit=new_commit,
            uploaded=to_upload,
            deleted=sorted(local_changes.deleted),
        )

    # =========================
    # Status / reset
    # =========================

    def status(self) -> RepositoryStatus:
        """Get local changes and how the remote branch relates to them."""
        state = self._require_state()
        changes = detect_local_changes(self.directory, self.ledgers.load_tree())
        status = RepositoryStatus(
            repository=state.repository,
            branch=state.branch,
            commit=state.commit,
            remote=RemoteCondition.UNKNOWN,
            changes=changes,
        )

        try:
            if not self.client.repository_exists():
                status.remote = RemoteCondition.MISSING
            else:
                head = self.client.get_branch_head_commit(state.branch)
                if head is None:
                    status.remote = RemoteCondition.BRANCH_MISSING
                elif head == state.commit:
                    status.remote = RemoteCondition.UP_TO_DATE
                else:
                    status.remote = RemoteCondition.BEHIND
        except RemoteApiError as e:
            logger.debug(f"Remote status check failed: {e}")
            status.remote_error = str(e)

        return status

    def reset(self, pattern: Optional[str] = None) -> list[str]:
        """Discard local changes.

        Added files are deleted; modified and deleted files are restored from
        the last synced tree.

        Args:
            pattern: Path or glob limiting the reset, None for everything. A
                deleted file can also be named exactly, ignoring case.

        Returns:
            Paths that were reset
        """
        self._require_state()
        snapshot = self.ledgers.load_tree()
        changes = detect_local_changes(self.directory, snapshot)

        if pattern is None:
            targets = sorted(changes.all_changed)
        else:
            targets = sorted(p for p in changes.all_changed if path_matches(p, pattern))
            if not targets:
                targets = [
                    p for p in sorted(changes.deleted) if p.lower() == pattern.lower()
                ]

        for path in targets:
            if path in changes.added:
                self.output.progress_message(f"Deleting {path} ...")
                self.operations.delete_local(path)
            else:
                self.output.progress_message(f"Restoring {path} ...")
                self.operations.download_file(snapshot[path])

        if targets:
            self.directory.save_index()
        return targets

    # =========================
    # Branches
    # =========================

    def list_branches(self) -> list[str]:
        """List remote branches, sorted by name."""
        return sorted(self.client.list_branches())

    def switch_branch(
        self,
        target: str,
        strategy: ConflictStrategy = ConflictStrategy.ASK,
    ) -> SyncResult:
        """Switch the working copy to another branch or commit.

        A commit sha keeps the tracked branch and only moves the working
        copy to that commit.

        Args:
            target: Branch name or full commit sha
            strategy: How to settle paths changed on both sides
        """
        state = self._require_state()

        if looks_like_sha(target):
            if self.client.get_commit_tree(target) is None:
                raise PreconditionError(
                    "No commit exists with the specified SHA hash in the remote "
                    "repository"
                )
            commit = target
            branch = state.branch
        else:
            head = self.client.get_branch_head_commit(target)
            if head is None:
                raise BranchMissingError(
                    f"Branch '{target}' doesn't exist remotely, you can create it "
                    f"with 'ghsync branch -n {target}'"
                )
            if target.lower() == state.branch.lower():
                raise UpToDateError(
                    f"Branch '{target}' is already the current local branch, "
                    "use 'ghsync pull' to get the latest remote version"
                )
            commit = head
            branch = target

        if commit == state.commit:
            self.output.info(f"'{state.branch}' is up to date with '{target}'")
            self._persist(
                RepositoryLinkState(state.repository, branch, commit),
                self.ledgers.load_tree(),
            )
            return SyncResult(commit=commit, up_to_date=True)

        return self._pull_to(commit, strategy, branch)

    def create_branch(
        self,
        name: str,
        base: Optional[str] = None,
        author: Optional[dict] = None,
    ) -> str:
        """Create a remote branch.

        Args:
            name: New branch name
            base: Branch to start from; defaults to the local commit

        Returns:
            Commit the new branch points to
        """
        state = self._require_state()
        if self.client.get_branch_head_commit(name) is not None:
            raise PreconditionError(
                f"Branch '{name}' already exists remotely, you can switch to it "
                f"with 'ghsync branch {name}'"
            )

        if base is None:
            if state.commit:
                commit = state.commit
            elif self.client.branch_count() > 0:
                raise PreconditionError(
                    "The local repository doesn't point to any commit, please "
                    "specify a base branch name"
                )
            else:
                # Bootstrapping creates the branch itself
                return self._create_initial_commit(name, author)
        else:
            base_commit = self.client.get_branch_head_commit(base)
            if base_commit is None:
                raise BranchMissingError(f"Branch '{base}' doesn't exist remotely.")
            commit = base_commit

        self.client.create_branch(name, commit)
        return commit

    def delete_branch(
        self, name: str, confirm: Optional[Callable[[str], bool]] = None
    ) -> bool:
        """Delete a remote branch.

        Args:
            name: Branch to delete
            confirm: Asked before deleting the tracked branch

        Returns:
            True if the branch was deleted
        """
        state = self._require_state()
        if self.client.get_branch_head_commit(name) is None:
            raise BranchMissingError(f"Branch '{name}' doesn't exist remotely.")

        if name == state.branch and confirm is not None and not confirm(name):
            return False

        self.client.delete_branch(name)
        return True

    def merge(
        self, source: str, base: str, message: Optional[str] = None
    ) -> Optional[str]:
        """Merge ``source`` into ``base`` on the remote. Nothing changes locally.

        Returns:
            Sha of the merge commit, None when there was nothing to merge
        """
        self._require_state()
        for branch in (source, base):
            if self.client.get_branch_head_commit(branch) is None:
                raise BranchMissingError(f"Branch '{branch}' doesn't exist remotely.")
        return self.client.merge_branches(source, base, message)


