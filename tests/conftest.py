"""Shared fixtures: an in-memory stand-in for the GitHub object store."""

import hashlib
from pathlib import Path
from typing import Optional

import pytest

from pyghsync.exceptions import ConflictError, NotFoundError
from pyghsync.models import FileReference, RepositoryInfo
from pyghsync.output import OutputFormatter
from pyghsync.sync import LocalDirectory, SyncEngine
from pyghsync.utils import EMPTY_TREE_SHA


class FakeGitHubClient:
    """Implements the GitHubClient methods used by the engine, in memory."""

    def __init__(self, repository: str = "octo/hello", default_branch: str = "master"):
        self.repository = repository
        self.default_branch = default_branch
        self.exists = True
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, list[FileReference]] = {EMPTY_TREE_SHA: []}
        self.commits: dict[str, tuple[str, Optional[str]]] = {}
        self.branches: dict[str, str] = {}
        self.created_files: list[str] = []
        self.blob_downloads: list[str] = []
        self._counter = 0

    # Object store

    def create_blob(self, content: bytes) -> str:
        sha = hashlib.sha1(b"blob %d\0" % len(content) + content).hexdigest()
        self.blobs[sha] = content
        return sha

    def get_blob(self, blob_sha: str) -> bytes:
        if blob_sha not in self.blobs:
            raise NotFoundError("Not Found", 404)
        self.blob_downloads.append(blob_sha)
        return self.blobs[blob_sha]

    def create_tree(self, files: list[FileReference]) -> str:
        if not files:
            return EMPTY_TREE_SHA
        key = "\n".join(f"{f.path} {f.blob_hash}" for f in sorted(files, key=lambda f: f.path))
        sha = hashlib.sha1(key.encode()).hexdigest()
        self.trees[sha] = list(files)
        return sha

    def get_tree_files(self, tree_sha: str, recursive: bool = True) -> list[FileReference]:
        return list(self.trees[tree_sha])

    def create_commit(self, message, tree_sha, parent_sha=None, author=None) -> str:
        self._counter += 1
        sha = hashlib.sha1(
            f"{self._counter} {tree_sha} {parent_sha} {message}".encode()
        ).hexdigest()
        self.commits[sha] = (tree_sha, parent_sha)
        return sha

    def get_commit_tree(self, commit_sha: str) -> Optional[str]:
        entry = self.commits.get(commit_sha)
        return entry[0] if entry else None

    # Refs

    def _is_ancestor(self, ancestor: str, commit: Optional[str]) -> bool:
        while commit is not None:
            if commit == ancestor:
                return True
            commit = self.commits[commit][1]
        return False

    def get_branch_head_commit(self, branch: str) -> Optional[str]:
        return self.branches.get(branch)

    def set_branch_head_commit(self, branch, commit_sha, force=False) -> None:
        current = self.branches.get(branch)
        if branch not in self.branches and not force:
            raise NotFoundError("Reference does not exist", 422)
        if not force and not self._is_ancestor(current, commit_sha):
            raise ConflictError("Update is not a fast forward", 422)
        self.branches[branch] = commit_sha

    def create_branch(self, branch: str, commit_sha: str) -> None:
        if branch in self.branches:
            raise ConflictError("Reference already exists", 422)
        self.branches[branch] = commit_sha

    def delete_branch(self, branch: str) -> None:
        del self.branches[branch]

    def list_branches(self) -> list[str]:
        return list(self.branches)

    def branch_count(self) -> int:
        return len(self.branches)

    def merge_branches(self, source, base, message=None) -> Optional[str]:
        source_head = self.branches[source]
        base_head = self.branches[base]
        if self._is_ancestor(source_head, base_head):
            return None
        tree_sha = self.commits[source_head][0]
        merged = self.create_commit(message or f"Merge {source}", tree_sha, base_head)
        self.branches[base] = merged
        return merged

    # Repository

    def repository_exists(self) -> bool:
        return self.exists

    def get_repository_info(self) -> RepositoryInfo:
        if not self.exists:
            raise NotFoundError("Not Found", 404)
        return RepositoryInfo(self.repository, self.default_branch)

    def create_file(self, path, branch, message, content) -> None:
        self.created_files.append(path)
        blob = self.create_blob(content)
        tree = self.create_tree([FileReference(path, blob, len(content))])
        parent = self.branches.get(branch)
        self.branches[branch] = self.create_commit(message, tree, parent)

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Helpers for tests

    def push(self, files: dict[str, bytes], branch: str = "master", message: str = "push") -> str:
        """Commit exactly ``files`` on top of ``branch`` and move the branch."""
        refs = [FileReference(p, self.create_blob(c), len(c)) for p, c in files.items()]
        commit = self.create_commit(message, self.create_tree(refs), self.branches.get(branch))
        self.branches[branch] = commit
        return commit

    def files(self, branch: str = "master") -> dict[str, bytes]:
        """Contents of the tree at the head of ``branch``."""
        tree_sha = self.commits[self.branches[branch]][0]
        return {f.path: self.blobs[f.blob_hash] for f in self.trees[tree_sha]}


@pytest.fixture
def remote():
    """An empty fake remote repository."""
    return FakeGitHubClient()


@pytest.fixture
def quiet_output():
    """Output formatter that prints nothing."""
    return OutputFormatter(quiet=True)


@pytest.fixture
def make_engine(quiet_output):
    """Factory for engines working on a directory against a fake remote."""

    def _make(client, root: Path, **kwargs) -> SyncEngine:
        kwargs.setdefault("output", quiet_output)
        return SyncEngine(client, LocalDirectory(root), **kwargs)

    return _make
