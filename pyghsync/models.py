"""Data models for GitHub API objects."""

from dataclasses import dataclass
from typing import Any, Optional

from .utils import DEFAULT_BRANCH


@dataclass(frozen=True)
class FileReference:
    """A file in a tree snapshot."""

    path: str
    """Slash separated path relative to the repository root"""

    blob_hash: str
    """Content address of the blob"""

    size: int
    """Size in bytes"""

    @classmethod
    def from_tree_entry(cls, data: dict[str, Any]) -> "FileReference":
        """Create a FileReference from a git tree API entry."""
        return cls(
            path=data["path"],
            blob_hash=data["sha"],
            size=int(data.get("size") or 0),
        )

    def to_tree_entry(self) -> dict[str, Any]:
        """Convert to a git tree API entry for tree creation."""
        return {
            "path": self.path,
            "mode": "100644",
            "type": "blob",
            "sha": self.blob_hash,
        }


@dataclass
class RepositoryInfo:
    """Basic repository metadata."""

    full_name: str
    default_branch: str
    private: bool = False
    description: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RepositoryInfo":
        """Create RepositoryInfo from a ``GET /repos/{owner}/{repo}`` response."""
        return cls(
            full_name=data.get("full_name", ""),
            default_branch=data.get("default_branch") or DEFAULT_BRANCH,
            private=bool(data.get("private", False)),
            description=data.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "full_name": self.full_name,
            "default_branch": self.default_branch,
            "private": self.private,
            "description": self.description,
        }


@dataclass
class CommitInfo:
    """A commit as returned by the git data API."""

    sha: str
    tree_sha: str
    message: str = ""
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    date: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "CommitInfo":
        author = data.get("author") or {}
        return cls(
            sha=data["sha"],
            tree_sha=data["tree"]["sha"],
            message=data.get("message", ""),
            author_name=author.get("name"),
            author_email=author.get("email"),
            date=author.get("date"),
        )
