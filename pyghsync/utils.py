"""Utility functions for pyghsync."""

import fnmatch
import re
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Well-known sha of the empty git tree
EMPTY_TREE_SHA: str = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

# Branch recorded when linking to a repository without commits
DEFAULT_BRANCH: str = "master"

# Name of the per-repository metadata directory
METADATA_DIR: str = ".ghsync"

_SHA_RE = re.compile(r"^[0-9a-fA-F]{40}$")


# =============================================================================
# Repository name utilities
# =============================================================================


def full_repository_name(name: str, user: Optional[str]) -> str:
    """Expand a repository name to ``owner/name``.

    Args:
        name: ``owner/name`` or a bare ``name``
        user: Default owner for bare names

    Returns:
        Full repository name

    Raises:
        ValueError: If the name is bare and no default owner is known

    Examples:
        >>> full_repository_name("octo/hello", None)
        'octo/hello'
        >>> full_repository_name("hello", "octo")
        'octo/hello'
    """
    name = name.strip().strip("/")
    if "/" in name:
        return name
    if not user:
        raise ValueError(
            f"Repository '{name}' has no owner and no GitHub user is configured"
        )
    return f"{user}/{name}"


def is_full_repository_name(name: str) -> bool:
    """Check if a repository name includes the owner."""
    return "/" in name.strip("/")


def looks_like_sha(value: str) -> bool:
    """Check if a value looks like a full SHA-1 hash.

    Examples:
        >>> looks_like_sha("4b825dc642cb6eb9a060e54bf8d69288fbee4904")
        True
        >>> looks_like_sha("main")
        False
    """
    return bool(_SHA_RE.match(value))


# =============================================================================
# Path matching utilities
# =============================================================================


def is_glob_pattern(value: str) -> bool:
    """Check if a string contains glob wildcards."""
    return any(c in value for c in "*?[")


def path_matches(path: str, pattern: str) -> bool:
    """Match a repository path against a pattern.

    A pattern without wildcards matches the path itself and everything
    below it when it names a directory. Wildcards match against the full
    path and against the file name.

    Examples:
        >>> path_matches("docs/a.txt", "docs")
        True
        >>> path_matches("docs/a.txt", "*.txt")
        True
        >>> path_matches("docs/a.txt", "src")
        False
    """
    pattern = pattern.replace("\\", "/").strip("/")
    if not is_glob_pattern(pattern):
        return path == pattern or path.startswith(pattern + "/")
    name = path.rsplit("/", 1)[-1]
    return fnmatch.fnmatchcase(path, pattern) or fnmatch.fnmatchcase(name, pattern)


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
