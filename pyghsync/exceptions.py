"""Exceptions raised by pyghsync."""

from __future__ import annotations

from typing import Any


class GhSyncError(Exception):
    """Base exception for all pyghsync errors."""


class ConfigurationError(GhSyncError):
    """Missing or invalid identity/configuration. Never retried."""


# =========================
# Remote API errors
# =========================


class RemoteApiError(GhSyncError):
    """Non-success response from the GitHub API.

    Carries the HTTP status and the field-level error list returned by the
    API so they can be shown to the user verbatim.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[dict[str, Any]] | None = None,
        content: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []
        self.content = content

    @property
    def printable_errors(self) -> str:
        """Errors list formatted as ``key = value`` lines."""
        lines = []
        for error in self.errors:
            for key, value in error.items():
                lines.append(f"{key} = {value}")
        return "\n".join(lines)


class AuthenticationError(RemoteApiError):
    """Bad credentials (401)."""


class PermissionDeniedError(RemoteApiError):
    """Access forbidden (403)."""


class NotFoundError(RemoteApiError):
    """Resource not found (404)."""


class ConflictError(RemoteApiError):
    """The remote rejected an update (409/422), e.g. a non fast-forward ref move."""


class NetworkError(RemoteApiError):
    """Transport level failure, no response received."""


class InvalidResponseError(RemoteApiError):
    """The API answered with something that is not the expected JSON."""


# =========================
# Precondition errors
# =========================


class PreconditionError(GhSyncError):
    """A local check failed before anything was changed remotely."""


class NotLinkedError(PreconditionError):
    """The directory is not linked to a remote repository."""


class AlreadyLinkedError(PreconditionError):
    """The directory is already linked (to this or another repository)."""


class DirectoryNotEmptyError(PreconditionError):
    """Clone target is not empty and not linked."""


class EmptyRepositoryError(PreconditionError):
    """The remote repository has no commits yet."""


class NothingToCommitError(PreconditionError):
    """No local changes."""


class RemoteRepositoryMissingError(PreconditionError):
    """The linked remote repository does not exist (or is not visible)."""


class BranchMissingError(PreconditionError):
    """The tracked branch does not exist remotely."""


class StaleLocalError(PreconditionError):
    """The local copy is behind the remote branch head, pull first."""


class UpToDateError(PreconditionError):
    """Nothing to do, the local copy already matches the remote."""


# =========================
# Local errors
# =========================


class LocalIOError(GhSyncError):
    """Filesystem failure during an operation."""


class LedgerFormatError(LocalIOError):
    """A ledger file could not be parsed or written."""
