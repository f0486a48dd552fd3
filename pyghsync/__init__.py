"""pyghsync - mirror GitHub repositories onto local directories without git."""

from .api import GitHubClient
from .exceptions import (
    AlreadyLinkedError,
    AuthenticationError,
    BranchMissingError,
    ConfigurationError,
    ConflictError,
    DirectoryNotEmptyError,
    EmptyRepositoryError,
    GhSyncError,
    InvalidResponseError,
    LedgerFormatError,
    LocalIOError,
    NetworkError,
    NotFoundError,
    NothingToCommitError,
    NotLinkedError,
    PermissionDeniedError,
    PreconditionError,
    RemoteApiError,
    RemoteRepositoryMissingError,
    StaleLocalError,
    UpToDateError,
)
from .models import CommitInfo, FileReference, RepositoryInfo

__all__ = [
    "GitHubClient",
    "FileReference",
    "RepositoryInfo",
    "CommitInfo",
    "GhSyncError",
    "ConfigurationError",
    "RemoteApiError",
    "AuthenticationError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "NetworkError",
    "InvalidResponseError",
    "PreconditionError",
    "NotLinkedError",
    "AlreadyLinkedError",
    "DirectoryNotEmptyError",
    "EmptyRepositoryError",
    "NothingToCommitError",
    "RemoteRepositoryMissingError",
    "BranchMissingError",
    "StaleLocalError",
    "UpToDateError",
    "LocalIOError",
    "LedgerFormatError",
]
