"""API client for the GitHub git data (object store) API."""

from __future__ import annotations

import base64
import logging
import random
import time
from typing import Any

import httpx

from .config import config
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConflictError,
    InvalidResponseError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RemoteApiError,
)
from .models import CommitInfo, FileReference, RepositoryInfo
from .utils import EMPTY_TREE_SHA

logger = logging.getLogger(__name__)

USER_AGENT = "pyghsync"


class GitHubClient:
    """Client for the blob/tree/commit/ref endpoints of one GitHub repository."""

    def __init__(
        self,
        repository: str,
        token: str | None = None,
        api_url: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
    ):
        """Initialize GitHub API client.

        Args:
            repository: Full repository name (``owner/name``)
            token: Optional access token (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            max_retries: Maximum retry attempts for failed GET transports
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
        """
        self.repository = repository
        self.token = token or config.token
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

        if not self.token:
            raise ConfigurationError(
                "GitHub token not configured. "
                "Please set GITHUB_TOKEN environment variable or run 'ghsync init'."
            )

        self._client: httpx.Client | None = None

    @property
    def _repo(self) -> str:
        return f"/repos/{self.repository}"

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/vnd.github+json",
                    "User-Agent": USER_AGENT,
                },
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_from_response(self, response: httpx.Response) -> RemoteApiError:
        """Build a typed error from a non-success response.

        Args:
            response: The failed response

        Returns:
            RemoteApiError subclass matching the status code
        """
        status_code = response.status_code
        content = response.text if response.content else ""
        message = "(no message)"
        errors: list[dict[str, Any]] = []

        try:
            if response.content:
                error_data = response.json()
                if isinstance(error_data, dict):
                    message = error_data.get("message") or message
                    for error in error_data.get("errors") or []:
                        if isinstance(error, dict):
                            errors.append(error)
                        else:
                            errors.append({"message": str(error)})
        except ValueError:
            # Not JSON, keep the status based message
            pass

        text = f"{status_code} {response.reason_phrase}: {message}"
        error_class: type[RemoteApiError]
        if status_code == 401:
            error_class = AuthenticationError
        elif status_code == 403:
            error_class = PermissionDeniedError
        elif status_code == 404:
            error_class = NotFoundError
        elif status_code in (409, 422):
            error_class = ConflictError
        else:
            error_class = RemoteApiError
        return error_class(text, status_code, errors, content)

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request.

        Transport failures of GET requests are retried with exponential
        backoff. Non-success responses are never retried, and neither is
        anything that creates or updates a remote object.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data ({} for empty bodies)

        Raises:
            RemoteApiError: If the request fails
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()
        attempts = self.max_retries + 1 if method.upper() == "GET" else 1

        for attempt in range(attempts):
            try:
                logger.debug("%s %s", method, url)
                response = client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                if attempt + 1 < attempts:
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(f"Network error ({e}), retrying in {delay:.1f}s")
                    time.sleep(delay)
                    continue
                raise NetworkError(f"Network error: {e}") from e

            if not response.is_success:
                raise self._error_from_response(response)

            if not response.content:
                return {}

            content_type = response.headers.get("Content-Type", "")
            if "json" not in content_type:
                raise InvalidResponseError(
                    f"Unexpected response type: {content_type}",
                    response.status_code,
                )
            try:
                return response.json()
            except ValueError as e:
                raise InvalidResponseError(
                    "Invalid JSON response from server", response.status_code
                ) from e

        raise RemoteApiError("Request failed after all retry attempts")

    # =========================
    # Repository
    # =========================

    def get_authenticated_user(self) -> str:
        """Get the login of the token owner."""
        result = self._request("GET", "/user")
        return result.get("login", "")

    def get_repository_info(self) -> RepositoryInfo:
        """Get repository metadata (properly cased name, default branch)."""
        return RepositoryInfo.from_api_response(self._request("GET", self._repo))

    def repository_exists(self) -> bool:
        """Check whether the repository exists and is visible to the token."""
        try:
            self._request("GET", self._repo)
        except NotFoundError:
            return False
        return True

    def create_repository(
        self, description: str = "", private: bool = False
    ) -> RepositoryInfo:
        """Create the repository in the authenticated user's account.

        Args:
            description: Repository description
            private: Whether to create a private repository

        Returns:
            Metadata of the created repository
        """
        name = self.repository.split("/")[-1]
        payload = {"name": name, "description": description, "private": private}
        result = self._request("POST", "/user/repos", json=payload)
        return RepositoryInfo.from_api_response(result)

    def delete_repository(self) -> None:
        """Delete the repository. This cannot be undone."""
        self._request("DELETE", self._repo)

    # =========================
    # Branches
    # =========================

    def list_branches(self) -> list[str]:
        """List the names of all branches."""
        names: list[str] = []
        page = 1
        while True:
            result = self._request(
                "GET",
                f"{self._repo}/branches",
                params={"per_page": 100, "page": page},
            )
            if not result:
                break
            names.extend(branch["name"] for branch in result)
            if len(result) < 100:
                break
            page += 1
        return names

    def branch_count(self) -> int:
        """Number of branches (zero for a repository without commits)."""
        return len(self.list_branches())

    def get_branch_head_commit(self, branch: str) -> str | None:
        """Get the commit a branch points to.

        Returns:
            Commit sha, or None if the branch does not exist
        """
        try:
            result = self._request("GET", f"{self._repo}/git/ref/heads/{branch}")
        except (NotFoundError, ConflictError):
            # 409 is returned for a repository without commits
            return None
        if isinstance(result, list):
            # Prefix match on a partial ref name, not an exact branch
            return None
        return result["object"]["sha"]

    def set_branch_head_commit(
        self, branch: str, commit_sha: str, force: bool = False
    ) -> None:
        """Move a branch to a commit.

        Without ``force`` the update must be a fast-forward, so a ref that
        moved concurrently makes this fail with ConflictError.
        """
        self._request(
            "PATCH",
            f"{self._repo}/git/refs/heads/{branch}",
            json={"sha": commit_sha, "force": force},
        )

    def create_branch(self, branch: str, commit_sha: str) -> None:
        """Create a new branch pointing to a commit."""
        self._request(
            "POST",
            f"{self._repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": commit_sha},
        )

    def delete_branch(self, branch: str) -> None:
        """Delete a branch."""
        self._request("DELETE", f"{self._repo}/git/refs/heads/{branch}")

    def merge_branches(
        self, source: str, base: str, message: str | None = None
    ) -> str | None:
        """Merge ``source`` into ``base`` remotely.

        Returns:
            Sha of the merge commit, or None when there was nothing to merge
        """
        payload: dict[str, Any] = {"base": base, "head": source}
        if message:
            payload["commit_message"] = message
        result = self._request("POST", f"{self._repo}/merges", json=payload)
        return result.get("sha") if result else None

    # =========================
    # Commits, trees and blobs
    # =========================

    def get_commit(self, commit_sha: str) -> CommitInfo:
        """Get a commit object."""
        result = self._request("GET", f"{self._repo}/git/commits/{commit_sha}")
        return CommitInfo.from_api_response(result)

    def get_commit_tree(self, commit_sha: str) -> str | None:
        """Get the tree sha of a commit, or None if there is no such commit."""
        try:
            return self.get_commit(commit_sha).tree_sha
        except (NotFoundError, ConflictError):
            return None

    def create_commit(
        self,
        message: str,
        tree_sha: str,
        parent_sha: str | None = None,
        author: dict[str, str] | None = None,
    ) -> str:
        """Create a commit object.

        Args:
            message: Commit message
            tree_sha: Tree of the commit
            parent_sha: Parent commit (None for a root commit)
            author: Optional ``{"name": ..., "email": ...}``

        Returns:
            Sha of the new commit
        """
        payload: dict[str, Any] = {
            "message": message,
            "tree": tree_sha,
            "parents": [parent_sha] if parent_sha else [],
        }
        if author:
            payload["author"] = author
        result = self._request("POST", f"{self._repo}/git/commits", json=payload)
        return result["sha"]

    def get_tree_files(self, tree_sha: str, recursive: bool = True) -> list[FileReference]:
        """List the files (blobs) of a tree.

        Args:
            tree_sha: Tree to list
            recursive: Whether to include files in subtrees

        Returns:
            File references with paths relative to the tree root
        """
        params = {"recursive": "1"} if recursive else None
        result = self._request(
            "GET", f"{self._repo}/git/trees/{tree_sha}", params=params
        )

        if recursive and result.get("truncated"):
            logger.debug(f"Tree {tree_sha} listing truncated, walking subtrees")
            return self._walk_tree(tree_sha, "")

        return [
            FileReference.from_tree_entry(entry)
            for entry in result.get("tree", [])
            if entry.get("type") == "blob"
        ]

    def _walk_tree(self, tree_sha: str, prefix: str) -> list[FileReference]:
        result = self._request("GET", f"{self._repo}/git/trees/{tree_sha}")
        files: list[FileReference] = []
        for entry in result.get("tree", []):
            path = f"{prefix}{entry['path']}"
            if entry.get("type") == "blob":
                files.append(FileReference.from_tree_entry({**entry, "path": path}))
            elif entry.get("type") == "tree":
                files.extend(self._walk_tree(entry["sha"], f"{path}/"))
        return files

    def create_tree(self, files: list[FileReference]) -> str:
        """Create a tree object holding exactly ``files``.

        Returns:
            Sha of the new tree
        """
        if not files:
            return EMPTY_TREE_SHA
        payload = {"tree": [f.to_tree_entry() for f in files]}
        result = self._request("POST", f"{self._repo}/git/trees", json=payload)
        return result["sha"]

    def get_blob(self, blob_sha: str) -> bytes:
        """Get the contents of a blob."""
        result = self._request("GET", f"{self._repo}/git/blobs/{blob_sha}")
        content = result.get("content", "")
        if result.get("encoding") == "base64":
            return base64.b64decode(content)
        return content.encode("utf-8")

    def create_blob(self, content: bytes) -> str:
        """Create a blob.

        Returns:
            Sha of the blob
        """
        payload = {
            "content": base64.b64encode(content).decode("ascii"),
            "encoding": "base64",
        }
        result = self._request("POST", f"{self._repo}/git/blobs", json=payload)
        return result["sha"]

    def create_file(
        self, path: str, branch: str, message: str, content: bytes
    ) -> None:
        """Create a file through the contents API.

        This is the only way to write the first commit of an empty
        repository; the git data endpoints refuse to work until one exists.
        """
        payload = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": branch,
        }
        self._request("PUT", f"{self._repo}/contents/{path}", json=payload)
