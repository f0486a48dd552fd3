"""Blob transfer operations between the working copy and GitHub."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional

from ..api import GitHubClient
from ..models import FileReference
from .scanner import LocalDirectory

logger = logging.getLogger(__name__)


class SyncOperations:
    """Upload and download helpers with a common interface."""

    def __init__(self, client: GitHubClient, directory: LocalDirectory):
        """Initialize sync operations.

        Args:
            client: GitHub API client
            directory: Working copy
        """
        self.client = client
        self.directory = directory

    def upload_file(self, path: str) -> FileReference:
        """Upload a local file as a new blob.

        Args:
            path: Relative path of the file

        Returns:
            Reference to the uploaded blob
        """
        content = self.directory.read(path)
        blob_hash = self.client.create_blob(content)
        logger.debug(f"Uploaded {path} as blob {blob_hash}")
        return FileReference(path=path, blob_hash=blob_hash, size=len(content))

    def upload_files(
        self,
        paths: list[str],
        max_workers: int = 1,
        on_uploaded: Optional[Callable[[FileReference], None]] = None,
    ) -> list[FileReference]:
        """Upload several files, optionally in parallel.

        Returns only once every upload has finished. The first failure is
        raised after the remaining uploads are done; blobs that were already
        created stay on the remote as unreferenced objects.

        Args:
            paths: Relative paths to upload
            max_workers: Number of parallel uploads
            on_uploaded: Called for each uploaded file

        Returns:
            References in the order of ``paths``
        """
        if max_workers <= 1 or len(paths) <= 1:
            refs = []
            for path in paths:
                ref = self.upload_file(path)
                if on_uploaded:
                    on_uploaded(ref)
                refs.append(ref)
            return refs

        results: dict[str, FileReference] = {}
        first_error: Optional[BaseException] = None
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(self.upload_file, p): p for p in paths}
            for future in as_completed(futures):
                try:
                    ref = future.result()
                except Exception as e:
                    logger.debug(f"Upload of {futures[future]} failed: {e}")
                    if first_error is None:
                        first_error = e
                    continue
                results[ref.path] = ref
                if on_uploaded:
                    on_uploaded(ref)

        if first_error is not None:
            raise first_error
        return [results[p] for p in paths]

    def download_file(self, ref: FileReference) -> None:
        """Download a blob into the working copy and clear its marker.

        Args:
            ref: Remote file to download
        """
        content = self.client.get_blob(ref.blob_hash)
        self.directory.write(ref.path, content)
        self.directory.clear_modified(ref.path)
        logger.debug(f"Downloaded {ref.path} ({len(content)} bytes)")

    def is_present(self, ref: FileReference) -> bool:
        """Check if a file is already present locally with the expected size."""
        return self.directory.exists(ref.path) and self.directory.size(ref.path) == ref.size

    def delete_local(self, path: str) -> None:
        """Delete a local file."""
        self.directory.delete(path)
        logger.debug(f"Deleted {path}")
