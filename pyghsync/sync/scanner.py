"""Local directory access for sync operations.

All files are addressed by root-relative paths using forward slashes. The
metadata directory is never listed.

Each file carries a modification marker. The marker is kept in a sidecar
index (``index`` in the metadata directory) with one
``<flag> <size> <mtime_ns> <path>`` line per known file. A file counts as
modified when it is not in the index, when its flag is set, or when its
size or mtime no longer match what was recorded when the marker was last
cleared. Any write therefore sets the marker, even one that leaves the
content byte-identical.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from ..exceptions import LedgerFormatError, LocalIOError
from ..utils import METADATA_DIR
from .state import LINE_END, atomic_write_text, split_lines

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "index"


@dataclass
class IndexEntry:
    """Recorded state of a file when its marker was last cleared."""

    modified: bool
    size: int
    mtime_ns: int


class LocalDirectory:
    """Filesystem collaborator rooted at a working copy directory.

    Examples:
        >>> directory = LocalDirectory(Path("/work/repo"))
        >>> directory.write("docs/readme.md", b"hello")
        >>> directory.is_modified("docs/readme.md")
        True
    """

    def __init__(self, root: Path):
        """Initialize local directory.

        Args:
            root: Root of the working copy
        """
        self.root = Path(root)
        self.index_file = self.root / METADATA_DIR / INDEX_FILE_NAME
        self._index: dict[str, IndexEntry] | None = None

    def _full_path(self, path: str) -> Path:
        return self.root.joinpath(*path.split("/"))

    # =========================
    # File primitives
    # =========================

    def exists(self, path: str) -> bool:
        """Check if a file exists."""
        return self._full_path(path).is_file()

    def size(self, path: str) -> int:
        """Get the size of a file in bytes."""
        try:
            return self._full_path(path).stat().st_size
        except OSError as e:
            raise LocalIOError(f"Cannot stat {path}: {e}") from e

    def read(self, path: str) -> bytes:
        """Read the contents of a file."""
        try:
            return self._full_path(path).read_bytes()
        except OSError as e:
            raise LocalIOError(f"Cannot read {path}: {e}") from e

    def write(self, path: str, content: bytes) -> None:
        """Write a file, creating parent directories. Sets the marker."""
        full_path = self._full_path(path)
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(content)
        except OSError as e:
            raise LocalIOError(f"Cannot write {path}: {e}") from e
        self.set_modified(path)

    def delete(self, path: str) -> None:
        """Delete a file and any directories it leaves empty."""
        full_path = self._full_path(path)
        try:
            full_path.unlink(missing_ok=True)
            parent = full_path.parent
            while parent != self.root and not any(parent.iterdir()):
                parent.rmdir()
                parent = parent.parent
        except OSError as e:
            raise LocalIOError(f"Cannot delete {path}: {e}") from e
        self._load_index().pop(path, None)

    def enumerate(self) -> list[str]:
        """List every file below the root, except the metadata directory.

        Returns:
            Sorted relative paths
        """
        files: list[str] = []
        try:
            for dirpath, dirnames, filenames in os.walk(self.root):
                current = Path(dirpath)
                if current == self.root and METADATA_DIR in dirnames:
                    dirnames.remove(METADATA_DIR)
                for name in filenames:
                    files.append((current / name).relative_to(self.root).as_posix())
        except OSError as e:
            raise LocalIOError(f"Cannot list {self.root}: {e}") from e
        return sorted(files)

    def has_contents(self) -> bool:
        """Check if the directory holds anything at all."""
        return self.root.is_dir() and any(self.root.iterdir())

    # =========================
    # Modification markers
    # =========================

    def _load_index(self) -> dict[str, IndexEntry]:
        if self._index is not None:
            return self._index

        index: dict[str, IndexEntry] = {}
        if self.index_file.exists():
            try:
                with open(self.index_file, encoding="utf-8", newline="") as f:
                    text = f.read()
            except OSError as e:
                raise LocalIOError(f"Cannot read {self.index_file}: {e}") from e
            for line in split_lines(text):
                if not line.strip():
                    continue
                parts = line.split(" ", 3)
                if len(parts) != 4:
                    raise LedgerFormatError(f"Malformed index line: {line!r}")
                flag, size, mtime_ns, path = parts
                index[path] = IndexEntry(flag == "1", int(size), int(mtime_ns))
            logger.debug(f"Loaded modification index with {len(index)} entries")
        self._index = index
        return index

    def is_modified(self, path: str) -> bool:
        """Check the modification marker of a file."""
        entry = self._load_index().get(path)
        if entry is None or entry.modified:
            return True
        try:
            stat = self._full_path(path).stat()
        except OSError:
            return True
        return stat.st_size != entry.size or stat.st_mtime_ns != entry.mtime_ns

    def set_modified(self, path: str) -> None:
        """Set the modification marker of a file."""
        index = self._load_index()
        entry = index.get(path)
        if entry is None:
            index[path] = IndexEntry(True, -1, -1)
        else:
            entry.modified = True

    def clear_modified(self, path: str) -> None:
        """Clear the modification marker, recording the current file stat."""
        try:
            stat = self._full_path(path).stat()
        except OSError as e:
            raise LocalIOError(f"Cannot stat {path}: {e}") from e
        self._load_index()[path] = IndexEntry(False, stat.st_size, stat.st_mtime_ns)

    def save_index(self) -> None:
        """Persist the modification index, dropping files that no longer exist."""
        index = self._load_index()
        lines = []
        for path in sorted(index):
            # Unlisted paths count as modified
            if not self.exists(path) or "\n" in path or "\r" in path:
                continue
            entry = index[path]
            flag = "1" if entry.modified else "0"
            lines.append(f"{flag} {entry.size} {entry.mtime_ns} {path}{LINE_END}")
        atomic_write_text(self.index_file, "".join(lines))
        logger.debug(f"Saved modification index with {len(lines)} entries")
