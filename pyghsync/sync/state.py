"""Ledger persistence for linked repositories.

Two ledgers live in the metadata directory of a linked working copy:

- ``tree``: the files of the last synced commit, one
  ``<blob_hash> <size> <path>`` line per file.
- ``state``: three lines holding the repository, the tracked branch and the
  last synced commit (empty when the branch has no commit yet).

Both are CRLF terminated and always rewritten wholesale through an atomic
replace, so an interrupted write leaves the previous version in place.
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from ..exceptions import LedgerFormatError, LocalIOError
from ..models import FileReference
from ..utils import METADATA_DIR

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "state"
TREE_FILE_NAME = "tree"
LINE_END = "\r\n"
UNSUPPORTED_PATH_CHARS = (" ", "\r", "\n")

TreeSnapshot = dict[str, FileReference]
"""Files of a tree keyed by path"""


@dataclass
class RepositoryLinkState:
    """Which remote repository, branch and commit a directory is synced to."""

    repository: str
    """Full remote repository name (owner/name)"""

    branch: str
    """Tracked branch"""

    commit: Optional[str] = None
    """Last synced commit, None if the branch had no commit when linked"""


def snapshot_from_files(files: list[FileReference]) -> TreeSnapshot:
    """Index file references by path."""
    return {f.path: f for f in files}


# =========================
# Codecs
# =========================


def split_lines(text: str) -> list[str]:
    """Split ledger text on line feeds, dropping one trailing carriage return.

    Unlike ``str.splitlines`` this keeps characters such as form feeds or
    unicode line separators inside paths.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def check_ledger_paths(paths: Iterable[str]) -> None:
    """Make sure every path can be stored in a ledger line.

    Raises:
        LedgerFormatError: If a path contains a space or a line break
    """
    unsupported = sorted(
        p for p in paths if any(c in p for c in UNSUPPORTED_PATH_CHARS)
    )
    if unsupported:
        names = ", ".join(repr(p) for p in unsupported)
        raise LedgerFormatError(
            f"Paths with spaces or line breaks are not supported: {names}"
        )


def serialize_tree(snapshot: TreeSnapshot) -> str:
    """Encode a tree snapshot as ledger text.

    Raises:
        LedgerFormatError: If a path contains a space or a line break
    """
    check_ledger_paths(snapshot)
    lines = []
    for path in sorted(snapshot):
        ref = snapshot[path]
        lines.append(f"{ref.blob_hash} {ref.size} {ref.path}{LINE_END}")
    return "".join(lines)


def parse_tree(text: str) -> TreeSnapshot:
    """Decode tree ledger text. Empty text is an empty snapshot."""
    snapshot: TreeSnapshot = {}
    for number, line in enumerate(split_lines(text), start=1):
        if not line.strip():
            continue
        parts = line.split(" ", 2)
        if len(parts) != 3 or not parts[1].isdigit():
            raise LedgerFormatError(f"Malformed tree ledger line {number}: {line!r}")
        blob_hash, size, path = parts
        snapshot[path] = FileReference(path=path, blob_hash=blob_hash, size=int(size))
    return snapshot


def serialize_state(state: RepositoryLinkState) -> str:
    """Encode a link state as ledger text."""
    return LINE_END.join([state.repository, state.branch, state.commit or ""]) + LINE_END


def parse_state(text: str) -> RepositoryLinkState:
    """Decode state ledger text."""
    lines = split_lines(text)
    if len(lines) < 2 or not lines[0]:
        raise LedgerFormatError("Malformed state ledger")
    commit = lines[2].strip() if len(lines) > 2 else ""
    return RepositoryLinkState(
        repository=lines[0].strip(),
        branch=lines[1].strip(),
        commit=commit or None,
    )


# =========================
# Storage
# =========================


def atomic_write_text(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` without ever exposing a partial file.

    Raises:
        LocalIOError: If the file cannot be written
    """
    tmp_name = _write_temp(path, text)
    _replace(tmp_name, path)


def _write_temp(path: Path, text: str) -> str:
    """Write ``text`` to a synced temp file next to ``path``."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    except OSError as e:
        raise LocalIOError(f"Failed to write {path}: {e}") from e
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise LocalIOError(f"Failed to write {path}: {e}") from e
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return tmp_name


def _replace(tmp_name: str, path: Path) -> None:
    try:
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise LocalIOError(f"Failed to write {path}: {e}") from e


def find_repository_root(path: Path) -> Optional[Path]:
    """Find the linked working copy containing ``path``.

    Args:
        path: Directory to start from

    Returns:
        The first directory (``path`` or an ancestor) holding a state
        ledger, or None if there is none
    """
    current = path.resolve()
    for directory in [current, *current.parents]:
        if (directory / METADATA_DIR / STATE_FILE_NAME).is_file():
            return directory
    return None


class LedgerStore:
    """Reads and writes the ledgers of one working copy."""

    def __init__(self, root: Path):
        """Initialize ledger store.

        Args:
            root: Root directory of the working copy
        """
        self.root = root
        self.metadata_dir = root / METADATA_DIR
        self.state_file = self.metadata_dir / STATE_FILE_NAME
        self.tree_file = self.metadata_dir / TREE_FILE_NAME

    def exists(self) -> bool:
        """Check if the working copy is linked."""
        return self.state_file.is_file()

    def _read(self, path: Path) -> str:
        try:
            with open(path, encoding="utf-8", newline="") as f:
                return f.read()
        except OSError as e:
            raise LocalIOError(f"Failed to read {path}: {e}") from e

    def load_state(self) -> RepositoryLinkState:
        """Load the state ledger."""
        state = parse_state(self._read(self.state_file))
        logger.debug(
            f"Loaded state: {state.repository} {state.branch} {state.commit}"
        )
        return state

    def load_tree(self) -> TreeSnapshot:
        """Load the tree ledger (empty if missing)."""
        if not self.tree_file.exists():
            return {}
        snapshot = parse_tree(self._read(self.tree_file))
        logger.debug(f"Loaded tree ledger with {len(snapshot)} files")
        return snapshot

    def save(self, state: RepositoryLinkState, snapshot: TreeSnapshot) -> None:
        """Persist both ledgers.

        Both ledgers are encoded and written to temp files before either is
        replaced. If the state cannot be replaced the previous tree is put
        back, so a failure leaves the ledgers as they were.

        Raises:
            LedgerFormatError: If the snapshot cannot be encoded
            LocalIOError: If a ledger cannot be written
        """
        tree_text = serialize_tree(snapshot)
        state_text = serialize_state(state)
        previous_tree = (
            self._read(self.tree_file) if self.tree_file.exists() else None
        )

        tree_tmp = _write_temp(self.tree_file, tree_text)
        try:
            state_tmp = _write_temp(self.state_file, state_text)
        except BaseException:
            Path(tree_tmp).unlink(missing_ok=True)
            raise

        try:
            _replace(tree_tmp, self.tree_file)
        except BaseException:
            Path(state_tmp).unlink(missing_ok=True)
            raise
        try:
            _replace(state_tmp, self.state_file)
        except LocalIOError:
            logger.debug("State ledger replace failed, restoring previous tree")
            if previous_tree is None:
                self.tree_file.unlink(missing_ok=True)
            else:
                atomic_write_text(self.tree_file, previous_tree)
            raise
        logger.debug(
            f"Saved ledgers: {len(snapshot)} files at commit {state.commit}"
        )

    def clear(self) -> None:
        """Delete the metadata directory."""
        try:
            shutil.rmtree(self.metadata_dir)
        except OSError as e:
            raise LocalIOError(f"Failed to remove {self.metadata_dir}: {e}") from e
