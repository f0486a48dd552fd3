"""Console output formatting for the CLI and sync engine."""

import json
from typing import Any, Optional

from rich.console import Console

from .utils import format_size


class OutputFormatter:
    """Prints user-facing messages as rich text or JSON.

    In quiet mode only errors and JSON documents are printed.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine readable JSON instead of text
            quiet: Suppress non-essential output
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    def _emit(self, message: str, style: Optional[str] = None) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(message, style=style, markup=False)

    def print(self, message: str = "") -> None:
        """Print a plain message."""
        self._emit(message)

    def info(self, message: str) -> None:
        """Print an informational message."""
        self._emit(message)

    def success(self, message: str) -> None:
        """Print a success message."""
        self._emit(message, style="green")

    def warning(self, message: str) -> None:
        """Print a warning."""
        self._emit(message, style="yellow")

    def error(self, message: str) -> None:
        """Print an error (always shown)."""
        self.err_console.print(f"Error: {message}", style="bold red", markup=False)

    def error_details(self, details: str) -> None:
        """Print extra error lines, unprefixed, next to the error."""
        self.err_console.print(details, style="red", markup=False)

    def progress_message(self, message: str) -> None:
        """Print a per-file progress line."""
        self._emit(f"  {message}", style="dim")

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)

    def output_json(self, data: Any) -> None:
        """Print a JSON document."""
        self.console.print_json(json.dumps(data))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of key/value lines."""
        if self.quiet:
            return
        self.console.print(f"\n{title}", style="bold", markup=False)
        self.console.print("=" * len(title), markup=False)
        for key, value in items:
            self.console.print(f"{key}: {value}", markup=False)
