"""Console output shared by builtins and the input loop."""

from __future__ import annotations

import sys

from rich.console import Console
from rich.text import Text

console = Console(highlight=False, soft_wrap=True)


def ui_println(message: str | Text) -> None:
    """Print one line of psh's own output (listings, notices)."""
    if isinstance(message, str):
        message = Text(message)
    console.print(message)


def ui_error(message: object) -> None:
    console.print(Text(f"error: {message}", style="bold red"))


def write_passthrough(text: str) -> None:
    """Write session output untouched; escape sequences go straight through."""
    sys.stdout.write(text)
    sys.stdout.flush()
