"""Centralized Rich Console management for CLI output."""

from typing import Iterable

from rich.console import Console
from rich.table import Table

_console: Console | None = None


def get_console(use_colors: bool = True) -> Console:
    """Get or create the global Rich Console instance.

    Args:
        use_colors: Disable to create a console without color output.
            Only honored when the console is first created.

    Returns:
        Console: The global Rich Console instance
    """
    global _console
    if _console is None:
        _console = Console(no_color=not use_colors)
    return _console


def safe_print(message: str, style: str | None = None) -> None:
    """Print using Rich Console with optional styling."""
    console = get_console()
    if style:
        console.print(message, style=style)
    else:
        console.print(message)


def print_key_values(title: str, rows: Iterable[tuple[str, str]]) -> None:
    """Print a two-column key/value table.

    Args:
        title: Table title
        rows: (label, value) pairs, printed in order
    """
    table = Table(title=title, show_header=False, title_justify="left")
    table.add_column("field", style="bold cyan")
    table.add_column("value")
    for label, value in rows:
        table.add_row(label, value)
    get_console().print(table)
