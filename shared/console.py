"""
elfcal Console Interface
=========================

Rich-powered console abstraction providing one presentation layer for
every elfcal command: section rules, severity-coloured messages, tables
and key/value panels, all with consistent styling.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

_ELFCAL_THEME = Theme(
    {
        "elfcal.section": "bold bright_magenta",
        "elfcal.success": "bold green",
        "elfcal.warning": "bold yellow",
        "elfcal.error": "bold red",
        "elfcal.info": "bold bright_blue",
        "elfcal.dim": "dim white",
        "elfcal.highlight": "bold bright_white",
        "elfcal.modified": "bold red",
        "elfcal.address": "bright_cyan",
    }
)


class ElfcalConsole:
    """Unified console interface for elfcal commands.

    Usage::

        con = ElfcalConsole()
        con.section("Section Index")
        con.success("Image saved")
    """

    def __init__(
        self,
        *,
        quiet: bool = False,
        record: bool = False,
        width: int | None = None,
    ) -> None:
        """Initialise the console.

        Args:
            quiet:  Suppress all output (useful in library / test mode).
            record: Enable Rich recording for text / HTML export.
            width:  Fixed console width; ``None`` autodetects.
        """
        self._console = Console(
            theme=_ELFCAL_THEME,
            quiet=quiet,
            record=record,
            highlight=False,
            width=width,
        )

    @property
    def rich(self) -> Console:
        """Direct access to the underlying Rich Console instance."""
        return self._console

    # ------------------------------------------------------------------ #
    #  Section header
    # ------------------------------------------------------------------ #

    def section(self, title: str) -> None:
        """Print a prominent section header."""
        self._console.rule(
            f"  {title}  ",
            style="elfcal.section",
            characters="─",
        )

    # ------------------------------------------------------------------ #
    #  Message helpers (severity-coloured)
    # ------------------------------------------------------------------ #

    def success(self, message: str) -> None:
        self._console.print(
            f"[elfcal.success][✔] SUCCESS:[/elfcal.success] {escape(message)}"
        )

    def warning(self, message: str) -> None:
        self._console.print(
            f"[elfcal.warning][⚠] WARNING:[/elfcal.warning] {escape(message)}"
        )

    def error(self, message: str) -> None:
        self._console.print(
            f"[elfcal.error][✘] ERROR:[/elfcal.error] {escape(message)}"
        )

    def info(self, message: str) -> None:
        self._console.print(
            f"[elfcal.info][ℹ] INFO:[/elfcal.info] {escape(message)}"
        )

    # ------------------------------------------------------------------ #
    #  Table display
    # ------------------------------------------------------------------ #

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        styles: Sequence[str] | None = None,
    ) -> None:
        """Render a styled Rich table.

        Args:
            title:    Table title.
            columns:  Column header labels.
            rows:     Iterable of row tuples; each element is stringified.
            caption:  Optional footer caption.
            styles:   Optional per-column Rich style strings.
        """
        tbl = Table(
            title=title,
            caption=caption,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            padding=(0, 1),
        )
        for idx, col_name in enumerate(columns):
            style = styles[idx] if styles and idx < len(styles) else ""
            tbl.add_column(col_name, style=style)

        for row in rows:
            tbl.add_row(*(str(cell) for cell in row))

        self._console.print(tbl)

    def key_values(self, title: str, pairs: Sequence[tuple[str, Any]]) -> None:
        """Render ``(label, value)`` pairs as a two-column grid in a panel."""
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="elfcal.dim", justify="right")
        grid.add_column(style="elfcal.highlight")
        for label, value in pairs:
            grid.add_row(label, str(value))
        self._console.print(
            Panel(grid, title=title, border_style="bright_cyan", expand=False)
        )

    # ------------------------------------------------------------------ #
    #  Utility
    # ------------------------------------------------------------------ #

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Proxy to :meth:`rich.console.Console.print`."""
        self._console.print(*args, **kwargs)

    def blank(self, count: int = 1) -> None:
        for _ in range(count):
            self._console.print()

    def export_text(self) -> str:
        """Export recorded console output as plain text (requires ``record=True``)."""
        return self._console.export_text()
