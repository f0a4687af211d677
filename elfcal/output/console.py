"""
elfcal Console Output
======================

Rich-powered terminal display for parsed ELF images and calibration
sets: header panel, debug-section panel, section tables, the section
index, and a symbol-by-image value grid with modified values
highlighted.

Uses the ElfcalConsole abstraction for consistent styling.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from shared.console import ElfcalConsole

from elfcal.core import codec
from elfcal.core.calibration import CalibrationBinding, CalibrationSet
from elfcal.core.models import DataType, DebugSectionInfo
from elfcal.core.section_index import SectionIndex
from elfcal.core.symbols import SymbolTree, format_size, format_type
from elfcal.parsers.elf_loader import (
    LoadedElf,
    describe_class,
    describe_data_encoding,
    describe_machine,
    describe_osabi,
    describe_section_type,
    describe_type,
)


def _hex(value: int, width: int = 8) -> str:
    return f"0x{value:0{width}X}"


# ---------------------------------------------------------------------------
# ElfOutput
# ---------------------------------------------------------------------------

class ElfOutput:
    """Rich terminal display for a :class:`LoadedElf`.

    Usage::

        output = ElfOutput()
        output.display(loaded_elf)
    """

    def __init__(self, console: ElfcalConsole | None = None) -> None:
        self._console: ElfcalConsole = console or ElfcalConsole()

    def display(self, elf: LoadedElf) -> None:
        """Display header, debug sections and the section table."""
        self._console.section(f"ELF Image: {elf.path.name}")
        self.display_header(elf)
        self.display_debug_info(elf.debug_info)
        self.display_sections(elf)

    def display_header(self, elf: LoadedElf) -> None:
        h = elf.header
        lines = [
            f"[bold]File:[/bold]          {escape(str(elf.path))}",
            f"[bold]Size:[/bold]          {elf.size:,} bytes",
            f"[bold]Class:[/bold]         {describe_class(h)}",
            f"[bold]Data:[/bold]          {describe_data_encoding(h)}",
            f"[bold]OS/ABI:[/bold]        {describe_osabi(h)}",
            f"[bold]Type:[/bold]          {describe_type(h)}",
            f"[bold]Machine:[/bold]       {describe_machine(h)}",
            f"[bold]Version:[/bold]       {h.e_version}",
            f"[bold]Entry Point:[/bold]   {_hex(h.e_entry)}",
            f"[bold]Section Hdrs:[/bold]  {h.e_shnum} at offset {h.e_shoff}",
            f"[bold]Program Hdrs:[/bold]  {h.e_phnum} at offset {h.e_phoff}",
        ]
        panel = Panel(
            "\n".join(lines),
            title="[bold bright_cyan]ELF Header[/bold bright_cyan]",
            border_style="bright_cyan",
            padding=(1, 2),
        )
        self._console.rich.print(panel)
        self._console.blank()

    def display_debug_info(self, info: DebugSectionInfo) -> None:
        rows = [
            (".debug_abbrev", info.abbrev_found, info.abbrev_offset, info.abbrev_length),
            (".debug_info", info.info_found, info.info_offset, info.info_length),
            (".debug_str", info.str_found, info.str_offset, info.str_length),
        ]
        tbl = Table(
            title="Debug Sections",
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            padding=(0, 1),
        )
        tbl.add_column("Section", style="bold")
        tbl.add_column("Found")
        tbl.add_column("Offset", justify="right")
        tbl.add_column("Length", justify="right")
        for name, found, offset, length in rows:
            mark = Text("yes", style="green") if found else Text("no", style="red")
            tbl.add_row(
                name,
                mark,
                str(offset) if found else "-",
                str(length) if found else "-",
            )
        self._console.rich.print(tbl)
        if not info.is_complete:
            self._console.warning("Debug information incomplete or absent.")
        self._console.blank()

    def display_sections(self, elf: LoadedElf) -> None:
        self._console.section("Sections")
        tbl = Table(
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            padding=(0, 1),
        )
        tbl.add_column("#", style="dim", justify="right")
        tbl.add_column("Name", style="bold", min_width=12)
        tbl.add_column("Type")
        tbl.add_column("Address", style="elfcal.address", justify="right")
        tbl.add_column("Offset", justify="right")
        tbl.add_column("Size", justify="right")
        for sh in elf.sections:
            tbl.add_row(
                str(sh.index),
                sh.name or "-",
                describe_section_type(sh),
                _hex(sh.sh_addr),
                _hex(sh.sh_offset, 6),
                str(sh.sh_size),
            )
        self._console.rich.print(tbl)

    def display_section_index(self, index: SectionIndex) -> None:
        overlapping = {
            id(entry) for pair in index.overlaps() for entry in pair
        }
        rows = []
        for entry in index:
            rows.append(
                (
                    _hex(entry.va_start),
                    _hex(entry.va_end),
                    _hex(entry.file_offset, 6),
                    entry.name or "-",
                    "overlap" if id(entry) in overlapping else "",
                )
            )
        self._console.table(
            "Section Index",
            ["VA Start", "VA End", "File Offset", "Name", "Note"],
            rows,
            caption=f"{len(index)} ranges",
            styles=["elfcal.address", "elfcal.address", "", "bold", "elfcal.warning"],
        )

    def display_value(
        self,
        address: int,
        data_type: DataType,
        raw: bytes,
        value: codec.Value,
        source: str = "",
    ) -> None:
        pairs = [
            ("Address", _hex(address)),
            ("Type", data_type.value),
            ("Raw", raw.hex(" ")),
            ("Value", codec.format_value(value, data_type)),
        ]
        if source:
            pairs.insert(0, ("Source", source))
        self._console.key_values("Symbol Value", pairs)


# ---------------------------------------------------------------------------
# CalibrationOutput
# ---------------------------------------------------------------------------

class CalibrationOutput:
    """Rich display for a :class:`CalibrationSet`.

    One row per bound symbol; one value column per attached image.
    Values that differ from the ELF reference are highlighted.
    """

    def __init__(self, console: ElfcalConsole | None = None) -> None:
        self._console: ElfcalConsole = console or ElfcalConsole()

    def display(self, cal: CalibrationSet, tree: SymbolTree) -> None:
        if cal.selected is None:
            self._console.info("No symbol subtree selected.")
            return
        self._console.section(f"Calibration: {tree.display_name(cal.selected)}")

        tbl = Table(
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            padding=(0, 1),
        )
        tbl.add_column("#", style="dim", justify="right")
        tbl.add_column("Symbol", style="bold")
        tbl.add_column("Address", style="elfcal.address", justify="right")
        tbl.add_column("Type")
        tbl.add_column("Size", justify="right")
        tbl.add_column("Reference", justify="right")
        for image in cal.images:
            tbl.add_column(image.filename, justify="right")

        for index, leaf in enumerate(cal.symbols):
            bindings = [img.bindings[index] for img in cal.images]
            reference = bindings[0] if bindings else None
            row: list[str | Text] = [
                str(index),
                Text(tree.display_name(leaf.node_id)),
                _hex(leaf.address),
                Text(format_type(leaf.data_type)),
                format_size(leaf.dims),
                self._reference_cell(reference),
            ]
            row.extend(self._value_cell(b) for b in bindings)
            tbl.add_row(*row)

        self._console.rich.print(tbl)

    @staticmethod
    def _reference_cell(binding: CalibrationBinding | None) -> str:
        if binding is None or binding.reference is None:
            return "-"
        if binding.labels and isinstance(binding.reference, int):
            label = codec.enum_label(binding.reference, binding.labels)
            if label is not None:
                return label
        return codec.format_value(binding.reference, binding.data_type)

    @staticmethod
    def _value_cell(binding: CalibrationBinding) -> Text:
        if binding.error is not None:
            return Text(binding.error.value, style="elfcal.error")
        style = "elfcal.modified" if binding.modified else ""
        return Text(binding.display(), style=style)

    def display_tree(self, tree: SymbolTree, node_id: int) -> None:
        """Render the symbol subtree below *node_id*."""
        root = tree.node(node_id)
        rich_tree = Tree(f"[bold]{escape(tree.display_name(node_id))}[/bold]")
        stack = [(child, rich_tree) for child in reversed(root.children)]
        while stack:
            child_id, parent = stack.pop()
            node = tree.node(child_id)
            details = " ".join(
                part for part in (format_type(node.data_type), format_size(node.dims))
                if part
            )
            label = escape(tree.display_name(child_id))
            if details:
                label = f"{label} [dim]{escape(details)}[/dim]"
            branch = parent.add(label)
            stack.extend((c, branch) for c in reversed(node.children))
        self._console.rich.print(rich_tree)
