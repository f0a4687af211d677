"""
elfcal Data Models
==================

Pydantic models for the structures the core extracts from an ELF image
and for the externally supplied symbol tree.

Parsed ELF structures are immutable once built; the symbol tree nodes
are owned by :class:`elfcal.core.symbols.SymbolTree`.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - DWARF Debugging Information Format, Version 4.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class DataType(str, enum.Enum):
    """Closed set of data-type tags carried by symbol tree nodes."""

    BOOLEAN = "bool"
    UINT8 = "uint8"
    SINT8 = "sint8"
    UINT16 = "uint16"
    SINT16 = "sint16"
    UINT32 = "uint32"
    SINT32 = "sint32"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    ENUM = "enum"
    STRUCT = "struct"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        """Short label used in tables (``[enum]``, ``[struct]``, ``""``)."""
        if self is DataType.ENUM:
            return "[enum]"
        if self is DataType.STRUCT:
            return "[struct]"
        if self is DataType.UNKNOWN:
            return ""
        return self.value


class ElementKind(str, enum.Enum):
    """Debug-info element kind of a symbol tree node."""

    COMPILE_UNIT = "compile_unit"
    VOLATILE = "volatile"
    ENUMERATION = "enumeration"
    ENUMERATOR = "enumerator"
    ARRAY = "array"
    TYPEDEF = "typedef"
    BASE_TYPE = "base_type"
    STRUCTURE = "structure"
    MEMBER = "member"
    VARIABLE = "variable"
    CONSTANT = "constant"
    OTHER = "other"


# ---------------------------------------------------------------------------
# ELF structures
# ---------------------------------------------------------------------------

class ElfHeader(BaseModel):
    """Fixed-layout ELF file header (``Elf32_Ehdr`` / ``Elf64_Ehdr``).

    Attributes:
        ei_class: ``EI_CLASS`` -- 1 for ELF32, 2 for ELF64.
        ei_data: ``EI_DATA`` -- 1 little-endian, 2 big-endian.
        ei_osabi: ``EI_OSABI`` target ABI identifier.
        e_type: Object file type (REL, EXEC, DYN, ...).
        e_machine: Target architecture.
        e_phoff: File offset of the program header table.
        e_shoff: File offset of the section header table.
        e_shstrndx: Index of the section-name string table.
    """
    model_config = ConfigDict(frozen=True)

    ei_class: int = 0
    ei_data: int = 0
    ei_version: int = 0
    ei_osabi: int = 0
    e_type: int = 0
    e_machine: int = 0
    e_version: int = 0
    e_entry: int = 0
    e_phoff: int = 0
    e_shoff: int = 0
    e_flags: int = 0
    e_ehsize: int = 0
    e_phentsize: int = 0
    e_phnum: int = 0
    e_shentsize: int = 0
    e_shnum: int = 0
    e_shstrndx: int = 0

    @property
    def is_64bit(self) -> bool:
        return self.ei_class == 2

    @property
    def byte_order(self) -> str:
        """:mod:`struct` byte-order prefix for container structures."""
        return ">" if self.ei_data == 2 else "<"


class SectionHeader(BaseModel):
    """One entry of the section header table plus its resolved name."""
    model_config = ConfigDict(frozen=True)

    index: int = 0
    name: str = ""
    sh_name: int = 0
    sh_type: int = 0
    sh_flags: int = 0
    sh_addr: int = 0
    sh_offset: int = 0
    sh_size: int = 0
    sh_link: int = 0
    sh_info: int = 0
    sh_addralign: int = 0
    sh_entsize: int = 0


class ProgramHeader(BaseModel):
    """One entry of the program header table (a segment)."""
    model_config = ConfigDict(frozen=True)

    p_type: int = 0
    p_flags: int = 0
    p_offset: int = 0
    p_vaddr: int = 0
    p_paddr: int = 0
    p_filesz: int = 0
    p_memsz: int = 0
    p_align: int = 0


class DebugSectionInfo(BaseModel):
    """Location of the DWARF sections a downstream parser needs.

    All three found-flags must be set for the image to be usable as a
    debug-info source.
    """
    model_config = ConfigDict(frozen=True)

    abbrev_found: bool = False
    abbrev_offset: int = 0
    abbrev_length: int = 0
    info_found: bool = False
    info_offset: int = 0
    info_length: int = 0
    str_found: bool = False
    str_offset: int = 0
    str_length: int = 0

    @property
    def is_complete(self) -> bool:
        return self.abbrev_found and self.info_found and self.str_found


class SectionMapEntry(BaseModel):
    """Half-open ``[va_start, va_end)`` range backed by bytes at ``file_offset``."""
    model_config = ConfigDict(frozen=True)

    va_start: int
    va_end: int
    file_offset: int
    name: str = ""

    def contains(self, va: int) -> bool:
        return self.va_start <= va < self.va_end

    def to_file_offset(self, va: int) -> int:
        return self.file_offset + (va - self.va_start)


# ---------------------------------------------------------------------------
# Symbol tree
# ---------------------------------------------------------------------------

class SymbolNode(BaseModel):
    """A node of the externally produced symbol tree.

    Attributes:
        node_id: Index of this node inside its :class:`SymbolTree` arena.
        name: Raw name or path bytes as delivered by the debug-info parser.
        address: Target virtual address (unsigned 32-bit).
        dims: Declared dimension sizes. Empty or one entry is a single
            value; more than one entry is a multi-dimensional array.
        data_type: Data-type tag.
        is_qualifier: Qualifier nodes carry no value but have children.
        element: Debug-info element kind.
        parent: Parent node id, ``None`` for roots.
        children: Child node ids in declaration order.
    """

    node_id: int = 0
    name: bytes = b""
    address: int = Field(default=0, ge=0, le=0xFFFFFFFF)
    dims: tuple[int, ...] = ()
    data_type: DataType = DataType.UNKNOWN
    is_qualifier: bool = False
    element: ElementKind = ElementKind.OTHER
    parent: Optional[int] = None
    children: list[int] = Field(default_factory=list)

    @property
    def is_multidimensional(self) -> bool:
        return len(self.dims) > 1
