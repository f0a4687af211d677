"""
ELF Loader
==========

Memory-mapped, struct-based parser for the Executable and Linkable
Format.  ELF32 is the primary target (embedded firmware); ELF64 headers
are accepted as well.  Container structures honour ``EI_DATA``.

:func:`parse` maps the whole file read-only, validates the header
geometry, extracts section and program headers, resolves section names,
builds the :class:`~elfcal.core.section_index.SectionIndex` and locates
the DWARF sections a downstream debug-info parser needs.  The mapping
stays open for the lifetime of the returned :class:`LoadedElf` and is
used by :meth:`LoadedElf.read_bytes` for every symbol read.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - System V Application Binary Interface, Edition 4.1.
    - Linux man page: elf(5).
"""

from __future__ import annotations

import mmap
import struct
from pathlib import Path
from typing import Any, Optional

from shared.config import ElfcalConfig
from shared.logger import ElfcalLogger

from elfcal.core.errors import (
    AddressNotMappedError,
    BadMagicError,
    FileOpenError,
    InvalidHeaderOffsetsError,
    InvalidStringTableError,
    ReadBoundsError,
    ShortReadError,
    TruncatedHeaderError,
)
from elfcal.core.models import (
    DebugSectionInfo,
    ElfHeader,
    ProgramHeader,
    SectionHeader,
    SectionMapEntry,
)
from elfcal.core.section_index import SectionIndex


# ---------------------------------------------------------------------------
# ELF Constants
# ---------------------------------------------------------------------------

ELF_MAGIC: bytes = b"\x7fELF"

ELFCLASS32: int = 1
ELFCLASS64: int = 2

ELFDATA2LSB: int = 1
ELFDATA2MSB: int = 2

# Header / table entry sizes per class
ELF32_EHDR_SIZE: int = 52
ELF64_EHDR_SIZE: int = 64
_EHDR_FMT: dict[int, str] = {ELFCLASS32: "HHIIIIIHHHHHH", ELFCLASS64: "HHIQQQIHHHHHH"}
_SHDR_FMT: dict[int, str] = {ELFCLASS32: "IIIIIIIIII", ELFCLASS64: "IIQQQQIIQQ"}
_PHDR_FMT: dict[int, str] = {ELFCLASS32: "IIIIIIII", ELFCLASS64: "IIQQQQQQ"}

# Section header types
SHT_NULL: int = 0
SHT_PROGBITS: int = 1
SHT_SYMTAB: int = 2
SHT_STRTAB: int = 3
SHT_RELA: int = 4
SHT_HASH: int = 5
SHT_DYNAMIC: int = 6
SHT_NOTE: int = 7
SHT_NOBITS: int = 8
SHT_REL: int = 9
SHT_SHLIB: int = 10
SHT_DYNSYM: int = 11
SHT_INIT_ARRAY: int = 14
SHT_FINI_ARRAY: int = 15
SHT_PREINIT_ARRAY: int = 16
SHT_GROUP: int = 17
SHT_SYMTAB_SHNDX: int = 18

# Special section indices
SHN_UNDEF: int = 0
SHN_XINDEX: int = 0xFFFF

DEBUG_ABBREV: str = ".debug_abbrev"
DEBUG_INFO: str = ".debug_info"
DEBUG_STR: str = ".debug_str"

_CLASS_NAMES: dict[int, str] = {
    ELFCLASS32: "32-bit",
    ELFCLASS64: "64-bit",
}

_DATA_NAMES: dict[int, str] = {
    ELFDATA2LSB: "2's complement, little endian",
    ELFDATA2MSB: "2's complement, big endian",
}

_OSABI_NAMES: dict[int, str] = {
    0: "UNIX System V",
    1: "HP-UX",
    2: "NetBSD",
    3: "GNU ELF",
    6: "Sun Solaris",
    7: "IBM AIX",
    8: "SGI Irix",
    9: "FreeBSD",
    10: "Compaq TRU64 UNIX",
    11: "Novell Modesto",
    12: "OpenBSD",
    64: "ARM EABI",
    97: "ARM",
    255: "Standalone (embedded) application",
}

_ET_NAMES: dict[int, str] = {
    0: "NONE (No file type)",
    1: "REL (Relocatable file)",
    2: "EXEC (Executable file)",
    3: "DYN (Shared object file)",
    4: "CORE (Core file)",
}

_EM_NAMES: dict[int, str] = {
    0: "No machine",
    2: "SUN SPARC",
    3: "Intel 80386",
    4: "Motorola m68k family",
    8: "MIPS R3000",
    20: "PowerPC",
    21: "PowerPC 64-bit",
    22: "IBM S390",
    36: "NEC V800 series",
    40: "ARM",
    42: "Hitachi SH",
    43: "SPARC v9 64-bit",
    44: "Siemens/Infineon TriCore",
    52: "Motorola ColdFire",
    53: "Motorola M68HC12",
    62: "AMD x86-64",
    70: "Motorola MC68HC11",
    83: "Atmel AVR 8-bit",
    87: "NEC v850",
    88: "Mitsubishi M32R",
    94: "Tensilica Xtensa",
    113: "Altera Nios II",
    183: "ARM AArch64",
    189: "Xilinx MicroBlaze",
    197: "Renesas RH850",
    243: "RISC-V",
}

_SHT_NAMES: dict[int, str] = {
    SHT_NULL: "NULL",
    SHT_PROGBITS: "PROGBITS",
    SHT_SYMTAB: "SYMTAB",
    SHT_STRTAB: "STRTAB",
    SHT_RELA: "RELA",
    SHT_HASH: "HASH",
    SHT_DYNAMIC: "DYNAMIC",
    SHT_NOTE: "NOTE",
    SHT_NOBITS: "NOBITS",
    SHT_REL: "REL",
    SHT_SHLIB: "SHLIB",
    SHT_DYNSYM: "DYNSYM",
    SHT_INIT_ARRAY: "INIT_ARRAY",
    SHT_FINI_ARRAY: "FINI_ARRAY",
    SHT_PREINIT_ARRAY: "PREINIT_ARRAY",
    SHT_GROUP: "GROUP",
    SHT_SYMTAB_SHNDX: "SYMTAB_SHNDX",
    0x6FFFFFF5: "GNU_ATTRIBUTES",
    0x6FFFFFF6: "GNU_HASH",
    0x6FFFFFFD: "GNU_VERDEF",
    0x6FFFFFFE: "GNU_VERNEED",
    0x6FFFFFFF: "GNU_VERSYM",
    0x70000003: "ARM_ATTRIBUTES",
}


def describe_class(header: ElfHeader) -> str:
    return _CLASS_NAMES.get(header.ei_class, "Invalid object length")


def describe_data_encoding(header: ElfHeader) -> str:
    return _DATA_NAMES.get(header.ei_data, "Invalid data encoding")


def describe_osabi(header: ElfHeader) -> str:
    return _OSABI_NAMES.get(header.ei_osabi, f"Unknown OSABI ({header.ei_osabi})")


def describe_type(header: ElfHeader) -> str:
    return _ET_NAMES.get(header.e_type, f"Unknown type (0x{header.e_type:x})")


def describe_machine(header: ElfHeader) -> str:
    return _EM_NAMES.get(header.e_machine, f"Unknown machine ({header.e_machine})")


def describe_section_type(section: SectionHeader) -> str:
    return _SHT_NAMES.get(section.sh_type, f"0x{section.sh_type:x}")


# ---------------------------------------------------------------------------
# LoadedElf
# ---------------------------------------------------------------------------

class LoadedElf:
    """A parsed ELF image backed by a read-only memory mapping.

    Instances are produced by :func:`parse`; use them as context managers
    (or call :meth:`close`) to release the mapping::

        with parse("firmware.elf") as elf:
            raw = elf.read_bytes(0x1008, 4)
    """

    def __init__(
        self,
        path: Path,
        mapping: mmap.mmap,
        header: ElfHeader,
        sections: list[SectionHeader],
        program_headers: list[ProgramHeader],
        debug_info: DebugSectionInfo,
        section_index: SectionIndex,
        *,
        symtab_index: Optional[int] = None,
        strtab_index: Optional[int] = None,
        logger: Optional[ElfcalLogger] = None,
    ) -> None:
        self._path = path
        self._mapping: Optional[mmap.mmap] = mapping
        self._size = len(mapping)
        self._header = header
        self._sections = sections
        self._program_headers = program_headers
        self._debug_info = debug_info
        self._index = section_index
        self._symtab_index = symtab_index
        self._strtab_index = strtab_index
        self._logger = logger or ElfcalLogger("loader")

    # ------------------------------------------------------------------ #
    #  Resource management
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """Release the file mapping.  Safe to call more than once."""
        if self._mapping is not None:
            self._mapping.close()
            self._mapping = None

    @property
    def closed(self) -> bool:
        return self._mapping is None

    def __enter__(self) -> LoadedElf:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __del__(self) -> None:
        mapping = getattr(self, "_mapping", None)
        if mapping is not None:
            mapping.close()

    def _data(self) -> mmap.mmap:
        if self._mapping is None:
            raise ValueError(f"{self._path} has been closed")
        return self._mapping

    # ------------------------------------------------------------------ #
    #  Symbol byte reader
    # ------------------------------------------------------------------ #

    def find_section(self, va: int) -> Optional[SectionMapEntry]:
        """Section-index entry containing *va*, or ``None``."""
        return self._index.find(va)

    def read_bytes(self, va: int, length: int) -> bytes:
        """Return exactly *length* bytes stored at virtual address *va*.

        Raises:
            AddressNotMappedError: No section contains *va*.
            ReadBoundsError: The resolved file offset lies outside the file.
            ShortReadError: Fewer than *length* bytes remain in the file.
        """
        if length < 0:
            raise ValueError(f"negative read length {length}")
        entry = self._index.find(va)
        if entry is None:
            raise AddressNotMappedError(
                f"VA 0x{va:08X} is not in any section", va, length
            )
        offset = entry.to_file_offset(va)
        if offset > self._size or (length and offset == self._size):
            raise ReadBoundsError(
                f"VA 0x{va:08X} resolves to offset 0x{offset:X} "
                f"beyond end of file (0x{self._size:X})",
                va,
                length,
            )
        data = self._data()[offset:offset + length]
        if len(data) != length:
            raise ShortReadError(
                f"VA 0x{va:08X}: wanted {length} bytes, "
                f"only {len(data)} available",
                va,
                length,
            )
        return bytes(data)

    def section_bytes(self, name: str) -> Optional[bytes]:
        """Raw file contents of the first section called *name*."""
        for sh in self._sections:
            if sh.name == name:
                if sh.sh_type == SHT_NOBITS:
                    return b""
                return bytes(self._data()[sh.sh_offset:sh.sh_offset + sh.sh_size])
        return None

    # ------------------------------------------------------------------ #
    #  Debug-info presence
    # ------------------------------------------------------------------ #

    def is_debug_info_present(self) -> bool:
        """True iff ``.debug_abbrev``, ``.debug_info`` and ``.debug_str`` exist."""
        return self._debug_info.is_complete

    # ------------------------------------------------------------------ #
    #  Accessors
    # ------------------------------------------------------------------ #

    @property
    def path(self) -> Path:
        return self._path

    @property
    def size(self) -> int:
        return self._size

    @property
    def header(self) -> ElfHeader:
        return self._header

    @property
    def sections(self) -> tuple[SectionHeader, ...]:
        return tuple(self._sections)

    @property
    def program_headers(self) -> tuple[ProgramHeader, ...]:
        return tuple(self._program_headers)

    @property
    def debug_info(self) -> DebugSectionInfo:
        return self._debug_info

    @property
    def section_index(self) -> SectionIndex:
        return self._index

    @property
    def symbol_table(self) -> Optional[SectionHeader]:
        if self._symtab_index is None:
            return None
        return self._sections[self._symtab_index]

    @property
    def string_table(self) -> Optional[SectionHeader]:
        if self._strtab_index is None:
            return None
        return self._sections[self._strtab_index]

    def summary(self) -> dict[str, Any]:
        """Plain-data description of the image (header, debug info, sections)."""
        h = self._header
        return {
            "path": str(self._path),
            "size": self._size,
            "class": describe_class(h),
            "encoding": describe_data_encoding(h),
            "osabi": describe_osabi(h),
            "type": describe_type(h),
            "machine": describe_machine(h),
            "version": h.e_version,
            "entry": h.e_entry,
            "section_header_offset": h.e_shoff,
            "debug_info_present": self.is_debug_info_present(),
            "debug_info": self._debug_info.model_dump(),
            "sections": [
                {
                    "index": sh.index,
                    "name": sh.name,
                    "type": describe_section_type(sh),
                    "address": sh.sh_addr,
                    "offset": sh.sh_offset,
                    "size": sh.sh_size,
                }
                for sh in self._sections
            ],
        }


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def parse(
    path: str | Path,
    *,
    config: Optional[ElfcalConfig] = None,
    logger: Optional[ElfcalLogger] = None,
) -> LoadedElf:
    """Map and parse the ELF image at *path*.

    Raises:
        FileOpenError: The file cannot be opened or mapped, or exceeds
            the configured size limit.
        TruncatedHeaderError: The file is shorter than the ELF header.
        BadMagicError: The identification bytes are not an ELF header.
        InvalidHeaderOffsetsError: A header table lies outside the file.
        InvalidStringTableError: The section-name string table is invalid.
    """
    config = config or ElfcalConfig()
    log = logger or ElfcalLogger("loader")
    file_path = Path(path)

    with log.operation("parse"):
        mapping = _map_file(file_path, config.elf.max_file_size)
        try:
            with log.timed(f"parse {file_path.name}"):
                loaded = _Parser(mapping, file_path, log).run()
        except BaseException:
            mapping.close()
            raise

        if config.elf.warn_on_overlap:
            for first, second in loaded.section_index.overlaps():
                log.warning(
                    "Sections %s and %s overlap at VA 0x%08X",
                    first.name or "?",
                    second.name or "?",
                    second.va_start,
                )

        log.info(
            "Parsed %s: %d sections, debug info %s",
            file_path.name,
            len(loaded.sections),
            "present" if loaded.is_debug_info_present() else "absent",
            path=str(file_path),
        )
    return loaded


def _map_file(path: Path, max_size: int) -> mmap.mmap:
    try:
        with open(path, "rb") as fh:
            size = path.stat().st_size
            if size > max_size:
                raise FileOpenError(
                    f"{path} is {size:,} bytes (limit {max_size:,})"
                )
            if size < ELF32_EHDR_SIZE:
                raise TruncatedHeaderError(
                    f"{path} is {size} bytes, smaller than an ELF header"
                )
            # The mapping keeps its own handle; the file object can close.
            return mmap.mmap(fh.fileno(), 0, access=mmap.ACCESS_READ)
    except OSError as exc:
        raise FileOpenError(f"unable to open {path}: {exc}") from exc
    except ValueError as exc:
        raise FileOpenError(f"unable to map {path}: {exc}") from exc


class _Parser:
    """Single-use parse pass over a mapped ELF image."""

    def __init__(self, data: mmap.mmap, path: Path, logger: ElfcalLogger) -> None:
        self._data = data
        self._size = len(data)
        self._path = path
        self._log = logger
        self._endian = "<"
        self._class = ELFCLASS32

    def run(self) -> LoadedElf:
        header = self._parse_header()
        self._validate_geometry(header)
        raw_sections = self._parse_section_headers(header)
        program_headers = self._parse_program_headers(header)

        names = self._resolve_names(header, raw_sections)
        sections = [
            SectionHeader(index=i, name=names[i], **fields)
            for i, fields in enumerate(raw_sections)
        ]

        shstrndx = self._shstrndx(header, raw_sections)
        symtab_index: Optional[int] = None
        strtab_index: Optional[int] = None
        for sh in sections:
            if sh.sh_type == SHT_SYMTAB and symtab_index is None:
                symtab_index = sh.index
            elif (
                sh.sh_type == SHT_STRTAB
                and sh.index != shstrndx
                and strtab_index is None
            ):
                strtab_index = sh.index

        return LoadedElf(
            self._path,
            self._data,
            header,
            sections,
            program_headers,
            self._locate_debug_sections(sections),
            SectionIndex.from_headers(sections),
            symtab_index=symtab_index,
            strtab_index=strtab_index,
            logger=self._log,
        )

    # ------------------------------------------------------------------ #
    #  ELF header
    # ------------------------------------------------------------------ #

    def _parse_header(self) -> ElfHeader:
        ident = self._data[:16]
        if ident[:4] != ELF_MAGIC:
            raise BadMagicError(f"{self._path} is not an ELF file")

        ei_class, ei_data = ident[4], ident[5]
        if ei_class not in (ELFCLASS32, ELFCLASS64):
            raise BadMagicError(f"{self._path}: unsupported ELF class {ei_class}")
        self._class = ei_class
        self._endian = ">" if ei_data == ELFDATA2MSB else "<"

        header_size = ELF64_EHDR_SIZE if ei_class == ELFCLASS64 else ELF32_EHDR_SIZE
        if self._size < header_size:
            raise TruncatedHeaderError(
                f"{self._path} is {self._size} bytes, "
                f"smaller than a {header_size}-byte ELF header"
            )

        (
            e_type, e_machine, e_version, e_entry,
            e_phoff, e_shoff, e_flags, e_ehsize,
            e_phentsize, e_phnum, e_shentsize, e_shnum,
            e_shstrndx,
        ) = struct.unpack_from(self._endian + _EHDR_FMT[ei_class], self._data, 16)

        return ElfHeader(
            ei_class=ei_class,
            ei_data=ei_data,
            ei_version=ident[6],
            ei_osabi=ident[7],
            e_type=e_type,
            e_machine=e_machine,
            e_version=e_version,
            e_entry=e_entry,
            e_phoff=e_phoff,
            e_shoff=e_shoff,
            e_flags=e_flags,
            e_ehsize=e_ehsize,
            e_phentsize=e_phentsize,
            e_phnum=e_phnum,
            e_shentsize=e_shentsize,
            e_shnum=e_shnum,
            e_shstrndx=e_shstrndx,
        )

    def _stride(self, declared: int, fmt: str) -> int:
        # Entries are never smaller than the structure we unpack.
        return max(declared, struct.calcsize(self._endian + fmt))

    def _validate_geometry(self, h: ElfHeader) -> None:
        ph_stride = self._stride(h.e_phentsize, _PHDR_FMT[self._class])
        sh_stride = self._stride(h.e_shentsize, _SHDR_FMT[self._class])
        ph_end = h.e_phoff + h.e_phnum * ph_stride
        sh_end = h.e_shoff + h.e_shnum * sh_stride
        if ph_end > self._size or sh_end > self._size:
            raise InvalidHeaderOffsetsError(
                f"{self._path}: header tables end at 0x{max(ph_end, sh_end):X}, "
                f"file is 0x{self._size:X} bytes"
            )

    # ------------------------------------------------------------------ #
    #  Section / program headers
    # ------------------------------------------------------------------ #

    def _parse_section_headers(self, h: ElfHeader) -> list[dict[str, int]]:
        fmt = self._endian + _SHDR_FMT[self._class]
        stride = self._stride(h.e_shentsize, _SHDR_FMT[self._class])
        result: list[dict[str, int]] = []
        for i in range(h.e_shnum):
            (
                sh_name, sh_type, sh_flags, sh_addr,
                sh_offset, sh_size, sh_link, sh_info,
                sh_addralign, sh_entsize,
            ) = struct.unpack_from(fmt, self._data, h.e_shoff + i * stride)
            result.append({
                "sh_name": sh_name,
                "sh_type": sh_type,
                "sh_flags": sh_flags,
                "sh_addr": sh_addr,
                "sh_offset": sh_offset,
                "sh_size": sh_size,
                "sh_link": sh_link,
                "sh_info": sh_info,
                "sh_addralign": sh_addralign,
                "sh_entsize": sh_entsize,
            })
        return result

    def _parse_program_headers(self, h: ElfHeader) -> list[ProgramHeader]:
        fmt = self._endian + _PHDR_FMT[self._class]
        stride = self._stride(h.e_phentsize, _PHDR_FMT[self._class])
        result: list[ProgramHeader] = []
        for i in range(h.e_phnum):
            fields = struct.unpack_from(fmt, self._data, h.e_phoff + i * stride)
            if self._class == ELFCLASS64:
                p_type, p_flags, p_offset, p_vaddr, p_paddr, p_filesz, p_memsz, p_align = fields
            else:
                p_type, p_offset, p_vaddr, p_paddr, p_filesz, p_memsz, p_flags, p_align = fields
            result.append(ProgramHeader(
                p_type=p_type,
                p_flags=p_flags,
                p_offset=p_offset,
                p_vaddr=p_vaddr,
                p_paddr=p_paddr,
                p_filesz=p_filesz,
                p_memsz=p_memsz,
                p_align=p_align,
            ))
        return result

    # ------------------------------------------------------------------ #
    #  Section names
    # ------------------------------------------------------------------ #

    @staticmethod
    def _shstrndx(h: ElfHeader, raw_sections: list[dict[str, int]]) -> int:
        if h.e_shstrndx == SHN_XINDEX and raw_sections:
            return raw_sections[0]["sh_link"]
        return h.e_shstrndx

    def _resolve_names(
        self, h: ElfHeader, raw_sections: list[dict[str, int]]
    ) -> list[str]:
        names = [""] * len(raw_sections)
        if not raw_sections:
            return names

        shstrndx = self._shstrndx(h, raw_sections)
        if shstrndx == SHN_UNDEF:
            return names
        if shstrndx >= len(raw_sections):
            raise InvalidStringTableError(
                f"{self._path}: string table index {shstrndx} "
                f"out of range ({len(raw_sections)} sections)"
            )

        strtab = raw_sections[shstrndx]
        start = strtab["sh_offset"]
        end = start + strtab["sh_size"]
        if end > self._size:
            raise InvalidStringTableError(
                f"{self._path}: string table 0x{start:X}+0x{strtab['sh_size']:X} "
                f"exceeds file size 0x{self._size:X}"
            )

        for i, raw in enumerate(raw_sections):
            if raw["sh_type"] == SHT_NULL:
                continue
            names[i] = self._read_cstring(start, end, raw["sh_name"])
        return names

    def _read_cstring(self, start: int, end: int, offset: int) -> str:
        pos = start + offset
        if offset < 0 or pos >= end:
            return ""
        stop = self._data.find(b"\x00", pos, end)
        if stop == -1:
            stop = end
        return self._data[pos:stop].decode("ascii", errors="replace")

    # ------------------------------------------------------------------ #
    #  Debug sections
    # ------------------------------------------------------------------ #

    def _locate_debug_sections(self, sections: list[SectionHeader]) -> DebugSectionInfo:
        found: dict[str, Any] = {}
        for sh in sections:
            if sh.sh_type != SHT_PROGBITS:
                continue
            if sh.name == DEBUG_ABBREV:
                found.update(abbrev_found=True, abbrev_offset=sh.sh_offset,
                             abbrev_length=sh.sh_size)
            elif sh.name == DEBUG_INFO:
                found.update(info_found=True, info_offset=sh.sh_offset,
                             info_length=sh.sh_size)
            elif sh.name == DEBUG_STR:
                found.update(str_found=True, str_offset=sh.sh_offset,
                             str_length=sh.sh_size)
            else:
                continue
            self._log.debug(
                "%s at offset 0x%X, %d bytes", sh.name, sh.sh_offset, sh.sh_size
            )
        return DebugSectionInfo(**found)
