"""Tests for the ELF loader, debug-section locator and symbol byte reader."""

from __future__ import annotations

import struct

import pytest

from shared.config import ElfConfig, ElfcalConfig

from elfcal.core.errors import (
    AddressNotMappedError,
    BadMagicError,
    ElfParseError,
    ErrorCode,
    FileOpenError,
    InvalidHeaderOffsetsError,
    InvalidStringTableError,
    ReadBoundsError,
    ShortReadError,
    TruncatedHeaderError,
)
from elfcal.parsers.elf_loader import (
    describe_class,
    describe_machine,
    describe_osabi,
    describe_type,
    parse,
)

from elfbuild import (
    CAL_DATA,
    ELF32_PHOFF_POS,
    ELF32_SHOFF_POS,
    SHT_NOBITS,
    SHT_STRTAB,
    SHT_SYMTAB,
    Section,
    build_elf,
    calibration_elf,
)


@pytest.fixture
def load(write_file, logger):
    """Write *data* to disk and parse it."""
    opened = []

    def _load(data: bytes, name: str = "image.elf", config=None):
        elf = parse(write_file(name, data), config=config, logger=logger)
        opened.append(elf)
        return elf

    yield _load
    for elf in opened:
        elf.close()


# ---------------------------------------------------------------------------
# Successful parse
# ---------------------------------------------------------------------------

class TestParse:

    def test_section_names_and_count(self, load):
        elf = load(calibration_elf(debug=True))
        assert [s.name for s in elf.sections] == [
            "", ".data", ".debug_abbrev", ".debug_info", ".debug_str", ".shstrtab",
        ]
        assert elf.header.e_shnum == 6

    def test_header_fields(self, load):
        elf = load(calibration_elf())
        h = elf.header
        assert not h.is_64bit
        assert h.byte_order == "<"
        assert h.e_entry == 0x1000
        assert describe_class(h) == "32-bit"
        assert describe_machine(h) == "ARM"
        assert describe_type(h) == "EXEC (Executable file)"
        assert describe_osabi(h) == "UNIX System V"

    def test_debug_sections_located(self, load):
        elf = load(calibration_elf(debug=True))
        info = elf.debug_info
        assert elf.is_debug_info_present()
        assert info.abbrev_found and info.info_found and info.str_found
        assert info.info_length == 11
        assert info.str_length == len(b"main.c\x00")
        debug_str = next(s for s in elf.sections if s.name == ".debug_str")
        assert info.str_offset == debug_str.sh_offset

    def test_debug_info_absent(self, load):
        elf = load(calibration_elf())
        assert not elf.is_debug_info_present()
        assert elf.debug_info.info_length == 0

    def test_nobits_debug_section_is_not_debug_info(self, load):
        data = build_elf([
            Section(".debug_abbrev", b"\x00"),
            Section(".debug_info", sh_type=SHT_NOBITS, size=64),
            Section(".debug_str", b"\x00"),
        ])
        elf = load(data)
        assert not elf.debug_info.info_found
        assert not elf.is_debug_info_present()

    def test_section_bytes(self, load):
        elf = load(calibration_elf(debug=True))
        assert elf.section_bytes(".debug_str") == b"main.c\x00"
        assert elf.section_bytes(".data") == CAL_DATA
        assert elf.section_bytes(".nope") is None

    def test_program_headers(self, load):
        elf = load(calibration_elf())
        (segment,) = elf.program_headers
        assert segment.p_type == 1
        assert segment.p_vaddr == 0x1000
        assert segment.p_offset == 0x200
        assert segment.p_filesz == len(CAL_DATA)

    def test_symbol_and_string_tables(self, load):
        elf = load(build_elf([
            Section(".symtab", bytes(16), sh_type=SHT_SYMTAB),
            Section(".strtab", b"\x00main\x00", sh_type=SHT_STRTAB),
        ]))
        assert elf.symbol_table.name == ".symtab"
        assert elf.string_table.name == ".strtab"

    def test_shstrndx_zero_leaves_sections_unnamed(self, load):
        elf = load(calibration_elf(shstrndx=0))
        assert all(s.name == "" for s in elf.sections)
        assert elf.read_bytes(0x1008, 4) == b"\x01\x00\x00\x00"

    def test_extended_string_table_index(self, load):
        elf = load(calibration_elf(xindex=True))
        assert elf.header.e_shstrndx == 0xFFFF
        assert elf.sections[1].name == ".data"

    def test_big_endian_container(self, load):
        elf = load(calibration_elf(big_endian=True))
        assert elf.header.byte_order == ">"
        assert elf.header.e_machine == 40
        assert elf.sections[1].name == ".data"
        # Values are raw bytes; only the container is big-endian.
        assert elf.read_bytes(0x1008, 4) == b"\x01\x00\x00\x00"

    def test_elf64(self, load):
        elf = load(calibration_elf(elf_class=2, machine=183))
        assert elf.header.is_64bit
        assert describe_machine(elf.header) == "ARM AArch64"
        assert elf.program_headers[0].p_vaddr == 0x1000
        assert elf.read_bytes(0x1000, 4) == struct.pack("<I", 0x11223344)

    def test_summary(self, load):
        summary = load(calibration_elf(debug=True)).summary()
        assert summary["class"] == "32-bit"
        assert summary["debug_info_present"] is True
        assert summary["sections"][1]["name"] == ".data"
        assert summary["sections"][1]["address"] == 0x1000

    def test_context_manager_closes_mapping(self, write_file, logger):
        path = write_file("ctx.elf", calibration_elf())
        with parse(path, logger=logger) as elf:
            assert not elf.closed
            assert elf.read_bytes(0x1000, 1) == b"\x44"
        assert elf.closed
        with pytest.raises(ValueError):
            elf.read_bytes(0x1000, 1)
        elf.close()


# ---------------------------------------------------------------------------
# Parse errors
# ---------------------------------------------------------------------------

class TestParseErrors:

    def test_missing_file(self, tmp_path, logger):
        with pytest.raises(FileOpenError) as info:
            parse(tmp_path / "absent.elf", logger=logger)
        assert info.value.code is ErrorCode.FILE_OPEN

    def test_file_over_size_limit(self, load):
        config = ElfcalConfig(elf=ElfConfig(max_file_size=100))
        with pytest.raises(FileOpenError):
            load(calibration_elf(), config=config)

    def test_file_shorter_than_header(self, load):
        with pytest.raises(TruncatedHeaderError) as info:
            load(b"\x7fELF\x01\x01\x01\x00\x00\x00")
        assert isinstance(info.value, ElfParseError)

    def test_elf64_header_truncated(self, load):
        data = b"\x7fELF\x02\x01\x01\x00" + bytes(52)
        assert len(data) == 60
        with pytest.raises(TruncatedHeaderError):
            load(data)

    def test_bad_magic(self, load):
        with pytest.raises(BadMagicError):
            load(bytes(64))

    def test_unknown_class(self, load):
        with pytest.raises(BadMagicError):
            load(b"\x7fELF\x07\x01\x01\x00" + bytes(56))

    def test_section_table_beyond_file(self, load):
        data = bytearray(calibration_elf())
        struct.pack_into("<I", data, ELF32_SHOFF_POS, len(data) + 0x1000)
        with pytest.raises(InvalidHeaderOffsetsError) as info:
            load(bytes(data))
        assert "InvalidHeaderOffsetsError" in str(info.value)

    def test_program_table_beyond_file_with_no_entries(self, load):
        data = bytearray(calibration_elf(load_segment=None))
        struct.pack_into("<I", data, ELF32_PHOFF_POS, len(data) + 0x1000)
        with pytest.raises(InvalidHeaderOffsetsError):
            load(bytes(data))

    def test_string_table_index_out_of_range(self, load):
        with pytest.raises(InvalidStringTableError):
            load(calibration_elf(shstrndx=42))

    def test_string_table_beyond_file(self, load):
        data = build_elf(
            [Section(".huge", b"\x00" * 8, size=0x100000)],
            shstrndx=1,
        )
        with pytest.raises(InvalidStringTableError):
            load(data)


# ---------------------------------------------------------------------------
# Symbol byte reader
# ---------------------------------------------------------------------------

class TestReadBytes:

    def test_resolves_through_section(self, load):
        elf = load(calibration_elf())
        entry = elf.find_section(0x1008)
        assert entry is not None
        assert entry.to_file_offset(0x1008) == 0x208
        raw = elf.read_bytes(0x1008, 4)
        assert struct.unpack("<I", raw) == (1,)

    def test_reads_exact_length(self, load):
        elf = load(calibration_elf())
        assert elf.read_bytes(0x1000, 16) == CAL_DATA
        assert elf.read_bytes(0x100F, 1) == b"\x01"

    def test_unmapped_address(self, load):
        elf = load(calibration_elf())
        with pytest.raises(AddressNotMappedError) as info:
            elf.read_bytes(0x5000, 4)
        assert info.value.address == 0x5000
        assert info.value.length == 4
        assert info.value.code is ErrorCode.ADDRESS_NOT_MAPPED

    def test_section_end_is_exclusive(self, load):
        elf = load(calibration_elf())
        with pytest.raises(AddressNotMappedError):
            elf.read_bytes(0x1010, 1)

    def test_short_read_at_end_of_file(self, load):
        elf = load(build_elf([Section(".big", b"abcd", addr=0x3000, size=0x10000)]))
        entry = elf.find_section(0x3000)
        va = 0x3000 + (elf.size - entry.file_offset) - 2
        with pytest.raises(ShortReadError):
            elf.read_bytes(va, 4)

    def test_offset_beyond_end_of_file(self, load):
        elf = load(build_elf([Section(".big", b"abcd", addr=0x3000, size=0x10000)]))
        entry = elf.find_section(0x3000)
        va = 0x3000 + (elf.size - entry.file_offset) + 16
        with pytest.raises(ReadBoundsError):
            elf.read_bytes(va, 4)

    def test_offset_at_end_of_file(self, load):
        elf = load(build_elf([Section(".big", b"abcd", addr=0x3000, size=0x10000)]))
        entry = elf.find_section(0x3000)
        va = 0x3000 + (elf.size - entry.file_offset)
        with pytest.raises(ReadBoundsError):
            elf.read_bytes(va, 1)
        assert elf.read_bytes(va, 0) == b""

    def test_negative_length(self, load):
        elf = load(calibration_elf())
        with pytest.raises(ValueError):
            elf.read_bytes(0x1000, -1)
