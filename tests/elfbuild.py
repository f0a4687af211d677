"""Synthesize small ELF images in memory for the test suite."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_NOBITS = 8

PT_LOAD = 1

_LAYOUT = {
    # class: (ehdr fmt, ehsize, shdr fmt, shentsize, phdr fmt, phentsize)
    1: ("HHIIIIIHHHHHH", 52, "IIIIIIIIII", 40, "IIIIIIII", 32),
    2: ("HHIQQQIHHHHHH", 64, "IIQQQQIIQQ", 64, "IIQQQQQQ", 56),
}

# Offsets of e_phoff and e_shoff inside the ELF32 header.
ELF32_PHOFF_POS = 28
ELF32_SHOFF_POS = 32


@dataclass
class Section:
    name: str
    data: bytes = b""
    addr: int = 0
    sh_type: int = SHT_PROGBITS
    offset: Optional[int] = None
    size: Optional[int] = None


def build_elf(
    sections: list[Section],
    *,
    elf_class: int = 1,
    big_endian: bool = False,
    shstrndx: Optional[int] = None,
    xindex: bool = False,
    load_segment: Optional[tuple[int, int, int]] = None,
    machine: int = 40,
) -> bytes:
    """Lay out header, section data, ``.shstrtab`` and section headers.

    *load_segment* is ``(offset, vaddr, size)`` of a single PT_LOAD
    program header.  *shstrndx* overrides the string table index;
    *xindex* stores it in section 0's ``sh_link`` behind SHN_XINDEX.
    """
    e = ">" if big_endian else "<"
    ehdr_fmt, ehsize, shdr_fmt, shentsize, phdr_fmt, phentsize = _LAYOUT[elf_class]

    names = bytearray(b"\x00")
    name_offsets = []
    for sec in sections:
        name_offsets.append(len(names))
        names += sec.name.encode() + b"\x00"
    shstrtab_name = len(names)
    names += b".shstrtab\x00"

    body = bytearray(ehsize)
    phoff = 0
    phnum = 0
    if load_segment is not None:
        phoff = len(body)
        phnum = 1
        body += bytes(phentsize)

    offsets = []
    for sec in sections:
        if sec.offset is None:
            while len(body) % 4:
                body.append(0)
            off = len(body)
        else:
            off = sec.offset
        end = off + len(sec.data)
        if len(body) < end:
            body.extend(bytes(end - len(body)))
        body[off:end] = sec.data
        offsets.append(off)

    shstrtab_off = len(body)
    body += names
    while len(body) % 4:
        body.append(0)
    shoff = len(body)

    shnum = len(sections) + 2
    real_shstrndx = shnum - 1 if shstrndx is None else shstrndx

    headers = bytearray()
    null_link = real_shstrndx if xindex else 0
    headers += struct.pack(e + shdr_fmt, 0, 0, 0, 0, 0, 0, null_link, 0, 0, 0)
    for sec, name_off, off in zip(sections, name_offsets, offsets):
        size = sec.size if sec.size is not None else len(sec.data)
        headers += struct.pack(
            e + shdr_fmt, name_off, sec.sh_type, 0, sec.addr, off, size, 0, 0, 4, 0
        )
    headers += struct.pack(
        e + shdr_fmt, shstrtab_name, SHT_STRTAB, 0, 0,
        shstrtab_off, len(names), 0, 0, 1, 0,
    )
    body += headers

    if load_segment is not None:
        p_offset, p_vaddr, p_size = load_segment
        if elf_class == 2:
            phdr = struct.pack(e + phdr_fmt, PT_LOAD, 6, p_offset, p_vaddr,
                               p_vaddr, p_size, p_size, 4)
        else:
            phdr = struct.pack(e + phdr_fmt, PT_LOAD, p_offset, p_vaddr,
                               p_vaddr, p_size, p_size, 6, 4)
        body[phoff:phoff + phentsize] = phdr

    ident = b"\x7fELF" + bytes([elf_class, 2 if big_endian else 1, 1, 0]) + bytes(8)
    ehdr = ident + struct.pack(
        e + ehdr_fmt,
        2,              # ET_EXEC
        machine,
        1,
        0x1000,         # entry
        phoff,
        shoff,
        0,
        ehsize,
        phentsize,
        phnum,
        shentsize,
        shnum,
        0xFFFF if xindex else real_shstrndx,
    )
    body[:ehsize] = ehdr
    return bytes(body)


# The calibration data section used throughout the tests: 16 bytes at
# VA 0x1000, file offset 0x200.
#   0x1000 uint32 0x11223344
#   0x1004 uint8  0x55
#   0x1008 uint32 1
#   0x100C sint16 -1
#   0x100E enum   2
#   0x100F bool   1
CAL_DATA = struct.pack("<IIIhBB", 0x11223344, 0x55, 1, -1, 2, 1)
CAL_VA = 0x1000
CAL_OFFSET = 0x200

DEBUG_SECTIONS = [
    Section(".debug_abbrev", b"\x01\x11\x01\x00\x00"),
    Section(".debug_info", b"\x0b\x00\x00\x00\x02\x00\x00\x00\x00\x00\x04"),
    Section(".debug_str", b"main.c\x00"),
]


def calibration_elf(*, debug: bool = False, **kwargs) -> bytes:
    sections = [Section(".data", CAL_DATA, addr=CAL_VA, offset=CAL_OFFSET)]
    if debug:
        sections += DEBUG_SECTIONS
    kwargs.setdefault("load_segment", (CAL_OFFSET, CAL_VA, len(CAL_DATA)))
    return build_elf(sections, **kwargs)
