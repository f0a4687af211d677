"""
Section Index
=============

Sorted table of ``[va_start, va_end) -> file_offset`` ranges derived from
an ELF section header table, with O(log n) point lookup.

Ranges are assumed non-overlapping; the index does not reject overlaps
but can report them via :meth:`SectionIndex.overlaps`.
"""

from __future__ import annotations

import bisect
from typing import Iterable, Iterator, Optional, Sequence

from elfcal.core.models import SectionHeader, SectionMapEntry


def build_section_map(headers: Iterable[SectionHeader]) -> list[SectionMapEntry]:
    """Map every non-empty section to a range and sort by start address."""
    entries = [
        SectionMapEntry(
            va_start=sh.sh_addr,
            va_end=sh.sh_addr + sh.sh_size,
            file_offset=sh.sh_offset,
            name=sh.name,
        )
        for sh in headers
        if sh.sh_size != 0
    ]
    entries.sort(key=lambda e: e.va_start)
    return entries


class SectionIndex:
    """Point-lookup index over a sorted section map.

    Usage::

        index = SectionIndex.from_headers(section_headers)
        entry = index.find(0x1008)
        if entry is not None:
            offset = entry.to_file_offset(0x1008)
    """

    def __init__(self, entries: Sequence[SectionMapEntry]) -> None:
        self._entries: list[SectionMapEntry] = sorted(
            entries, key=lambda e: e.va_start
        )
        self._starts: list[int] = [e.va_start for e in self._entries]

    @classmethod
    def from_headers(cls, headers: Iterable[SectionHeader]) -> SectionIndex:
        return cls(build_section_map(headers))

    def find(self, va: int) -> Optional[SectionMapEntry]:
        """Return the entry whose range contains *va*, or ``None``.

        An address outside every range is an expected outcome, not an
        error.
        """
        idx = bisect.bisect_right(self._starts, va) - 1
        if idx < 0:
            return None
        entry = self._entries[idx]
        if va < entry.va_end:
            return entry
        return None

    def overlaps(self) -> list[tuple[SectionMapEntry, SectionMapEntry]]:
        """Return adjacent entry pairs whose ranges intersect."""
        return [
            (a, b)
            for a, b in zip(self._entries, self._entries[1:])
            if b.va_start < a.va_end
        ]

    @property
    def entries(self) -> tuple[SectionMapEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SectionMapEntry]:
        return iter(self._entries)
