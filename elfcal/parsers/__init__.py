"""ELF image parsing."""

from elfcal.parsers.elf_loader import LoadedElf, parse

__all__ = ["LoadedElf", "parse"]
