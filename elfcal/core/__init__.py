"""
elfcal Core Module
===================

Error taxonomy, data models, value codec, section index, symbol tree
and the multi-image calibration set.
"""

from elfcal.core.errors import ElfcalError, ErrorCode
from elfcal.core.models import (
    DataType,
    DebugSectionInfo,
    ElementKind,
    ElfHeader,
    ProgramHeader,
    SectionHeader,
    SectionMapEntry,
    SymbolNode,
)
from elfcal.core.section_index import SectionIndex, build_section_map
from elfcal.core.symbols import SymbolTree
from elfcal.core.calibration import CalibrationBinding, CalibrationSet, LoadedImage

__all__ = [
    "CalibrationBinding",
    "CalibrationSet",
    "DataType",
    "DebugSectionInfo",
    "ElementKind",
    "ElfHeader",
    "ElfcalError",
    "ErrorCode",
    "LoadedImage",
    "ProgramHeader",
    "SectionHeader",
    "SectionIndex",
    "SectionMapEntry",
    "SymbolNode",
    "SymbolTree",
    "build_section_map",
]
