"""Shared fixtures: synthesized ELF files, symbol trees and quiet loggers."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Callable

import pytest

from shared.config import ElfcalConfig
from shared.logger import ElfcalLogger

from elfcal.core.models import DataType, ElementKind
from elfcal.core.symbols import SymbolTree
from elfcal.images import FlatImage

from elfbuild import CAL_DATA, CAL_VA, calibration_elf


@pytest.fixture
def logger() -> ElfcalLogger:
    return ElfcalLogger("test", console_output=False)


@pytest.fixture
def config() -> ElfcalConfig:
    return ElfcalConfig()


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, bytes], Path]:
    def _write(name: str, data: bytes) -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture
def cal_elf_path(write_file) -> Path:
    return write_file("firmware.elf", calibration_elf(debug=True))


@pytest.fixture
def cal_image() -> Callable[[], FlatImage]:
    """Factory for fresh flat images holding the calibration data."""
    return lambda: FlatImage(CAL_DATA, CAL_VA)


@pytest.fixture
def symbols() -> SimpleNamespace:
    """Symbol tree of one compile unit laid over the calibration data.

    Bound leaves in order: gain, offset, threshold, trim, mode, enabled,
    fine, missing.
    """
    tree = SymbolTree()
    ids = SimpleNamespace(tree=tree)
    ids.cu = tree.add(name=b"src/app/cal_params.c", element=ElementKind.COMPILE_UNIT)
    ids.gain = tree.add(name=b"gain", address=0x1000, data_type=DataType.UINT32,
                        element=ElementKind.VARIABLE, parent=ids.cu)
    ids.volatile = tree.add(name=b"volatile", is_qualifier=True,
                            element=ElementKind.VOLATILE, parent=ids.cu)
    ids.offset = tree.add(name=b"offset", address=0x1004, data_type=DataType.UINT8,
                          element=ElementKind.VARIABLE, parent=ids.volatile)
    ids.threshold = tree.add(name=b"threshold", address=0x1008, dims=(1,),
                             data_type=DataType.UINT32,
                             element=ElementKind.VARIABLE, parent=ids.cu)
    ids.trim = tree.add(name=b"trim", address=0x100C, data_type=DataType.SINT16,
                        element=ElementKind.VARIABLE, parent=ids.cu)
    ids.mode = tree.add(name=b"mode", address=0x100E, data_type=DataType.ENUM,
                        element=ElementKind.VARIABLE, parent=ids.cu)
    ids.mode_typedef = tree.add(name=b"mode_t", element=ElementKind.TYPEDEF,
                                parent=ids.mode)
    ids.mode_enum = tree.add(name=b"", element=ElementKind.ENUMERATION,
                             parent=ids.mode_typedef)
    for label in (b"MODE_OFF", b"MODE_ECO", b"MODE_SPORT"):
        tree.add(name=label, element=ElementKind.ENUMERATOR, parent=ids.mode_enum)
    ids.enabled = tree.add(name=b"enabled", address=0x100F, data_type=DataType.BOOLEAN,
                           element=ElementKind.VARIABLE, parent=ids.cu)
    ids.table = tree.add(name=b"table", address=0x1010, dims=(2, 3),
                         data_type=DataType.UINT8,
                         element=ElementKind.VARIABLE, parent=ids.cu)
    ids.params = tree.add(name=b"params", address=0x1000, data_type=DataType.STRUCT,
                          element=ElementKind.VARIABLE, parent=ids.cu)
    ids.fine = tree.add(name=b"fine", address=0x1004, data_type=DataType.UINT8,
                        element=ElementKind.MEMBER, parent=ids.params)
    ids.missing = tree.add(name=b"missing", address=0x2000, data_type=DataType.UINT32,
                           element=ElementKind.VARIABLE, parent=ids.cu)
    return ids
