"""
Memory Image Backend
====================

The calibration set reads and writes values through a byte-addressable
store keyed by absolute target address.  Real backends (Intel HEX,
S-record, raw flash dumps) live outside the core and only need to
satisfy :class:`MemoryBackend`.

:class:`TypedAccess` layers the typed ``read_*`` / ``write_*`` accessors
on top of any backend using the value codec.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from elfcal.core import codec
from elfcal.core.models import DataType


@runtime_checkable
class MemoryBackend(Protocol):
    """Byte-addressable read/write target of one calibration image."""

    def contains(self, address: int, length: int) -> bool:
        """True when ``[address, address + length)`` is backed by the image."""
        ...

    def read(self, address: int, length: int) -> bytes:
        """Return exactly *length* bytes or raise a ``SymbolReadError``."""
        ...

    def write(self, address: int, data: bytes) -> None:
        """Store *data* at *address* or raise a ``SymbolReadError``."""
        ...

    def save(self, filename: str | Path) -> None:
        ...


class TypedAccess:
    """Typed accessors over a :class:`MemoryBackend`."""

    def __init__(self, backend: MemoryBackend) -> None:
        self._backend = backend

    def read_value(self, address: int, data_type: DataType) -> codec.Value:
        raw = self._backend.read(address, codec.width(data_type))
        return codec.decode(raw, data_type)

    def write_value(
        self, address: int, value: codec.Value, data_type: DataType
    ) -> None:
        self._backend.write(address, codec.encode(value, data_type))

    def read_bool(self, address: int) -> bool:
        return bool(self.read_value(address, DataType.BOOLEAN))

    def read_uint8(self, address: int) -> int:
        return int(self.read_value(address, DataType.UINT8))

    def read_sint8(self, address: int) -> int:
        return int(self.read_value(address, DataType.SINT8))

    def read_uint16(self, address: int) -> int:
        return int(self.read_value(address, DataType.UINT16))

    def read_sint16(self, address: int) -> int:
        return int(self.read_value(address, DataType.SINT16))

    def read_uint32(self, address: int) -> int:
        return int(self.read_value(address, DataType.UINT32))

    def read_sint32(self, address: int) -> int:
        return int(self.read_value(address, DataType.SINT32))

    def read_float32(self, address: int) -> float:
        return float(self.read_value(address, DataType.FLOAT32))

    def read_float64(self, address: int) -> float:
        return float(self.read_value(address, DataType.FLOAT64))

    def write_bool(self, address: int, value: bool) -> None:
        self.write_value(address, value, DataType.BOOLEAN)

    def write_uint8(self, address: int, value: int) -> None:
        self.write_value(address, value, DataType.UINT8)

    def write_sint8(self, address: int, value: int) -> None:
        self.write_value(address, value, DataType.SINT8)

    def write_uint16(self, address: int, value: int) -> None:
        self.write_value(address, value, DataType.UINT16)

    def write_sint16(self, address: int, value: int) -> None:
        self.write_value(address, value, DataType.SINT16)

    def write_uint32(self, address: int, value: int) -> None:
        self.write_value(address, value, DataType.UINT32)

    def write_sint32(self, address: int, value: int) -> None:
        self.write_value(address, value, DataType.SINT32)

    def write_float32(self, address: int, value: float) -> None:
        self.write_value(address, value, DataType.FLOAT32)

    def write_float64(self, address: int, value: float) -> None:
        self.write_value(address, value, DataType.FLOAT64)
