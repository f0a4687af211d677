"""
Flat Binary Image
=================

Contiguous raw flash image (``.bin``) mapped at a base address.  The
whole image is held in a :class:`bytearray`; :meth:`FlatImage.save`
writes it back out unchanged apart from the calibrated bytes.
"""

from __future__ import annotations

from pathlib import Path

from elfcal.core.errors import AddressNotMappedError, ReadBoundsError


class FlatImage:
    """In-memory flat image implementing :class:`MemoryBackend`.

    Usage::

        image = FlatImage.from_file("cal_a.bin", base_address=0x1000)
        raw = image.read(0x1008, 4)
        image.write(0x1008, b"\\x02\\x00\\x00\\x00")
        image.save("cal_a_tuned.bin")
    """

    def __init__(self, data: bytes | bytearray, base_address: int = 0) -> None:
        if base_address < 0:
            raise ValueError(f"negative base address {base_address}")
        self._data = bytearray(data)
        self._base = base_address

    @classmethod
    def from_file(cls, path: str | Path, base_address: int = 0) -> FlatImage:
        return cls(Path(path).read_bytes(), base_address)

    @classmethod
    def blank(cls, size: int, base_address: int = 0, fill: int = 0xFF) -> FlatImage:
        """Image of *size* bytes filled with *fill* (erased flash is 0xFF)."""
        return cls(bytes([fill]) * size, base_address)

    @property
    def base_address(self) -> int:
        return self._base

    @property
    def end_address(self) -> int:
        return self._base + len(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def contains(self, address: int, length: int) -> bool:
        return self._base <= address and address + length <= self.end_address

    def _check(self, address: int, length: int) -> int:
        if not self._base <= address < self.end_address:
            raise AddressNotMappedError(
                f"address 0x{address:08X} outside image "
                f"[0x{self._base:08X}, 0x{self.end_address:08X})",
                address,
                length,
            )
        if address + length > self.end_address:
            raise ReadBoundsError(
                f"{length} bytes at 0x{address:08X} run past end of image "
                f"(0x{self.end_address:08X})",
                address,
                length,
            )
        return address - self._base

    def read(self, address: int, length: int) -> bytes:
        offset = self._check(address, length)
        return bytes(self._data[offset:offset + length])

    def write(self, address: int, data: bytes) -> None:
        offset = self._check(address, len(data))
        self._data[offset:offset + len(data)] = data

    def save(self, filename: str | Path) -> None:
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(bytes(self._data))

    def to_bytes(self) -> bytes:
        return bytes(self._data)
