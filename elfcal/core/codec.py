"""
Typed Value Codec
=================

Pure conversions between raw little-endian byte sequences and typed
calibration values.  One :class:`struct.Struct` per data-type tag; the
tag set is closed, so a tag without an entry in :data:`_CODECS` is not
addressable as a single value.

Widths (bytes)::

    bool 1  uint8 1  sint8 1  uint16 2  sint16 2
    uint32 4  sint32 4  float32 4  float64 8  enum 1

Enumerations travel as an 8-bit ordinal; the label list is supplied by
the symbol tree and looked up with :func:`enum_label`.
"""

from __future__ import annotations

import math
import struct
from typing import Optional, Sequence, Union

from elfcal.core.errors import UnsupportedTypeError, ValueEncodeError
from elfcal.core.models import DataType

Value = Union[bool, int, float]

_CODECS: dict[DataType, struct.Struct] = {
    DataType.BOOLEAN: struct.Struct("<B"),
    DataType.UINT8: struct.Struct("<B"),
    DataType.SINT8: struct.Struct("<b"),
    DataType.UINT16: struct.Struct("<H"),
    DataType.SINT16: struct.Struct("<h"),
    DataType.UINT32: struct.Struct("<I"),
    DataType.SINT32: struct.Struct("<i"),
    DataType.FLOAT32: struct.Struct("<f"),
    DataType.FLOAT64: struct.Struct("<d"),
    DataType.ENUM: struct.Struct("<B"),
}

_FLOAT_TYPES = frozenset({DataType.FLOAT32, DataType.FLOAT64})

_TRUE_WORDS = frozenset({"true", "on", "yes"})
_FALSE_WORDS = frozenset({"false", "off", "no"})


def _codec_for(data_type: DataType) -> struct.Struct:
    try:
        return _CODECS[data_type]
    except KeyError:
        raise UnsupportedTypeError(
            f"no codec for data type {data_type.value!r}"
        ) from None


def is_supported(data_type: DataType) -> bool:
    """True when *data_type* can be read and written as a single value."""
    return data_type in _CODECS


def width(data_type: DataType) -> int:
    """Byte width dictated by *data_type*."""
    return _codec_for(data_type).size


# ---------------------------------------------------------------------------
# Decode / encode
# ---------------------------------------------------------------------------

def decode(raw: bytes, data_type: DataType) -> Value:
    """Interpret *raw* as a value of *data_type*.

    Raises:
        UnsupportedTypeError: *data_type* has no codec.
        ValueError: ``len(raw)`` differs from the type's width.
    """
    codec = _codec_for(data_type)
    if len(raw) != codec.size:
        raise ValueError(
            f"{data_type.value} needs {codec.size} bytes, got {len(raw)}"
        )
    (value,) = codec.unpack(raw)
    if data_type is DataType.BOOLEAN:
        return value != 0
    return value


def encode(value: Value, data_type: DataType) -> bytes:
    """Produce the little-endian byte image of *value* for *data_type*.

    Integer tags accept ints, bools and integral floats; float tags
    accept any real number.

    Raises:
        UnsupportedTypeError: *data_type* has no codec.
        ValueEncodeError: *value* is not representable by *data_type*.
    """
    codec = _codec_for(data_type)

    if data_type in _FLOAT_TYPES:
        try:
            return codec.pack(float(value))
        except (OverflowError, struct.error, TypeError, ValueError) as exc:
            raise ValueEncodeError(
                f"{value!r} does not fit {data_type.value}: {exc}"
            ) from exc

    if data_type is DataType.BOOLEAN:
        return codec.pack(1 if value else 0)

    if isinstance(value, float):
        if not value.is_integer():
            raise ValueEncodeError(
                f"{value!r} is not an integer value for {data_type.value}"
            )
        value = int(value)
    if not isinstance(value, int):
        raise ValueEncodeError(
            f"{value!r} is not a number for {data_type.value}"
        )
    try:
        return codec.pack(value)
    except struct.error as exc:
        raise ValueEncodeError(
            f"{value} is out of range for {data_type.value}"
        ) from exc


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def parse_text(
    text: str,
    data_type: DataType,
    labels: Optional[Sequence[str]] = None,
) -> Value:
    """Parse user-entered *text* into a value suitable for :func:`encode`.

    Integers accept decimal or prefixed (``0x``, ``0b``, ``0o``) literals;
    a decimal fraction is truncated toward zero.  Booleans accept
    ``true/false/on/off/yes/no`` or a number.  Enumerations accept an
    ordinal or one of *labels*.
    """
    stripped = text.strip()
    if not stripped:
        raise ValueEncodeError(f"empty value for {data_type.value}")
    _codec_for(data_type)

    if data_type is DataType.BOOLEAN:
        lowered = stripped.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        return _parse_number(stripped, data_type) != 0

    if data_type is DataType.ENUM and labels:
        if stripped in labels:
            return list(labels).index(stripped)

    if data_type in _FLOAT_TYPES:
        try:
            return float(stripped)
        except ValueError as exc:
            raise ValueEncodeError(
                f"{text!r} is not a valid {data_type.value}"
            ) from exc

    return _parse_number(stripped, data_type)


def _parse_number(text: str, data_type: DataType) -> int:
    try:
        return int(text, 0)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError as exc:
        raise ValueEncodeError(
            f"{text!r} is not a valid {data_type.value}"
        ) from exc
    if not math.isfinite(number):
        raise ValueEncodeError(f"{text!r} is not a finite number")
    return math.trunc(number)


def format_value(value: Optional[Value], data_type: DataType) -> str:
    """Render a decoded value for display; ``None`` renders empty."""
    if value is None:
        return ""
    if data_type is DataType.BOOLEAN:
        return "1" if value else "0"
    if data_type in _FLOAT_TYPES:
        return f"{value:g}"
    return str(value)


def enum_label(ordinal: int, labels: Sequence[str]) -> Optional[str]:
    """Label at *ordinal*, or ``None`` when the ordinal has no label."""
    if 0 <= ordinal < len(labels):
        return labels[ordinal]
    return None


def dimension_descriptor(dims: Sequence[int]) -> str:
    """Display form of declared dimensions.

    ``()`` -> ``""``, ``(4,)`` -> ``"4"``, ``(2, 3)`` -> ``"<2 x 3>"``.
    """
    if not dims:
        return ""
    if len(dims) == 1:
        return str(dims[0])
    return "<" + " x ".join(str(d) for d in dims) + ">"
