"""
elfcal Error Taxonomy
======================

Every failure the core can report carries an :class:`ErrorCode`.
Structural parse errors abort the whole parse; symbol read errors are
local to one symbol and are absorbed by batch reads; calibration errors
surface synchronously to the caller of a write.
"""

from __future__ import annotations

import enum


class ErrorCode(str, enum.Enum):
    """Discrete error codes shared by every exception in this module."""

    FILE_OPEN = "FileOpenError"
    TRUNCATED_HEADER = "TruncatedHeaderError"
    BAD_MAGIC = "BadMagicError"
    INVALID_HEADER_OFFSETS = "InvalidHeaderOffsetsError"
    INVALID_STRING_TABLE = "InvalidStringTableError"
    ADDRESS_NOT_MAPPED = "AddressNotMappedError"
    READ_BOUNDS = "ReadBoundsError"
    SHORT_READ = "ShortReadError"
    INVALID_IMAGE_INDEX = "InvalidImageIndexError"
    INVALID_SYMBOL_INDEX = "InvalidSymbolIndexError"
    VALUE_ENCODE = "ValueEncodeError"
    UNSUPPORTED_TYPE = "UnsupportedTypeError"


class ElfcalError(Exception):
    """Base class for all elfcal errors."""

    code: ErrorCode

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


# ---------------------------------------------------------------------------
# ELF parse errors
# ---------------------------------------------------------------------------

class ElfParseError(ElfcalError):
    """Raised when an ELF image cannot be parsed; no LoadedElf is produced."""


class FileOpenError(ElfParseError):
    code = ErrorCode.FILE_OPEN


class TruncatedHeaderError(ElfParseError):
    code = ErrorCode.TRUNCATED_HEADER


class BadMagicError(ElfParseError):
    code = ErrorCode.BAD_MAGIC


class InvalidHeaderOffsetsError(ElfParseError):
    code = ErrorCode.INVALID_HEADER_OFFSETS


class InvalidStringTableError(ElfParseError):
    code = ErrorCode.INVALID_STRING_TABLE


# ---------------------------------------------------------------------------
# Symbol read errors
# ---------------------------------------------------------------------------

class SymbolReadError(ElfcalError):
    """A single symbol could not be read; never fatal for a batch."""

    def __init__(self, message: str, address: int, length: int) -> None:
        super().__init__(message)
        self.address = address
        self.length = length


class AddressNotMappedError(SymbolReadError):
    code = ErrorCode.ADDRESS_NOT_MAPPED


class ReadBoundsError(SymbolReadError):
    code = ErrorCode.READ_BOUNDS


class ShortReadError(SymbolReadError):
    code = ErrorCode.SHORT_READ


# ---------------------------------------------------------------------------
# Calibration / codec errors
# ---------------------------------------------------------------------------

class CalibrationError(ElfcalError):
    """Raised by the calibration set for invalid addressing or values."""


class InvalidImageIndexError(CalibrationError):
    code = ErrorCode.INVALID_IMAGE_INDEX


class InvalidSymbolIndexError(CalibrationError):
    code = ErrorCode.INVALID_SYMBOL_INDEX


class ValueEncodeError(CalibrationError):
    code = ErrorCode.VALUE_ENCODE


class UnsupportedTypeError(ElfcalError):
    code = ErrorCode.UNSUPPORTED_TYPE
