"""Custom exceptions raised by :mod:`pixorapdf`.

Every error carries a default message so callers can surface ``str(exc)``
directly as the human-readable failure reason.
"""

from __future__ import annotations

from typing import Iterable


class PixoraPDFError(Exception):
    """Base exception for all errors raised by :mod:`pixorapdf`."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown PDF processing error occurred."


class CorruptDocumentError(PixoraPDFError):
    """Raised when a PDF cannot be parsed, even after a recovery scan."""

    @property
    def default_message(self) -> str:
        return "Invalid or corrupted PDF file."


class PageRangeError(PixoraPDFError):
    """Raised when a page range is malformed or out of bounds."""

    def __init__(self, message: str = "", *, ranges: Iterable[object] = ()) -> None:
        self.ranges = list(ranges)
        super().__init__(message)

    @property
    def default_message(self) -> str:
        return f"Invalid page ranges: {self.ranges!r}"


class WeakPasswordError(PixoraPDFError):
    """Raised when encryption is requested without any usable password."""

    @property
    def default_message(self) -> str:
        return "Please provide at least one password (user or owner)."


class UnsupportedFormatError(PixoraPDFError):
    """Raised when an output raster or compression format is not implemented."""

    @property
    def default_message(self) -> str:
        return "Requested format is not supported."


class EncodingError(PixoraPDFError):
    """Raised when a stream or image cannot be re-encoded."""

    @property
    def default_message(self) -> str:
        return "Failed to encode stream data."


class EncryptedDocumentError(PixoraPDFError):
    """Raised when an encrypted document cannot be opened or transformed."""

    @property
    def default_message(self) -> str:
        return "PDF is encrypted and cannot be processed without a password."


class InvalidOptionsError(PixoraPDFError, ValueError):
    """Raised when an option record is rejected at the boundary."""

    @property
    def default_message(self) -> str:
        return "Invalid options for the requested operation."


__all__ = [
    "PixoraPDFError",
    "CorruptDocumentError",
    "PageRangeError",
    "WeakPasswordError",
    "UnsupportedFormatError",
    "EncodingError",
    "EncryptedDocumentError",
    "InvalidOptionsError",
]
