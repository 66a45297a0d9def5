"""PDF compression utilities."""

from __future__ import annotations

from ...config import COMPRESSION_PRESETS, CompressOptions
from .compressor import CompressionResult, CompressionStats, compress_document, compress_pdf

__all__ = [
    "COMPRESSION_PRESETS",
    "CompressOptions",
    "CompressionResult",
    "CompressionStats",
    "compress_document",
    "compress_pdf",
]
