"""In-memory PDF toolkit exposing merge, split, compression, security and conversion tools."""

from __future__ import annotations

from typing import Any, Sequence

from . import config, exceptions
from .batch import OperationFailure, OperationResult, OperationSuccess, run_batch, run_operation
from .config import (
    COMPRESSION_PRESETS,
    CompressOptions,
    EmbedOptions,
    MergeOptions,
    PageRange,
    ProtectOptions,
    RasterizeOptions,
    Settings,
    SplitOptions,
    UnprotectOptions,
    WatermarkOptions,
    options_from_mapping,
)
from .core import ColorMode, Document, DocumentMetadata, EncryptionAlgorithm, load_document, write_document
from .exceptions import (
    CorruptDocumentError,
    EncodingError,
    EncryptedDocumentError,
    InvalidOptionsError,
    PageRangeError,
    PixoraPDFError,
    UnsupportedFormatError,
    WeakPasswordError,
)
from .info import PageInfo, PDFInfo, describe_document
from .tools import load_builtin_plugins
from .tools.common.interfaces import InputFile, OutputEntry, ToolContext
from .tools.common.pipeline import ToolRegistry, register_tool, registry
from .tools.compressor import CompressionResult, compress_pdf
from .tools.embedder import images_to_pdf
from .tools.encryptor import is_pdf_encrypted, protect_pdf, unprotect_pdf
from .tools.merger import merge_pdfs
from .tools.rasterizer import rasterize_pdf
from .tools.splitter import split_pdf
from .tools.watermark import watermark_pdf

__version__ = "1.0.0"

load_builtin_plugins()

__all__ = [
    "__version__",
    "config",
    "exceptions",
    "merge_pdfs",
    "split_pdf",
    "compress_pdf",
    "protect_pdf",
    "unprotect_pdf",
    "is_pdf_encrypted",
    "watermark_pdf",
    "rasterize_pdf",
    "images_to_pdf",
    "describe_document",
    "load_document",
    "write_document",
    "run_batch",
    "run_operation",
    "run_tool",
    "OperationSuccess",
    "OperationFailure",
    "OperationResult",
    "ColorMode",
    "Document",
    "DocumentMetadata",
    "EncryptionAlgorithm",
    "CompressionResult",
    "PDFInfo",
    "PageInfo",
    "PageRange",
    "MergeOptions",
    "SplitOptions",
    "CompressOptions",
    "COMPRESSION_PRESETS",
    "ProtectOptions",
    "UnprotectOptions",
    "WatermarkOptions",
    "RasterizeOptions",
    "EmbedOptions",
    "Settings",
    "options_from_mapping",
    "InputFile",
    "OutputEntry",
    "ToolContext",
    "ToolRegistry",
    "registry",
    "register_tool",
    "PixoraPDFError",
    "CorruptDocumentError",
    "PageRangeError",
    "WeakPasswordError",
    "UnsupportedFormatError",
    "EncodingError",
    "EncryptedDocumentError",
    "InvalidOptionsError",
]


def run_tool(name: str, inputs: Sequence[tuple[str, bytes]], options: Any = None) -> list[OutputEntry]:
    """Convenience wrapper creating and running one registered tool directly."""

    context = ToolContext(
        inputs=[InputFile(name=item_name, data=data) for item_name, data in inputs],
        options=options_from_mapping(name, options) if options is None or isinstance(options, dict) else options,
    )
    tool = registry.create(name, context)
    return tool.run()
