"""Document engine: object model, loader, graph utilities and writer."""

from __future__ import annotations

from .graph import PageAssembler, collect_garbage, dangling_references, mark_reachable
from .model import (
    ColorMode,
    Document,
    DocumentMetadata,
    EncryptionAlgorithm,
    EncryptionState,
    ObjectArena,
    Page,
    PdfStream,
    RasterImage,
)
from .parser import load_document, recover_document, scan_objects
from .writer import write_document

__all__ = [
    "ColorMode",
    "Document",
    "DocumentMetadata",
    "EncryptionAlgorithm",
    "EncryptionState",
    "ObjectArena",
    "Page",
    "PageAssembler",
    "PdfStream",
    "RasterImage",
    "collect_garbage",
    "dangling_references",
    "load_document",
    "mark_reachable",
    "recover_document",
    "scan_objects",
    "write_document",
]
