"""Summary information about PDF documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from .core.parser import load_document
from .tools.encryptor import is_pdf_encrypted

LOGGER = logging.getLogger("pixorapdf.info")


@dataclass(frozen=True)
class PageInfo:
    number: int
    width: float
    height: float
    rotation: int


@dataclass(frozen=True)
class PDFInfo:
    """Summary information describing a PDF document."""

    num_pages: int
    version: str
    is_encrypted: bool
    object_count: int
    metadata: Dict[str, str]
    pages: tuple[PageInfo, ...]


def describe_document(data: bytes, *, password: str | None = None) -> PDFInfo:
    """Return :class:`PDFInfo` describing the PDF held in *data*.

    Encrypted files are opened with *password* (or the empty user password).
    """

    encrypted = is_pdf_encrypted(data)
    document = load_document(data, password=password)
    info = PDFInfo(
        num_pages=document.page_count,
        version=document.version,
        is_encrypted=encrypted,
        object_count=len(document.objects),
        metadata=document.metadata.as_dict(),
        pages=tuple(
            PageInfo(number=page.index + 1, width=page.width, height=page.height, rotation=page.rotation)
            for page in document.pages
        ),
    )
    LOGGER.info("PDF info: pages=%s, encrypted=%s, objects=%s", info.num_pages, info.is_encrypted, info.object_count)
    return info


__all__ = ["PDFInfo", "PageInfo", "describe_document"]
