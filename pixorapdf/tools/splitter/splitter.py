"""Split functionality for :mod:`pixorapdf.tools.splitter`."""

from __future__ import annotations

import logging
from typing import Sequence

from ...config import PageRange, SplitOptions
from ...core.graph import PageAssembler
from ...core.model import Document, DocumentMetadata
from ...core.parser import load_document
from ...core.writer import write_document
from ...exceptions import EncryptedDocumentError
from .utils import equal_part_ranges, single_page_ranges, validate_ranges

LOGGER = logging.getLogger("pixorapdf.split")

CREATOR = "PixoraTools PDF Splitter"
PRODUCER = "PixoraTools"


def split_document(
    document: Document,
    ranges: Sequence[PageRange],
    *,
    title: str | None = None,
) -> list[Document]:
    """Produce one document per range, each holding only its own closure.

    Ranges are inclusive and 1-indexed and may overlap.

    Raises:
        PageRangeError: if any range falls outside the document.
    """

    if document.is_encrypted:
        raise EncryptedDocumentError("Cannot split an encrypted document")
    validated = validate_ranges(ranges, total_pages=document.page_count)
    base_title = title or document.metadata.title or "Document"

    parts: list[Document] = []
    for page_range in validated:
        assembler = PageAssembler()
        assembler.add_pages(document, list(page_range.indices()))
        metadata = DocumentMetadata(
            title=f"{base_title} - Pages {page_range.start}-{page_range.end}",
            author=document.metadata.author,
            creator=CREATOR,
            producer=PRODUCER,
        )
        part = assembler.build(metadata, version=document.version)
        LOGGER.debug("Split pages %s into %d object(s)", page_range, len(part.objects))
        parts.append(part)
    LOGGER.info("Split %d page(s) into %d document(s)", document.page_count, len(parts))
    return parts


def plan_ranges(document: Document, options: SplitOptions) -> list[PageRange]:
    """Translate split options into concrete ranges for *document*."""

    if options.mode == "equal":
        return equal_part_ranges(document.page_count, options.parts)
    if options.mode == "pages":
        pages = [number for page_range in options.ranges for number in range(page_range.start, page_range.end + 1)]
        return single_page_ranges(document.page_count, pages)
    return list(options.ranges)


def split_pdf(data: bytes, options: SplitOptions, *, title: str | None = None) -> list[tuple[PageRange, bytes]]:
    """Split PDF bytes according to *options*; returns ``(range, bytes)`` pairs."""

    document = load_document(data)
    ranges = plan_ranges(document, options)
    parts = split_document(document, ranges, title=title)
    return [(page_range, write_document(part)) for page_range, part in zip(ranges, parts)]


__all__ = ["split_document", "split_pdf", "plan_ranges", "CREATOR", "PRODUCER"]
