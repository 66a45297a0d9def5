"""Stamp a text watermark on every page of a document."""

from __future__ import annotations

import logging
import math

from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    FloatObject,
    IndirectObject,
    NameObject,
)

from ...config import WatermarkOptions
from ...core.model import Document, PdfStream
from ...core.parser import load_document
from ...core.writer import write_document
from ...exceptions import EncryptedDocumentError

LOGGER = logging.getLogger("pixorapdf.watermark")

FONT_RESOURCE = "/PxWmF"
STATE_RESOURCE = "/PxWmGS"
EDGE_MARGIN = 36.0
# Helvetica averages a little over half an em per glyph
_CHAR_WIDTH = 0.6


def _escape(text: str) -> bytes:
    raw = text.encode("cp1252", errors="replace")
    return raw.replace(b"\\", b"\\\\").replace(b"(", b"\\(").replace(b")", b"\\)")


def _number(value: float) -> str:
    return f"{value:.4f}".rstrip("0").rstrip(".") or "0"


def text_matrix(
    media_box: tuple[float, float, float, float],
    options: WatermarkOptions,
) -> tuple[float, float, float, float, float, float]:
    """Text matrix placing the watermark at ``options.position``."""

    x0, y0, x1, y1 = media_box
    size = float(options.font_size)
    text_width = _CHAR_WIDTH * size * len(options.text)
    center_x, center_y = (x0 + x1) / 2, (y0 + y1) / 2
    baseline = size / 3

    if options.position == "diagonal":
        cos = sin = math.sqrt(0.5)
        dx, dy = -text_width / 2, -baseline
        return (cos, sin, -sin, cos, center_x + dx * cos - dy * sin, center_y + dx * sin + dy * cos)
    if options.position == "center":
        return (1.0, 0.0, 0.0, 1.0, center_x - text_width / 2, center_y - baseline)

    vertical, horizontal = options.position.split("-")
    x = x0 + EDGE_MARGIN if horizontal == "left" else x1 - EDGE_MARGIN - text_width
    y = y1 - EDGE_MARGIN - size if vertical == "top" else y0 + EDGE_MARGIN
    return (1.0, 0.0, 0.0, 1.0, x, y)


def watermark_content(media_box: tuple[float, float, float, float], options: WatermarkOptions) -> bytes:
    red, green, blue = options.rgb
    matrix = " ".join(_number(value) for value in text_matrix(media_box, options))
    return (
        b"\nQ\nq "
        + STATE_RESOURCE.encode("ascii")
        + b" gs "
        + f"{_number(red)} {_number(green)} {_number(blue)} rg BT ".encode("ascii")
        + FONT_RESOURCE.encode("ascii")
        + f" {_number(float(options.font_size))} Tf {matrix} Tm (".encode("ascii")
        + _escape(options.text)
        + b") Tj ET Q\n"
    )


def _merged_group(document: Document, resources: DictionaryObject, key: str, name: str, value: IndirectObject) -> DictionaryObject:
    existing = document.resolve(resources.get(key))
    group = DictionaryObject(existing.items() if isinstance(existing, DictionaryObject) else ())
    group[NameObject(name)] = value
    return group


def watermark_document(document: Document, options: WatermarkOptions | None = None) -> Document:
    """Return a copy of *document* with ``options.text`` drawn on every page.

    Each page's original content is wrapped in ``q``/``Q`` so its graphics
    state cannot leak into the stamp.
    """

    options = options or WatermarkOptions()
    if document.is_encrypted:
        raise EncryptedDocumentError("Cannot watermark an encrypted document")

    arena = document.objects.copy()
    save_ref = arena.add(PdfStream(dictionary=DictionaryObject(), data=b"q\n"))
    font_ref = arena.add(
        DictionaryObject(
            {
                NameObject("/Type"): NameObject("/Font"),
                NameObject("/Subtype"): NameObject("/Type1"),
                NameObject("/BaseFont"): NameObject("/Helvetica"),
                NameObject("/Encoding"): NameObject("/WinAnsiEncoding"),
            }
        )
    )
    state_ref = arena.add(
        DictionaryObject(
            {
                NameObject("/Type"): NameObject("/ExtGState"),
                NameObject("/ca"): FloatObject(options.opacity),
                NameObject("/CA"): FloatObject(options.opacity),
            }
        )
    )

    for index, page_id in enumerate(document.page_ids):
        page = document.page(index)
        original = document.resolve(document.objects.ref(page_id))
        updated = document.flattened_page(page_id)
        if isinstance(original, DictionaryObject) and "/Parent" in original:
            updated[NameObject("/Parent")] = original.get("/Parent")

        resources = DictionaryObject(page.resources.items())
        resources[NameObject("/Font")] = _merged_group(document, page.resources, "/Font", FONT_RESOURCE, font_ref)
        resources[NameObject("/ExtGState")] = _merged_group(
            document, page.resources, "/ExtGState", STATE_RESOURCE, state_ref
        )
        updated[NameObject("/Resources")] = resources

        contents = document.resolve(updated.get("/Contents"))
        if isinstance(contents, ArrayObject):
            existing = list(contents)
        elif "/Contents" in updated:
            existing = [updated.get("/Contents")]
        else:
            existing = []
        stamp_ref = arena.add(
            PdfStream(dictionary=DictionaryObject(), data=watermark_content(page.media_box, options))
        )
        updated[NameObject("/Contents")] = ArrayObject([save_ref, *existing, stamp_ref])
        arena.put(page_id, updated, document.objects.generation(page_id))

    LOGGER.info("Watermarked %d page(s) with %r", document.page_count, options.text)
    return document.evolve(objects=arena)


def watermark_pdf(data: bytes, options: WatermarkOptions | None = None) -> bytes:
    return write_document(watermark_document(load_document(data), options))


__all__ = ["watermark_document", "watermark_pdf", "watermark_content", "text_matrix", "FONT_RESOURCE", "STATE_RESOURCE"]
