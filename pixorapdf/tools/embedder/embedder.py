"""Build PDF documents from raster images, one page per image."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Sequence

from PIL import Image, UnidentifiedImageError
from pypdf.generic import ArrayObject, DictionaryObject, FloatObject, NameObject

from ...config import EmbedOptions
from ...core.graph import PageAssembler
from ...core.images import image_to_xobject
from ...core.model import Document, DocumentMetadata, PdfStream
from ...core.writer import write_document
from ...exceptions import EncodingError, InvalidOptionsError

LOGGER = logging.getLogger("pixorapdf.embed")

TITLE = "Images to PDF"
CREATOR = "PixoraTools Image to PDF Converter"
PRODUCER = "PixoraTools"
DEFAULT_DPI = 72.0


@dataclass(frozen=True, slots=True)
class Placement:
    """Image rectangle on the page, in points from the lower-left corner."""

    x: float
    y: float
    width: float
    height: float


def _image_dpi(image: Image.Image) -> float:
    dpi = image.info.get("dpi")
    try:
        value = float(dpi[0]) if isinstance(dpi, tuple) else float(dpi)
    except (TypeError, ValueError):
        return DEFAULT_DPI
    # PNG stores pixels per metre, so 72 DPI reads back as 72.009
    return float(round(value)) if value >= 1 else DEFAULT_DPI


def natural_size(image: Image.Image) -> tuple[float, float]:
    """Image size in points at the image's own resolution."""

    dpi = _image_dpi(image)
    return image.width * 72.0 / dpi, image.height * 72.0 / dpi


def compute_placement(
    image_size: tuple[float, float],
    page_size: tuple[float, float],
    options: EmbedOptions,
) -> Placement:
    """Centre an image of *image_size* points inside the page minus margins.

    With ``fit_to_page`` the image is scaled to the available box, keeping
    its aspect ratio unless ``preserve_aspect_ratio`` is off; otherwise it
    keeps its natural size.
    """

    page_width, page_height = page_size
    margin = float(options.margin)
    box_width = page_width - 2 * margin
    box_height = page_height - 2 * margin
    if box_width <= 0 or box_height <= 0:
        raise InvalidOptionsError(f"Margin of {margin:g}pt leaves no room on a {page_width:g}x{page_height:g} page")

    width, height = image_size
    if options.fit_to_page:
        if options.preserve_aspect_ratio:
            scale = min(box_width / width, box_height / height)
            width, height = width * scale, height * scale
        else:
            width, height = box_width, box_height
    return Placement(
        x=margin + (box_width - width) / 2,
        y=margin + (box_height - height) / 2,
        width=width,
        height=height,
    )


def _number(value: float) -> str:
    return f"{value:.4f}".rstrip("0").rstrip(".") or "0"


def _open_image(source: bytes | Image.Image, position: int) -> tuple[Image.Image, bytes | None]:
    if isinstance(source, Image.Image):
        return source, None
    try:
        image = Image.open(io.BytesIO(source))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise EncodingError(f"Unable to read image #{position + 1}: {exc}") from exc
    return image, source


def embed_images(images: Sequence[bytes | Image.Image], options: EmbedOptions | None = None) -> Document:
    """Create a document with one page per image, in input order.

    Raises:
        InvalidOptionsError: when no images are given or the margins leave
            no drawable area.
        EncodingError: when an image cannot be decoded.
    """

    options = options or EmbedOptions()
    if not images:
        raise InvalidOptionsError("No images provided")

    page_width, page_height = options.dimensions
    assembler = PageAssembler()
    for position, source in enumerate(images):
        image, raw = _open_image(source, position)
        xobject, smask = image_to_xobject(image, raw)
        if smask is not None:
            xobject.dictionary[NameObject("/SMask")] = assembler.add(smask)
        image_ref = assembler.add(xobject)

        placement = compute_placement(natural_size(image), (page_width, page_height), options)
        content = (
            f"q {_number(placement.width)} 0 0 {_number(placement.height)} "
            f"{_number(placement.x)} {_number(placement.y)} cm /Im0 Do Q"
        ).encode("ascii")
        contents_ref = assembler.add(PdfStream(dictionary=DictionaryObject(), data=content))
        assembler.add_page(
            DictionaryObject(
                {
                    NameObject("/MediaBox"): ArrayObject(
                        [FloatObject(0), FloatObject(0), FloatObject(page_width), FloatObject(page_height)]
                    ),
                    NameObject("/Resources"): DictionaryObject(
                        {NameObject("/XObject"): DictionaryObject({NameObject("/Im0"): image_ref})}
                    ),
                    NameObject("/Contents"): contents_ref,
                }
            )
        )
        LOGGER.debug(
            "Placed %dx%d image #%d at %.1f,%.1f (%.1fx%.1f pt)",
            image.width,
            image.height,
            position + 1,
            placement.x,
            placement.y,
            placement.width,
            placement.height,
        )

    metadata = DocumentMetadata(title=TITLE, creator=CREATOR, producer=PRODUCER)
    document = assembler.build(metadata)
    LOGGER.info("Embedded %d image(s) on %gx%g pt pages", len(images), page_width, page_height)
    return document


def images_to_pdf(images: Sequence[bytes | Image.Image], options: EmbedOptions | None = None) -> bytes:
    return write_document(embed_images(images, options))


__all__ = [
    "Placement",
    "compute_placement",
    "embed_images",
    "images_to_pdf",
    "natural_size",
    "TITLE",
    "CREATOR",
]
