"""Render document pages to raster images."""

from __future__ import annotations

import io
import logging

from PIL import Image

from ...config import RasterizeOptions
from ...core.model import ColorMode, Document, RasterImage
from ...core.parser import load_document
from ...exceptions import EncodingError, EncryptedDocumentError, PageRangeError
from .renderer import PageRenderer

LOGGER = logging.getLogger("pixorapdf.rasterize")

MONOCHROME_THRESHOLD = 128
_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG", "webp": "WEBP", "tiff": "TIFF"}


def apply_color_mode(image: Image.Image, mode: ColorMode) -> Image.Image:
    """Identity, luminance greyscale or fixed-threshold black and white."""

    if mode is ColorMode.GRAYSCALE:
        return image.convert("L")
    if mode is ColorMode.MONOCHROME:
        return image.convert("L").point(lambda value: 255 if value >= MONOCHROME_THRESHOLD else 0, mode="1")
    return image.convert("RGB")


def encode_raster(image: Image.Image, fmt: str, *, quality: int = 90, dpi: int = 72) -> bytes:
    """Encode *image* as ``png``, ``jpeg``, ``webp`` or ``tiff`` bytes."""

    buffer = io.BytesIO()
    params: dict[str, object] = {}
    if fmt in ("jpeg", "webp"):
        params["quality"] = quality
        if image.mode == "1":
            image = image.convert("L")
    if fmt != "webp":
        params["dpi"] = (dpi, dpi)
    try:
        image.save(buffer, format=_PIL_FORMATS[fmt], **params)
    except KeyError as exc:
        raise EncodingError(f"No encoder for raster format {fmt!r}") from exc
    except (OSError, ValueError) as exc:
        raise EncodingError(f"Failed to encode {fmt} image: {exc}") from exc
    return buffer.getvalue()


def rasterize_document(document: Document, options: RasterizeOptions | None = None) -> list[RasterImage]:
    """Render the pages of *document*, in page order.

    ``options.pages`` restricts output to the given 1-based page numbers.
    Unsupported drawing operators are skipped; every page still yields an
    image sized ``points * dpi / 72`` on a white background.
    """

    options = options or RasterizeOptions()
    if document.is_encrypted:
        raise EncryptedDocumentError("Cannot rasterize an encrypted document")
    numbers = options.pages or tuple(range(1, document.page_count + 1))
    invalid = [number for number in numbers if number > document.page_count]
    if invalid:
        raise PageRangeError(
            f"Page(s) {', '.join(map(str, invalid))} exceed page count {document.page_count}",
            ranges=invalid,
        )

    renderer = PageRenderer(document, options.dpi)
    images: list[RasterImage] = []
    for number in numbers:
        page = document.page(number - 1)
        pixels = renderer.render(page)
        if page.rotation:
            pixels = pixels.rotate(-page.rotation, expand=True)
        pixels = apply_color_mode(pixels, options.color_mode)
        raster = RasterImage(
            page_index=page.index,
            pixels=pixels,
            color_mode=options.color_mode,
            dpi=options.dpi,
            format=options.format,
        )
        raster.data = encode_raster(pixels, options.format, quality=options.quality, dpi=options.dpi)
        LOGGER.debug("Rendered page %d at %dx%d", number, *pixels.size)
        images.append(raster)

    LOGGER.info("Rasterized %d page(s) at %d DPI as %s", len(images), options.dpi, options.format)
    return images


def rasterize_pdf(data: bytes, options: RasterizeOptions | None = None) -> list[RasterImage]:
    return rasterize_document(load_document(data), options)


__all__ = ["apply_color_mode", "encode_raster", "rasterize_document", "rasterize_pdf", "MONOCHROME_THRESHOLD"]
