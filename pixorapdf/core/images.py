"""Conversions between image XObjects and :mod:`PIL` images."""

from __future__ import annotations

import io
import logging
from typing import Any

from PIL import Image
from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    DictionaryObject,
    NameObject,
    NumberObject,
    TextStringObject,
)

from ..exceptions import EncodingError
from .filters import decode_partial, decode_stream, flate_encode
from .model import Document, PdfStream

__all__ = [
    "colorspace_mode",
    "decode_image",
    "encode_jpeg",
    "image_to_xobject",
    "is_reencodable",
]

LOGGER = logging.getLogger("pixorapdf.images")

_DEVICE_MODES = {
    "/DeviceRGB": "RGB",
    "/RGB": "RGB",
    "/DeviceGray": "L",
    "/G": "L",
    "/CalGray": "L",
    "/CalRGB": "RGB",
    "/DeviceCMYK": "CMYK",
    "/CMYK": "CMYK",
}
_ICC_MODES = {1: "L", 3: "RGB", 4: "CMYK"}


def colorspace_mode(document: Document, colorspace: Any) -> str | None:
    """Map a PDF colour space to a PIL mode, or ``None`` when unsupported."""

    colorspace = document.resolve(colorspace)
    if isinstance(colorspace, NameObject):
        return _DEVICE_MODES.get(str(colorspace))
    if isinstance(colorspace, ArrayObject) and colorspace:
        family = str(document.resolve(colorspace[0]))
        if family in ("/CalRGB", "/CalGray"):
            return _DEVICE_MODES[family]
        if family == "/ICCBased" and len(colorspace) > 1:
            profile = document.resolve(colorspace[1])
            count = document.resolve(profile.get("/N")) if isinstance(profile, PdfStream) else None
            return _ICC_MODES.get(int(count)) if isinstance(count, NumberObject) else None
    return None


def _indexed_palette(document: Document, colorspace: Any) -> tuple[str, bytes] | None:
    colorspace = document.resolve(colorspace)
    if not isinstance(colorspace, ArrayObject) or len(colorspace) != 4:
        return None
    if str(document.resolve(colorspace[0])) not in ("/Indexed", "/I"):
        return None
    base = colorspace_mode(document, colorspace[1])
    lookup = document.resolve(colorspace[3])
    if isinstance(lookup, PdfStream):
        table = decode_stream(lookup)
    elif isinstance(lookup, ByteStringObject):
        table = bytes(lookup)
    elif isinstance(lookup, TextStringObject):
        table = lookup.get_original_bytes()
    else:
        return None
    if base == "L":
        table = b"".join(bytes((value, value, value)) for value in table)
    elif base != "RGB":
        return None
    return "P", table


def decode_image(document: Document, stream: PdfStream) -> Image.Image:
    """Decode an image XObject into a PIL image.

    Raises:
        EncodingError: when the codec or colour space is not supported or
            the payload is damaged.
    """

    data, remaining = decode_partial(stream)
    if remaining:
        codec = remaining[0]
        if codec not in ("/DCTDecode", "/DCT", "/JPXDecode"):
            raise EncodingError(f"Image codec {codec} is not supported")
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (OSError, ValueError) as exc:
            raise EncodingError(f"Unable to decode {codec} image: {exc}") from exc
        return image

    if stream.get("/ImageMask"):
        raise EncodingError("Stencil masks are not decoded")
    width = document.resolve(stream.get("/Width"))
    height = document.resolve(stream.get("/Height"))
    bits = document.resolve(stream.get("/BitsPerComponent")) or 8
    try:
        size = (int(width), int(height))
        bits = int(bits)
    except (TypeError, ValueError) as exc:
        raise EncodingError("Image dimensions are missing") from exc

    colorspace = stream.get("/ColorSpace")
    mode = colorspace_mode(document, colorspace)
    palette = None
    if mode is None:
        indexed = _indexed_palette(document, colorspace)
        if indexed is None:
            raise EncodingError("Unsupported image colour space")
        mode, palette = indexed

    if bits == 1 and mode == "L":
        raw_mode = "1"
    elif bits == 8:
        raw_mode = mode
    else:
        raise EncodingError(f"Unsupported bit depth {bits} for {mode} image")

    try:
        image = Image.frombytes(raw_mode, size, data)
    except ValueError as exc:
        raise EncodingError(f"Image data is truncated: {exc}") from exc
    if palette is not None:
        image.putpalette(palette)
    return image


def is_reencodable(document: Document, stream: PdfStream) -> bool:
    """True for 8-bit RGB or greyscale images a JPEG can stand in for."""

    if stream.get("/Subtype") != "/Image":
        return False
    if any(key in stream.dictionary for key in ("/ImageMask", "/Decode", "/Mask", "/SMaskInData")):
        return False
    if document.resolve(stream.get("/BitsPerComponent")) not in (8, None):
        return False
    if colorspace_mode(document, stream.get("/ColorSpace")) not in ("RGB", "L"):
        return False
    filters = stream.filters
    return all(name not in ("/JPXDecode", "/CCITTFaxDecode", "/CCF", "/JBIG2Decode") for name in filters)


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def _mask_stream(alpha: Image.Image) -> PdfStream:
    return PdfStream(
        dictionary=DictionaryObject(
            {
                NameObject("/Type"): NameObject("/XObject"),
                NameObject("/Subtype"): NameObject("/Image"),
                NameObject("/Width"): NumberObject(alpha.width),
                NameObject("/Height"): NumberObject(alpha.height),
                NameObject("/ColorSpace"): NameObject("/DeviceGray"),
                NameObject("/BitsPerComponent"): NumberObject(8),
                NameObject("/Filter"): NameObject("/FlateDecode"),
            }
        ),
        data=flate_encode(alpha.tobytes()),
    )


def image_to_xobject(image: Image.Image, source: bytes | None = None) -> tuple[PdfStream, PdfStream | None]:
    """Build an image XObject (and optional soft mask) for *image*.

    Baseline JPEG sources in RGB or greyscale are embedded untouched through
    ``/DCTDecode``; everything else is stored losslessly with Flate and any
    alpha channel is split into a separate ``/SMask`` image.
    """

    def dictionary(colorspace: str, filter_name: str) -> DictionaryObject:
        return DictionaryObject(
            {
                NameObject("/Type"): NameObject("/XObject"),
                NameObject("/Subtype"): NameObject("/Image"),
                NameObject("/Width"): NumberObject(image.width),
                NameObject("/Height"): NumberObject(image.height),
                NameObject("/ColorSpace"): NameObject(colorspace),
                NameObject("/BitsPerComponent"): NumberObject(8),
                NameObject("/Filter"): NameObject(filter_name),
            }
        )

    if source is not None and image.format == "JPEG" and image.mode in ("RGB", "L"):
        colorspace = "/DeviceRGB" if image.mode == "RGB" else "/DeviceGray"
        return PdfStream(dictionary=dictionary(colorspace, "/DCTDecode"), data=source), None

    mask = None
    has_alpha = image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info)
    if has_alpha:
        rgba = image.convert("RGBA")
        alpha = rgba.getchannel("A")
        if alpha.getextrema() != (255, 255):
            mask = _mask_stream(alpha)
        image = rgba.convert("RGB")
    elif image.mode in ("1", "L", "I;16", "I", "F"):
        image = image.convert("L")
    elif image.mode != "RGB":
        image = image.convert("RGB")

    colorspace = "/DeviceRGB" if image.mode == "RGB" else "/DeviceGray"
    stream = PdfStream(dictionary=dictionary(colorspace, "/FlateDecode"), data=flate_encode(image.tobytes()))
    LOGGER.debug("Encoded %sx%s %s image (mask=%s)", image.width, image.height, image.mode, mask is not None)
    return stream, mask
