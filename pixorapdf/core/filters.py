"""Stream filter chains: decoding to raw bytes and re-encoding with Flate."""

from __future__ import annotations

import logging
import zlib
from typing import Any, Callable

from pypdf.filters import ASCII85Decode, ASCIIHexDecode, FlateDecode, LZWDecode, RunLengthDecode

from ..exceptions import EncodingError
from .model import PdfStream

LOGGER = logging.getLogger("pixorapdf.filters")

IMAGE_CODECS = frozenset({"/DCTDecode", "/DCT", "/JPXDecode", "/CCITTFaxDecode", "/CCF", "/JBIG2Decode"})

_DECODERS: dict[str, Callable[..., Any]] = {
    "/FlateDecode": FlateDecode.decode,
    "/Fl": FlateDecode.decode,
    "/ASCIIHexDecode": ASCIIHexDecode.decode,
    "/AHx": ASCIIHexDecode.decode,
    "/ASCII85Decode": ASCII85Decode.decode,
    "/A85": ASCII85Decode.decode,
    "/LZWDecode": LZWDecode.decode,
    "/LZW": LZWDecode.decode,
    "/RunLengthDecode": RunLengthDecode.decode,
    "/RL": RunLengthDecode.decode,
}


def _as_bytes(data: Any) -> bytes:
    if isinstance(data, str):
        return data.encode("latin-1")
    return bytes(data)


def decode_partial(stream: PdfStream) -> tuple[bytes, list[str]]:
    """Undo general-purpose filters up to the first image codec.

    Returns the partially decoded payload together with the filters that
    remain applied (empty, or an image codec such as ``/DCTDecode``).
    """

    data = stream.data
    filters = stream.filters
    parms = stream.decode_parms
    for position, (name, parm) in enumerate(zip(filters, parms)):
        if name in IMAGE_CODECS:
            return data, filters[position:]
        decoder = _DECODERS.get(name)
        if decoder is None:
            raise EncodingError(f"Unsupported stream filter {name}")
        try:
            data = _as_bytes(decoder(data, parm))
        except Exception as exc:  # pypdf raises a variety of errors for damaged data
            raise EncodingError(f"Failed to decode {name} stream: {exc}") from exc
    return data, []


def decode_stream(stream: PdfStream) -> bytes:
    """Return the fully decoded payload of a non-image stream."""

    data, remaining = decode_partial(stream)
    if remaining:
        raise EncodingError(f"Stream is encoded with image codec {remaining[0]}")
    return data


def flate_encode(data: bytes, level: int = 9) -> bytes:
    return zlib.compress(data, level)


def is_recompressible(stream: PdfStream) -> bool:
    """True when the stream is unfiltered or Flate-only without predictors."""

    filters = stream.filters
    if not filters:
        return True
    if any(name not in ("/FlateDecode", "/Fl") for name in filters):
        return False
    return all(parm is None for parm in stream.decode_parms)


def recompress(stream: PdfStream, level: int = 9) -> PdfStream:
    """Re-encode *stream* with a single Flate filter when that shrinks it."""

    if not is_recompressible(stream):
        return stream
    try:
        raw = decode_stream(stream)
    except EncodingError as exc:
        LOGGER.debug("Keeping stream as-is: %s", exc)
        return stream
    encoded = flate_encode(raw, level)
    if len(encoded) >= len(stream.data):
        return stream
    return stream.with_payload(encoded, ["/FlateDecode"])


__all__ = [
    "IMAGE_CODECS",
    "decode_partial",
    "decode_stream",
    "flate_encode",
    "is_recompressible",
    "recompress",
]
