"""Compression engine for :mod:`pixorapdf.tools.compressor`."""

from __future__ import annotations

import dataclasses
import logging

from pypdf.generic import DictionaryObject, IndirectObject

from ...config import CompressOptions
from ...core.filters import recompress
from ...core.graph import collect_garbage
from ...core.images import decode_image, encode_jpeg, is_reencodable
from ...core.model import Document, DocumentMetadata, PdfStream
from ...core.parser import load_document
from ...core.writer import write_document
from ...exceptions import EncodingError, EncryptedDocumentError

_LOGGER = logging.getLogger("pixorapdf.compress")

_FONT_PROGRAM_KEYS = ("/FontFile", "/FontFile2", "/FontFile3")


@dataclasses.dataclass(slots=True)
class CompressionStats:
    images_reencoded: int = 0
    streams_recompressed: int = 0
    fonts_recompressed: int = 0
    objects_removed: int = 0
    metadata_removed: bool = False


@dataclasses.dataclass(slots=True)
class CompressionResult:
    """Represents the outcome of a compression run."""

    data: bytes
    original_size: int
    compressed_size: int
    quality: int
    level: str | None
    stats: CompressionStats

    @property
    def bytes_saved(self) -> int:
        return max(self.original_size - self.compressed_size, 0)

    @property
    def compression_ratio(self) -> float:
        if self.original_size == 0:
            return 1.0
        return self.compressed_size / self.original_size


def _referenced_ids(document: Document, dictionary_type: str | None, keys: tuple[str, ...]) -> set[int]:
    found: set[int] = set()
    for _, value in document.objects.items():
        dictionary = value.dictionary if isinstance(value, PdfStream) else value
        if not isinstance(dictionary, DictionaryObject):
            continue
        if dictionary_type is not None and dictionary.get("/Type") != dictionary_type:
            continue
        for key in keys:
            target = dictionary.get(key)
            if isinstance(target, IndirectObject):
                found.add(target.idnum)
    return found


def _reencode_image(document: Document, stream: PdfStream, quality: int) -> PdfStream:
    if not is_reencodable(document, stream):
        return stream
    try:
        image = decode_image(document, stream)
    except EncodingError as exc:
        _LOGGER.debug("Skipping image: %s", exc)
        return stream
    if image.mode not in ("RGB", "L"):
        return stream
    try:
        encoded = encode_jpeg(image, quality)
    except (OSError, ValueError) as exc:
        raise EncodingError(f"Failed to re-encode image at quality {quality}: {exc}") from exc
    if len(encoded) >= len(stream.data):
        return stream
    return stream.with_payload(encoded, ["/DCTDecode"])


def compress_document(
    document: Document,
    options: CompressOptions | None = None,
    *,
    stats: CompressionStats | None = None,
) -> Document:
    """Return a compressed copy of *document*.

    Each strategy can be switched off through *options*: JPEG re-encoding of
    eligible images, metadata removal, font program recompression, Flate
    recompression of other streams and removal of unreachable objects.
    """

    options = options or CompressOptions()
    stats = stats if stats is not None else CompressionStats()
    if document.is_encrypted:
        raise EncryptedDocumentError("Cannot compress an encrypted document")

    arena = document.objects.copy()
    masks = _referenced_ids(document, None, ("/SMask", "/Mask"))
    fonts = _referenced_ids(document, "/FontDescriptor", _FONT_PROGRAM_KEYS)

    for idnum, value in document.objects.items():
        if not isinstance(value, PdfStream):
            continue
        generation = document.objects.generation(idnum)
        if value.get("/Subtype") == "/Image":
            if options.optimize_images and idnum not in masks:
                replaced = _reencode_image(document, value, options.quality)
                if replaced is not value:
                    arena.put(idnum, replaced, generation)
                    stats.images_reencoded += 1
            continue
        if idnum in fonts:
            if not options.compress_fonts:
                continue
        elif not options.recompress_streams:
            continue
        replaced = recompress(value)
        if replaced is not value:
            arena.put(idnum, replaced, generation)
            if idnum in fonts:
                stats.fonts_recompressed += 1
            else:
                stats.streams_recompressed += 1

    metadata = document.metadata
    info_id = document.info_id
    if options.remove_metadata:
        metadata = DocumentMetadata()
        info_id = None
        catalog = document.catalog
        if "/Metadata" in catalog:
            stripped = DictionaryObject({key: item for key, item in catalog.items() if key != "/Metadata"})
            arena.put(document.root_id, stripped, document.objects.generation(document.root_id))
        stats.metadata_removed = True

    result = document.evolve(objects=arena, metadata=metadata, info_id=info_id)
    if options.remove_unused_objects:
        before = len(result.objects)
        result = collect_garbage(result)
        stats.objects_removed = before - len(result.objects)

    _LOGGER.debug(
        "Compression stats: %d image(s), %d stream(s), %d font(s), %d object(s) removed",
        stats.images_reencoded,
        stats.streams_recompressed,
        stats.fonts_recompressed,
        stats.objects_removed,
    )
    return result


def compress_pdf(data: bytes, options: CompressOptions | None = None) -> CompressionResult:
    """Compress PDF bytes and report the size change.

    The document is written with object streams. Whenever the result is larger
    than the input the original bytes are returned unchanged, even if
    metadata removal was requested; ``stats.metadata_removed`` then reports
    ``False``.
    """

    options = options or CompressOptions()
    stats = CompressionStats()
    compressed = write_document(
        compress_document(load_document(data), options, stats=stats), object_streams=True
    )
    if len(compressed) > len(data):
        if stats.metadata_removed:
            _LOGGER.warning("Compression did not reduce size; keeping original bytes and metadata")
            stats.metadata_removed = False
        else:
            _LOGGER.info("Compression did not reduce size; keeping original bytes")
        compressed = data
    _LOGGER.info(
        "Compressed %d bytes to %d bytes (quality %d)", len(data), len(compressed), options.quality
    )
    return CompressionResult(
        data=compressed,
        original_size=len(data),
        compressed_size=len(compressed),
        quality=options.quality,
        level=options.level,
        stats=stats,
    )


__all__ = ["CompressionResult", "CompressionStats", "compress_document", "compress_pdf"]
