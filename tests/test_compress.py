from __future__ import annotations

import io

import pytest
from PIL import Image
from pypdf import PdfReader
from pypdf.generic import DictionaryObject, NameObject

from pixorapdf.config import COMPRESSION_PRESETS, CompressOptions, EmbedOptions, ProtectOptions
from pixorapdf.core.parser import load_document
from pixorapdf.core.writer import write_document
from pixorapdf.exceptions import EncryptedDocumentError, InvalidOptionsError, UnsupportedFormatError
from pixorapdf.tools.compressor import CompressionStats, compress_document, compress_pdf
from pixorapdf.tools.embedder import images_to_pdf
from pixorapdf.tools.encryptor import protect_pdf


@pytest.fixture()
def photo_pdf() -> bytes:
    noise = [Image.effect_noise((160, 120), 40 + 10 * channel) for channel in range(3)]
    buffer = io.BytesIO()
    Image.merge("RGB", noise).save(buffer, format="PNG")
    return images_to_pdf([buffer.getvalue()], EmbedOptions())


def _image_stream(document):
    return next(
        value for _, value in document.objects.items()
        if hasattr(value, "dictionary") and value.get("/Subtype") == "/Image"
    )


def _minimal_pdf_with_title() -> bytes:
    bodies = [
        b"<</Type/Catalog/Pages 2 0 R>>",
        b"<</Type/Pages/Kids[3 0 R]/Count 1>>",
        b"<</Type/Page/Parent 2 0 R/MediaBox[0 0 10 10]>>",
        b"<</Title(A)>>",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(bodies, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref = len(out)
    out += b"xref\n0 5\n0000000000 65535 f \n"
    out += b"".join(b"%010d 00000 n \n" % offset for offset in offsets)
    out += b"trailer\n<</Size 5/Root 1 0 R/Info 4 0 R>>\nstartxref\n%d\n%%%%EOF\n" % xref
    return bytes(out)


def test_compress_recompresses_plain_content(pdf_factory) -> None:
    source = pdf_factory(3, content=b"0 0 m 150 150 l S\n" * 300)

    result = compress_pdf(source)

    assert result.compressed_size < result.original_size
    assert result.stats.streams_recompressed == 3
    assert len(PdfReader(io.BytesIO(result.data)).pages) == 3
    assert load_document(result.data).page_content(0) == load_document(source).page_content(0)


def test_compress_never_grows_the_file(sample_pdf: bytes) -> None:
    result = compress_pdf(sample_pdf, CompressOptions(remove_unused_objects=False))

    assert result.compressed_size <= result.original_size
    assert result.compression_ratio <= 1.0


def test_compress_reencodes_images(photo_pdf: bytes) -> None:
    result = compress_pdf(photo_pdf, CompressOptions(quality=50))

    assert result.stats.images_reencoded == 1
    assert result.compressed_size < result.original_size
    assert _image_stream(load_document(result.data)).filters == ["/DCTDecode"]


def test_higher_compression_levels_are_not_larger(photo_pdf: bytes) -> None:
    sizes = [compress_pdf(photo_pdf, COMPRESSION_PRESETS[level]).compressed_size for level in ("low", "medium", "high", "extreme")]

    assert sizes == sorted(sizes, reverse=True)


def test_image_stream_size_grows_with_quality(photo_pdf: bytes) -> None:
    sizes = [
        len(_image_stream(compress_document(load_document(photo_pdf), CompressOptions(quality=quality))).data)
        for quality in (20, 50, 80, 100)
    ]

    assert sizes == sorted(sizes)
    assert sizes[0] < sizes[-1]


@pytest.mark.parametrize(
    "options", [CompressOptions(remove_metadata=True), CompressOptions.preset("high"), CompressOptions.preset("extreme")]
)
def test_stripping_metadata_never_grows_a_small_file(options: CompressOptions) -> None:
    source = _minimal_pdf_with_title()

    result = compress_pdf(source, options)

    assert result.compressed_size <= len(source)
    assert len(PdfReader(io.BytesIO(result.data)).pages) == 1
    if result.data == source:
        assert not result.stats.metadata_removed


def test_unused_objects_are_removed(sample_pdf: bytes) -> None:
    document = load_document(sample_pdf)
    arena = document.objects.copy()
    for _ in range(5):
        arena.add(DictionaryObject({NameObject("/Unused"): NameObject("/True")}))
    bloated = document.evolve(objects=arena)

    stats = CompressionStats()
    cleaned = compress_document(bloated, stats=stats)

    assert stats.objects_removed == 5
    assert len(cleaned.objects) == len(document.objects)
    assert compress_pdf(write_document(bloated)).compressed_size < len(write_document(bloated))


def test_metadata_can_be_stripped(sample_pdf: bytes) -> None:
    result = compress_pdf(sample_pdf, CompressOptions(remove_metadata=True))

    metadata = PdfReader(io.BytesIO(result.data)).metadata
    assert metadata is None or "/Title" not in metadata
    assert result.stats.metadata_removed


def test_compress_document_keeps_page_count(ten_page_pdf: bytes) -> None:
    document = load_document(ten_page_pdf)

    assert compress_document(document, COMPRESSION_PRESETS["extreme"]).page_count == 10


def test_presets() -> None:
    assert COMPRESSION_PRESETS["low"].quality == 90
    assert COMPRESSION_PRESETS["high"].remove_metadata
    assert CompressOptions.preset("medium").level == "medium"
    with pytest.raises(UnsupportedFormatError):
        CompressOptions.preset("ultra")
    with pytest.raises(InvalidOptionsError):
        CompressOptions(quality=5)


def test_compress_refuses_encrypted_input(sample_pdf: bytes) -> None:
    protected = protect_pdf(sample_pdf, ProtectOptions(user_password="secret"))

    with pytest.raises(EncryptedDocumentError):
        compress_pdf(protected)
