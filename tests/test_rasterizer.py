from __future__ import annotations

import io

import pytest
from PIL import Image
from pypdf import PdfWriter

from pixorapdf.config import ProtectOptions, RasterizeOptions
from pixorapdf.core.model import ColorMode
from pixorapdf.core.parser import load_document
from pixorapdf.exceptions import EncryptedDocumentError, PageRangeError, UnsupportedFormatError
from pixorapdf.tools.encryptor import protect_pdf
from pixorapdf.tools.rasterizer import PageRenderer, apply_color_mode, rasterize_pdf


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def test_rasterize_draws_filled_rectangle(drawn_pdf: bytes) -> None:
    (raster,) = rasterize_pdf(drawn_pdf, RasterizeOptions(dpi=72))

    assert raster.size == (200, 200)
    image = _open(raster.data).convert("RGB")
    red, green, blue = image.getpixel((35, 165))
    assert red > 200 and green < 60 and blue < 60
    assert image.getpixel((150, 30)) == (255, 255, 255)


def test_image_size_follows_dpi(drawn_pdf: bytes) -> None:
    (raster,) = rasterize_pdf(drawn_pdf, RasterizeOptions(dpi=144))

    assert raster.size == (400, 400)
    assert _open(raster.data).size == (400, 400)


@pytest.mark.parametrize(
    ("fmt", "signature", "media_type"),
    [
        ("png", b"\x89PNG", "image/png"),
        ("jpeg", b"\xff\xd8", "image/jpeg"),
        ("webp", b"RIFF", "image/webp"),
        ("tiff", b"II*\x00", "image/tiff"),
    ],
)
def test_output_formats(drawn_pdf: bytes, fmt: str, signature: bytes, media_type: str) -> None:
    (raster,) = rasterize_pdf(drawn_pdf, RasterizeOptions(format=fmt, dpi=36))

    assert raster.data.startswith(signature)
    assert raster.media_type == media_type


def test_unsupported_format_is_rejected() -> None:
    with pytest.raises(UnsupportedFormatError):
        RasterizeOptions(format="bmp")


def test_color_modes(drawn_pdf: bytes) -> None:
    (gray,) = rasterize_pdf(drawn_pdf, RasterizeOptions(dpi=36, color_mode="grayscale"))
    (mono,) = rasterize_pdf(drawn_pdf, RasterizeOptions(dpi=36, color_mode=ColorMode.MONOCHROME))

    assert gray.pixels.mode == "L"
    assert mono.pixels.mode == "1"
    assert set(mono.pixels.convert("L").getdata()) <= {0, 255}


def test_monochrome_threshold() -> None:
    image = Image.new("RGB", (2, 1))
    image.putpixel((0, 0), (127, 127, 127))
    image.putpixel((1, 0), (128, 128, 128))

    converted = apply_color_mode(image, ColorMode.MONOCHROME).convert("L")

    assert list(converted.getdata()) == [0, 255]


def test_page_selection(ten_page_pdf: bytes) -> None:
    rasters = rasterize_pdf(ten_page_pdf, RasterizeOptions(dpi=18, pages=(3, 1)))

    assert [raster.page_index for raster in rasters] == [2, 0]
    with pytest.raises(PageRangeError):
        rasterize_pdf(ten_page_pdf, RasterizeOptions(dpi=18, pages=(11,)))


def test_rotated_page_swaps_dimensions() -> None:
    writer = PdfWriter()
    page = writer.add_blank_page(width=200, height=100)
    page.rotate(90)
    buffer = io.BytesIO()
    writer.write(buffer)

    (raster,) = rasterize_pdf(buffer.getvalue(), RasterizeOptions(dpi=72))

    assert raster.size == (100, 200)


def test_unsupported_operators_are_skipped(pdf_factory) -> None:
    data = pdf_factory(1, content=b"/Sh0 sh 1 0 0 rg 10 10 50 50 re f\n")
    document = load_document(data)
    renderer = PageRenderer(document, 72)

    image = renderer.render(document.page(0))

    assert renderer.ignored["sh"] == 1
    assert image.getpixel((35, 165))[0] > 200


def test_text_is_drawn(pdf_factory) -> None:
    data = pdf_factory(1, content=b"0 g BT /F1 24 Tf 20 100 Td (Hello) Tj ET\n")

    (raster,) = rasterize_pdf(data, RasterizeOptions(dpi=72, color_mode="grayscale"))

    assert min(raster.pixels.getdata()) < 128


def test_oversized_text_is_clamped_to_the_page(pdf_factory) -> None:
    data = pdf_factory(1, content=b"BT /F1 100000 Tf 10 10 Td (A) Tj ET\n1 0 0 rg 10 10 50 50 re f\n")

    (raster,) = rasterize_pdf(data, RasterizeOptions(dpi=72))

    assert raster.pixels.size == (200, 200)
    assert raster.pixels.getpixel((35, 165)) == (255, 0, 0)


def test_encrypted_input_is_rejected(drawn_pdf: bytes) -> None:
    protected = protect_pdf(drawn_pdf, ProtectOptions(user_password="secret"))

    with pytest.raises(EncryptedDocumentError):
        rasterize_pdf(protected)
