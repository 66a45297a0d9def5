from __future__ import annotations

import io
import math

import pytest
from pypdf import PdfReader

from pixorapdf.config import ProtectOptions, RasterizeOptions, WatermarkOptions
from pixorapdf.core.parser import load_document
from pixorapdf.exceptions import EncryptedDocumentError, InvalidOptionsError
from pixorapdf.tools.encryptor import protect_pdf
from pixorapdf.tools.rasterizer import rasterize_pdf
from pixorapdf.tools.watermark import text_matrix, watermark_document, watermark_pdf


def test_every_page_gets_the_stamp(sample_pdf: bytes) -> None:
    data = watermark_pdf(sample_pdf, WatermarkOptions(text="DRAFT"))

    document = load_document(data)
    assert document.page_count == 5
    for index in range(document.page_count):
        content = document.page_content(index)
        assert b"(DRAFT) Tj" in content
        assert b"/PxWmGS gs" in content
    assert len(PdfReader(io.BytesIO(data)).pages) == 5


def test_original_content_is_isolated(ten_page_pdf: bytes) -> None:
    document = load_document(watermark_pdf(ten_page_pdf))

    content = document.page_content(3)
    assert content.startswith(b"q\n")
    assert content.index(b"re f") < content.index(b"\nQ\n") < content.index(b"Tj")


def test_resources_reference_font_and_opacity(sample_pdf: bytes) -> None:
    document = watermark_document(load_document(sample_pdf), WatermarkOptions(opacity=50))

    resources = document.page(0).resources
    font = document.lookup(document.resolve(resources["/Font"]), "/PxWmF")
    state = document.lookup(document.resolve(resources["/ExtGState"]), "/PxWmGS")
    assert font["/BaseFont"] == "/Helvetica"
    assert float(state["/ca"]) == pytest.approx(0.5)


def test_diagonal_matrix_is_rotated() -> None:
    matrix = text_matrix((0, 0, 600, 800), WatermarkOptions(text="X", position="diagonal"))

    assert matrix[0] == pytest.approx(math.sqrt(0.5))
    assert matrix[1] == pytest.approx(math.sqrt(0.5))


def test_corner_positions() -> None:
    options = WatermarkOptions(text="AB", font_size=20, position="top-left")

    assert text_matrix((0, 0, 600, 800), options)[4:] == (36, 800 - 36 - 20)
    right = text_matrix((0, 0, 600, 800), WatermarkOptions(text="AB", font_size=20, position="bottom-right"))
    assert right[4] == pytest.approx(600 - 36 - 0.6 * 20 * 2)
    assert right[5] == 36


def test_watermark_is_visible_when_rendered(pdf_factory) -> None:
    data = watermark_pdf(pdf_factory(1, width=400, height=400), WatermarkOptions(text="TOP SECRET", color="black", opacity=1))

    (raster,) = rasterize_pdf(data, RasterizeOptions(dpi=72, color_mode="grayscale"))

    assert min(raster.pixels.getdata()) < 128


@pytest.mark.parametrize(
    "kwargs",
    [{"text": "  "}, {"font_size": 5}, {"opacity": 0.05}, {"position": "middle"}, {"color": "purple"}],
)
def test_invalid_options(kwargs) -> None:
    with pytest.raises(InvalidOptionsError):
        WatermarkOptions(**kwargs)


def test_encrypted_input_is_rejected(sample_pdf: bytes) -> None:
    protected = protect_pdf(sample_pdf, ProtectOptions(user_password="secret"))

    with pytest.raises(EncryptedDocumentError):
        watermark_pdf(protected)
