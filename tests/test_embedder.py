from __future__ import annotations

import io

import pytest
from PIL import Image
from pypdf import PdfReader

from pixorapdf.config import EmbedOptions, RasterizeOptions
from pixorapdf.core.parser import load_document
from pixorapdf.exceptions import EncodingError, InvalidOptionsError
from pixorapdf.tools.embedder import compute_placement, embed_images, images_to_pdf, natural_size
from pixorapdf.tools.rasterizer import rasterize_pdf


def _image_streams(data: bytes) -> list:
    document = load_document(data)
    return [
        value for _, value in document.objects.items()
        if hasattr(value, "dictionary") and value.get("/Subtype") == "/Image"
    ]


def test_one_page_per_image_in_order(image_factory) -> None:
    images = [image_factory((100, 50)), image_factory((40, 80))]

    data = images_to_pdf(images, EmbedOptions(page_size="letter"))

    reader = PdfReader(io.BytesIO(data))
    assert len(reader.pages) == 2
    assert [float(page.mediabox.width) for page in reader.pages] == [612.0, 612.0]
    assert reader.metadata["/Title"] == "Images to PDF"
    assert reader.metadata["/Creator"] == "PixoraTools Image to PDF Converter"
    widths = sorted(int(stream.get("/Width")) for stream in _image_streams(data))
    assert widths == [40, 100]


def test_landscape_orientation_swaps_page_size(image_factory) -> None:
    data = images_to_pdf([image_factory()], EmbedOptions(page_size="a4", orientation="landscape"))

    page = PdfReader(io.BytesIO(data)).pages[0]
    assert float(page.mediabox.width) > float(page.mediabox.height)


def test_fit_to_page_preserves_aspect_ratio() -> None:
    placement = compute_placement((200, 100), (620, 420), EmbedOptions(margin=10, fit_to_page=True))

    assert placement.width == pytest.approx(600)
    assert placement.height == pytest.approx(300)
    assert placement.x == pytest.approx(10)
    assert placement.y == pytest.approx(60)


def test_fit_without_aspect_ratio_fills_box() -> None:
    options = EmbedOptions(margin=10, fit_to_page=True, preserve_aspect_ratio=False)

    placement = compute_placement((200, 100), (620, 420), options)

    assert (placement.width, placement.height) == (600, 400)


def test_natural_size_is_centred() -> None:
    placement = compute_placement((100, 50), (300, 300), EmbedOptions(margin=0, fit_to_page=False))

    assert (placement.x, placement.y, placement.width, placement.height) == (100, 125, 100, 50)


def test_margin_leaving_no_room_is_rejected() -> None:
    with pytest.raises(InvalidOptionsError):
        compute_placement((10, 10), (100, 100), EmbedOptions(margin=50))


def test_natural_size_uses_image_dpi(image_factory) -> None:
    image = Image.open(io.BytesIO(image_factory((300, 150), dpi=150)))

    assert natural_size(image) == pytest.approx((144, 72))


def test_72_dpi_image_rasterizes_back_to_same_size(image_factory) -> None:
    source = image_factory((144, 72), dpi=72)
    options = EmbedOptions(page_size="custom", custom_size=(144, 72), margin=0, fit_to_page=False)

    (raster,) = rasterize_pdf(images_to_pdf([source], options), RasterizeOptions(dpi=72))

    assert raster.size == (144, 72)
    red, green, blue = raster.pixels.getpixel((72, 36))
    assert red < 30 and 100 < green < 160 and blue > 220


def test_jpeg_is_embedded_untouched(image_factory) -> None:
    source = image_factory((64, 32), fmt="JPEG")

    (stream,) = _image_streams(images_to_pdf([source]))

    assert stream.filters == ["/DCTDecode"]
    assert stream.data == source


def test_alpha_channel_becomes_soft_mask(image_factory) -> None:
    data = images_to_pdf([image_factory((20, 20), mode="RGBA")])

    streams = _image_streams(data)
    assert len(streams) == 2
    assert any("/SMask" in stream.dictionary for stream in streams)


def test_unreadable_image_is_an_encoding_error() -> None:
    with pytest.raises(EncodingError):
        images_to_pdf([b"definitely not an image"])


def test_no_images_is_rejected() -> None:
    with pytest.raises(InvalidOptionsError):
        embed_images([])
