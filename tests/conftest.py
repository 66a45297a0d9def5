from __future__ import annotations

import io
from pathlib import Path
from typing import Callable
import sys

import pytest
from PIL import Image
from pypdf import PdfWriter
from pypdf.generic import DecodedStreamObject, NameObject

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# red square in the lower-left corner
RED_SQUARE = b"1 0 0 rg 10 10 50 50 re f\n"


def build_pdf(
    pages: int = 3,
    *,
    width: float = 200,
    height: float = 200,
    metadata: dict[str, str] | None = None,
    content: bytes | None = None,
) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        page = writer.add_blank_page(width=width, height=height)
        if content is not None:
            stream = DecodedStreamObject()
            stream.set_data(content)
            page[NameObject("/Contents")] = writer._add_object(stream)
    if metadata:
        writer.add_metadata(metadata)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def build_image(size: tuple[int, int] = (100, 50), *, mode: str = "RGB", fmt: str = "PNG", dpi: int | None = None) -> bytes:
    color = (0, 128, 255, 128) if mode == "RGBA" else (0, 128, 255) if mode == "RGB" else 128
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    params = {"dpi": (dpi, dpi)} if dpi else {}
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


@pytest.fixture()
def sample_pdf() -> bytes:
    return build_pdf(5, metadata={"/Producer": "pixorapdf-tests", "/Title": "Sample"})


@pytest.fixture()
def ten_page_pdf() -> bytes:
    return build_pdf(10, content=RED_SQUARE)


@pytest.fixture()
def drawn_pdf() -> bytes:
    return build_pdf(1, content=RED_SQUARE)


@pytest.fixture()
def pdf_factory() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture()
def image_factory() -> Callable[..., bytes]:
    return build_image


@pytest.fixture()
def sample_pdfs(tmp_path: Path) -> list[Path]:
    paths = []
    for name, pages, title in (("one.pdf", 1, "Document One"), ("two.pdf", 2, None)):
        path = tmp_path / name
        path.write_bytes(build_pdf(pages, width=72, height=72, metadata={"/Title": title} if title else None))
        paths.append(path)
    return paths
