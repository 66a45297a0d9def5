from __future__ import annotations

import io

import pytest
from pypdf import PdfReader

from pixorapdf.config import PageRange, SplitOptions
from pixorapdf.core.graph import dangling_references
from pixorapdf.core.parser import load_document
from pixorapdf.exceptions import InvalidOptionsError, PageRangeError
from pixorapdf.tools.merger import merge_pdfs
from pixorapdf.tools.splitter import (
    build_output_filename,
    equal_part_ranges,
    split_document,
    split_pdf,
)


def _page_counts(parts: list[tuple[PageRange, bytes]]) -> list[int]:
    return [len(PdfReader(io.BytesIO(data)).pages) for _, data in parts]


def test_split_by_ranges(sample_pdf: bytes) -> None:
    parts = split_pdf(sample_pdf, SplitOptions(mode="range", ranges="1-3,4-5"))

    assert _page_counts(parts) == [3, 2]
    assert [str(page_range) for page_range, _ in parts] == ["1-3", "4-5"]
    reader = PdfReader(io.BytesIO(parts[0][1]))
    assert reader.metadata["/Title"] == "Sample - Pages 1-3"
    assert reader.metadata["/Creator"] == "PixoraTools PDF Splitter"


def test_overlapping_ranges_are_allowed(sample_pdf: bytes) -> None:
    parts = split_pdf(sample_pdf, SplitOptions(mode="range", ranges=("1-4", "2-5")))

    assert _page_counts(parts) == [4, 4]


def test_split_into_equal_parts(ten_page_pdf: bytes) -> None:
    parts = split_pdf(ten_page_pdf, SplitOptions(mode="equal", parts=3))

    assert _page_counts(parts) == [4, 4, 2]


def test_equal_parts_may_yield_fewer_files() -> None:
    assert [str(item) for item in equal_part_ranges(5, 4)] == ["1-2", "3-4", "5-5"]
    assert [str(item) for item in equal_part_ranges(2, 5)] == ["1-1", "2-2"]


def test_split_into_single_pages(sample_pdf: bytes) -> None:
    parts = split_pdf(sample_pdf, SplitOptions(mode="pages"))

    assert _page_counts(parts) == [1] * 5
    assert [build_output_filename("doc", page_range) for page_range, _ in parts][:2] == [
        "doc_pages_1-1.pdf",
        "doc_pages_2-2.pdf",
    ]


def test_split_selected_pages(sample_pdf: bytes) -> None:
    parts = split_pdf(sample_pdf, SplitOptions(mode="pages", ranges="2,4-5"))

    assert [page_range.start for page_range, _ in parts] == [2, 4, 5]


@pytest.mark.parametrize("ranges", ["4-9", "3-1", "0-2"])
def test_invalid_ranges_are_rejected(sample_pdf: bytes, ranges: str) -> None:
    with pytest.raises(PageRangeError):
        split_pdf(sample_pdf, SplitOptions(mode="range", ranges=ranges))


def test_range_mode_requires_ranges() -> None:
    with pytest.raises(InvalidOptionsError):
        SplitOptions(mode="range")


def test_parts_only_hold_their_own_objects(ten_page_pdf: bytes) -> None:
    document = load_document(ten_page_pdf)
    parts = split_document(document, [PageRange(1, 2), PageRange(3, 10)])

    assert [part.page_count for part in parts] == [2, 8]
    for part in parts:
        assert dangling_references(part) == set()
    # two pages, two content streams, page tree and catalog
    assert len(parts[0].objects) == 6


def test_split_then_merge_restores_page_sequence(pdf_factory) -> None:
    original = merge_pdfs([pdf_factory(2, width=100), pdf_factory(3, width=250)])
    parts = split_pdf(original, SplitOptions(mode="range", ranges="1-1,2-4,5-5"))

    rebuilt = merge_pdfs([data for _, data in parts])

    def widths(data: bytes) -> list[float]:
        return [float(page.mediabox.width) for page in PdfReader(io.BytesIO(data)).pages]

    assert widths(rebuilt) == widths(original)
