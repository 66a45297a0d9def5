from __future__ import annotations

import io
import zipfile

import pytest

from pixorapdf.batch import (
    OperationFailure,
    OperationSuccess,
    create_archive,
    run_batch,
    run_operation,
    unique_names,
)
from pixorapdf.config import CompressOptions
from pixorapdf.exceptions import CorruptDocumentError, EncodingError, InvalidOptionsError
from pixorapdf.tools.common.interfaces import InputFile, OutputEntry
from pixorapdf.tools.compressor import compress as compress_module


def _names(archive: bytes) -> list[str]:
    with zipfile.ZipFile(io.BytesIO(archive)) as handle:
        return handle.namelist()


def test_single_output_is_returned_directly(sample_pdf: bytes) -> None:
    result = run_batch("compress", [("report.pdf", sample_pdf)])

    assert isinstance(result, OperationSuccess)
    assert result.ok
    assert result.name == "compressed_report.pdf"
    assert result.media_type == "application/pdf"
    assert not result.is_archive


def test_several_outputs_are_archived_in_input_order(sample_pdf: bytes, pdf_factory) -> None:
    inputs = [("b.pdf", sample_pdf), ("a.pdf", pdf_factory(2)), ("c.pdf", pdf_factory(1))]

    result = run_batch("compress", inputs, CompressOptions())

    assert result.is_archive
    assert result.name == "compress_results.zip"
    assert _names(result.data) == ["compressed_b.pdf", "compressed_a.pdf", "compressed_c.pdf"]


def test_thread_pool_keeps_input_order(pdf_factory) -> None:
    inputs = [InputFile(name=f"doc{index}.pdf", data=pdf_factory(index + 1)) for index in range(6)]

    entries = run_operation("split", inputs, {"splitMode": "equal", "equalParts": 1}, workers=3)

    assert [entry.name for entry in entries] == [
        "doc0_pages_1-1.pdf",
        "doc1_pages_1-2.pdf",
        "doc2_pages_1-3.pdf",
        "doc3_pages_1-4.pdf",
        "doc4_pages_1-5.pdf",
        "doc5_pages_1-6.pdf",
    ]


def test_first_failure_aborts_the_batch(sample_pdf: bytes) -> None:
    inputs = [("good.pdf", sample_pdf), ("bad.pdf", b"%PDF-1.7 nothing to see"), ("also-good.pdf", sample_pdf)]

    result = run_batch("compress", inputs)

    assert isinstance(result, OperationFailure)
    assert not result.ok
    assert isinstance(result.error, CorruptDocumentError)
    assert result.message


def test_failure_aborts_parallel_batch(sample_pdf: bytes) -> None:
    inputs = [("good.pdf", sample_pdf), ("bad.pdf", b"garbage"), ("good2.pdf", sample_pdf)]

    with pytest.raises(CorruptDocumentError):
        run_operation("watermark", inputs, workers=2)


def test_duplicate_names_are_suffixed(sample_pdf: bytes) -> None:
    result = run_batch("compress", [("same.pdf", sample_pdf), ("same.pdf", sample_pdf)])

    assert _names(result.data) == ["compressed_same.pdf", "compressed_same (2).pdf"]


def test_unique_names() -> None:
    assert unique_names(["a.pdf", "b.pdf", "a.pdf", "a.pdf"]) == ["a.pdf", "b.pdf", "a (2).pdf", "a (3).pdf"]
    assert unique_names(["x.png", "x (2).png", "x.png"]) == ["x.png", "x (2).png", "x (3).png"]


def test_create_archive_deflates_entries() -> None:
    archive = create_archive([OutputEntry(name="one.txt", data=b"1" * 100), OutputEntry(name="two.txt", data=b"2")])

    with zipfile.ZipFile(io.BytesIO(archive)) as handle:
        assert handle.namelist() == ["one.txt", "two.txt"]
        assert handle.getinfo("one.txt").compress_type == zipfile.ZIP_DEFLATED
        assert handle.read("two.txt") == b"2"


def test_merge_runs_once_over_all_inputs(sample_pdf: bytes, pdf_factory) -> None:
    result = run_batch("merge", [("a.pdf", sample_pdf), ("b.pdf", pdf_factory(2))], {"addBookmarks": True})

    assert result.name == "merged.pdf"
    assert len(result.entries) == 1


def test_rasterize_produces_archive_of_pages(pdf_factory) -> None:
    result = run_batch("pdf-to-image", [("scan.pdf", pdf_factory(3))], {"outputFormat": "jpg", "resolution": 18})

    assert _names(result.data) == ["scan_page_1.jpg", "scan_page_2.jpg", "scan_page_3.jpg"]
    assert all(entry.media_type == "image/jpeg" for entry in result.entries)


def test_rasterize_survives_oversized_text(pdf_factory) -> None:
    data = pdf_factory(1, content=b"BT /F1 100000 Tf 10 10 Td (A) Tj ET\n")

    result = run_batch("pdf-to-image", [("huge.pdf", data)], {"resolution": 72})

    assert isinstance(result, OperationSuccess)
    assert result.name == "huge_page_1.png"


def test_unexpected_errors_become_failures(sample_pdf: bytes, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(data, options=None):
        raise OSError("disk full")

    monkeypatch.setattr(compress_module, "compress_pdf", broken)

    result = run_batch("compress", [("a.pdf", sample_pdf)])

    assert isinstance(result, OperationFailure)
    assert isinstance(result.error, EncodingError)
    assert isinstance(result.error.__cause__, OSError)
    assert "a.pdf" in result.message
    assert "disk full" in result.message


def test_unexpected_errors_are_wrapped_in_parallel_runs(sample_pdf: bytes, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(data, options=None):
        raise ValueError("bad stream")

    monkeypatch.setattr(compress_module, "compress_pdf", broken)

    with pytest.raises(EncodingError):
        run_operation("compress", [("a.pdf", sample_pdf), ("b.pdf", sample_pdf)], workers=2)


def test_images_are_combined_into_one_pdf(image_factory) -> None:
    result = run_batch("image-to-pdf", [("a.png", image_factory()), ("b.png", image_factory((10, 10)))])

    assert result.name == "images.pdf"
    assert result.data.startswith(b"%PDF-")


def test_unknown_operation_is_a_failure(sample_pdf: bytes) -> None:
    result = run_batch("teleport", [("a.pdf", sample_pdf)])

    assert isinstance(result, OperationFailure)
    assert isinstance(result.error, InvalidOptionsError)


def test_invalid_options_are_a_failure(sample_pdf: bytes) -> None:
    result = run_batch("compress", [("a.pdf", sample_pdf)], {"imageQuality": 500})

    assert isinstance(result, OperationFailure)
    assert "quality" in result.message.lower()


def test_no_inputs_is_a_failure() -> None:
    assert isinstance(run_batch("compress", []), OperationFailure)
