from __future__ import annotations

import io
import re

from pypdf import PdfReader

from pixorapdf.core.graph import PageAssembler
from pixorapdf.core.model import DocumentMetadata
from pixorapdf.core.parser import load_document
from pixorapdf.core.writer import write_document


def test_written_document_round_trips(sample_pdf: bytes) -> None:
    document = load_document(sample_pdf)
    output = write_document(document)

    assert output.startswith(b"%PDF-")
    assert output.rstrip().endswith(b"%%EOF")
    reader = PdfReader(io.BytesIO(output))
    assert len(reader.pages) == 5
    assert reader.metadata["/Title"] == "Sample"
    assert "/ID" in reader.trailer
    assert reader.trailer["/Size"] >= len(document.objects) + 1


def test_every_object_is_written_once(sample_pdf: bytes) -> None:
    document = load_document(sample_pdf)
    output = write_document(document)

    numbers = [int(match.group(1)) for match in re.finditer(rb"(?m)^(\d+) \d+ obj$", output)]
    assert len(numbers) == len(set(numbers))
    # the arena plus a freshly emitted /Info
    assert len(numbers) == len(document.objects) + 1


def test_document_without_metadata_has_no_info(pdf_factory) -> None:
    source = load_document(pdf_factory(2))
    assembler = PageAssembler()
    assembler.add_pages(source, [0, 1])
    document = assembler.build(DocumentMetadata())

    reader = PdfReader(io.BytesIO(write_document(document)))

    assert len(reader.pages) == 2
    assert "/Info" not in reader.trailer


def test_loading_written_output_preserves_pages(ten_page_pdf: bytes) -> None:
    first = load_document(ten_page_pdf)
    second = load_document(write_document(first))

    assert second.page_count == first.page_count
    assert [page.media_box for page in second.pages] == [page.media_box for page in first.pages]
    assert second.page_content(9) == first.page_content(9)


def test_values_are_written_without_line_breaks(sample_pdf: bytes) -> None:
    output = write_document(load_document(sample_pdf))

    assert b"<<\n" not in output
    assert b"/Type/Catalog" in output


def test_object_streams_pack_plain_objects(sample_pdf: bytes) -> None:
    document = load_document(sample_pdf)
    classic = write_document(document)
    packed = write_document(document, object_streams=True)

    assert b"/ObjStm" in packed
    assert b"/XRef" in packed
    assert b"\nxref\n" not in packed
    assert packed.startswith(b"%PDF-1.")
    assert len(packed) < len(classic)
    reader = PdfReader(io.BytesIO(packed))
    assert len(reader.pages) == 5
    assert reader.metadata["/Title"] == "Sample"
    reloaded = load_document(packed)
    assert reloaded.page_count == 5
    assert reloaded.metadata.title == "Sample"


def test_object_streams_keep_content_streams_direct(ten_page_pdf: bytes) -> None:
    document = load_document(ten_page_pdf)

    reloaded = load_document(write_document(document, object_streams=True))

    assert reloaded.page_content(9) == document.page_content(9)
    assert [page.media_box for page in reloaded.pages] == [page.media_box for page in document.pages]
