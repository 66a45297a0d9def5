from __future__ import annotations

from pypdf.generic import DictionaryObject, NameObject

from pixorapdf.core.graph import PageAssembler, collect_garbage, dangling_references, mark_reachable
from pixorapdf.core.model import DocumentMetadata
from pixorapdf.core.parser import load_document


def test_collect_garbage_drops_orphans(sample_pdf: bytes) -> None:
    document = load_document(sample_pdf)
    arena = document.objects.copy()
    orphan = arena.add(DictionaryObject({NameObject("/Orphan"): NameObject("/Yes")}))
    polluted = document.evolve(objects=arena)

    cleaned = collect_garbage(polluted)

    assert orphan.idnum not in cleaned.objects
    assert cleaned.page_count == document.page_count
    assert dangling_references(cleaned) == set()


def test_collect_garbage_keeps_clean_document(sample_pdf: bytes) -> None:
    document = collect_garbage(load_document(sample_pdf))

    assert collect_garbage(document) is document


def test_mark_reachable_honours_stop_set(sample_pdf: bytes) -> None:
    document = load_document(sample_pdf)
    everything = mark_reachable(document, document.trailer_roots())
    without_pages = mark_reachable(document, document.trailer_roots(), stop=set(document.page_ids))

    assert set(document.page_ids) <= everything
    assert not set(document.page_ids) & without_pages


def test_page_assembler_copies_only_the_selected_closure(ten_page_pdf: bytes) -> None:
    source = load_document(ten_page_pdf)
    assembler = PageAssembler()
    new_pages = assembler.add_pages(source, [1])
    document = assembler.build(DocumentMetadata(title="Part"))

    assert len(new_pages) == 1
    assert document.page_count == 1
    assert dangling_references(document) == set()
    # page, its content stream, page tree and catalog
    assert len(document.objects) == 4
    assert document.page_content(0) == source.page_content(1)


def test_page_assembler_links_pages_to_tree(sample_pdf: bytes) -> None:
    source = load_document(sample_pdf)
    assembler = PageAssembler()
    assembler.add_pages(source, [4, 0])
    document = assembler.build(DocumentMetadata())

    tree = document.lookup(document.catalog, "/Pages")
    assert tree["/Count"] == 2
    for page_id in document.page_ids:
        page = document.objects[page_id]
        assert page.get("/Parent").idnum in document.objects
        assert page["/Type"] == "/Page"
