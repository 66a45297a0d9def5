"""Merge functionality for :mod:`pixorapdf.tools.merger`."""

from __future__ import annotations

import logging
from typing import Sequence

from pypdf.generic import ArrayObject, DictionaryObject, NameObject, NumberObject, create_string_object

from ...config import MergeOptions
from ...core.graph import PageAssembler
from ...core.model import Document, DocumentMetadata
from ...core.parser import load_document
from ...core.writer import write_document
from ...exceptions import CorruptDocumentError, EncryptedDocumentError, InvalidOptionsError

LOGGER = logging.getLogger("pixorapdf.merge")

CREATOR = "PixoraTools PDF Merger"
PRODUCER = "PixoraTools"

MergeSource = tuple[Document, Sequence[int] | None]


def _selected_indices(document: Document, indices: Sequence[int] | None, position: int) -> list[int]:
    if indices is None:
        return list(range(document.page_count))
    selected = list(indices)
    for index in selected:
        if not 0 <= index < document.page_count:
            raise CorruptDocumentError(
                f"Page index {index} is out of range for input #{position + 1} "
                f"({document.page_count} page(s))"
            )
    return selected


def _add_outline(assembler: PageAssembler, entries: Sequence[tuple[str, int]]) -> DictionaryObject:
    outline_id = assembler.arena.reserve()
    item_ids = [assembler.arena.reserve() for _ in entries]
    for position, ((title, page_id), item_id) in enumerate(zip(entries, item_ids)):
        item = DictionaryObject(
            {
                NameObject("/Title"): create_string_object(title),
                NameObject("/Parent"): assembler.ref(outline_id),
                NameObject("/Dest"): ArrayObject([assembler.ref(page_id), NameObject("/Fit")]),
            }
        )
        if position > 0:
            item[NameObject("/Prev")] = assembler.ref(item_ids[position - 1])
        if position < len(item_ids) - 1:
            item[NameObject("/Next")] = assembler.ref(item_ids[position + 1])
        assembler.arena.put(item_id, item)
    assembler.arena.put(
        outline_id,
        DictionaryObject(
            {
                NameObject("/Type"): NameObject("/Outlines"),
                NameObject("/First"): assembler.ref(item_ids[0]),
                NameObject("/Last"): assembler.ref(item_ids[-1]),
                NameObject("/Count"): NumberObject(len(item_ids)),
            }
        ),
    )
    return DictionaryObject(
        {
            NameObject("/Outlines"): assembler.ref(outline_id),
            NameObject("/PageMode"): NameObject("/UseOutlines"),
        }
    )


def merge_documents(
    sources: Sequence[MergeSource],
    *,
    options: MergeOptions | None = None,
    names: Sequence[str] | None = None,
) -> Document:
    """Combine the selected pages of *sources*, in order, into one document.

    Args:
        sources: ``(document, page_indices)`` pairs. Indices are 0-based;
            ``None`` selects every page.
        options: merge switches (metadata preservation, bookmarks).
        names: display names used as bookmark titles.

    Raises:
        CorruptDocumentError: if any page index is out of range.
        EncryptedDocumentError: if a source still carries encryption.
    """

    options = options or MergeOptions()
    if not sources:
        raise InvalidOptionsError("No input PDFs provided")

    assembler = PageAssembler()
    bookmarks: list[tuple[str, int]] = []
    for position, (document, indices) in enumerate(sources):
        if document.is_encrypted:
            raise EncryptedDocumentError(f"Input #{position + 1} is encrypted")
        selected = _selected_indices(document, indices, position)
        LOGGER.debug("Adding %d page(s) from input #%d", len(selected), position + 1)
        new_pages = assembler.add_pages(document, selected)
        if options.add_bookmarks and new_pages:
            title = names[position] if names and position < len(names) else f"Document {position + 1}"
            bookmarks.append((title, new_pages[0]))

    first = sources[0][0].metadata
    metadata = DocumentMetadata(
        title=options.title or (first.title if options.preserve_metadata else None) or "Merged Document",
        author=(first.author if options.preserve_metadata else None) or PRODUCER,
        creator=CREATOR,
        producer=PRODUCER,
    )
    catalog_entries = _add_outline(assembler, bookmarks) if bookmarks else None
    version = max(document.version for document, _ in sources)
    merged = assembler.build(metadata, catalog_entries=catalog_entries, version=version)
    LOGGER.info("Merged %d document(s) into %d page(s)", len(sources), merged.page_count)
    return merged


def merge_pdfs(
    inputs: Sequence[bytes],
    *,
    options: MergeOptions | None = None,
    names: Sequence[str] | None = None,
) -> bytes:
    """Merge PDF byte buffers and return the serialised result.

    ``options.selections`` may restrict each input to a list of 1-based page
    numbers.
    """

    options = options or MergeOptions()
    sources: list[MergeSource] = []
    for position, data in enumerate(inputs):
        selection = options.selections[position] if position < len(options.selections) else None
        indices = None if selection is None else [page - 1 for page in selection]
        sources.append((load_document(data), indices))
    return write_document(merge_documents(sources, options=options, names=names))


__all__ = ["merge_documents", "merge_pdfs", "CREATOR", "PRODUCER"]
