"""Object graph traversal: reachability, garbage collection and page copying."""

from __future__ import annotations

import logging
from typing import Any, Collection, Iterable, Mapping, Sequence

from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NullObject,
    NumberObject,
)

from .model import Document, DocumentMetadata, ObjectArena, PdfStream

__all__ = [
    "mark_reachable",
    "collect_garbage",
    "dangling_references",
    "remap_value",
    "PageAssembler",
]

LOGGER = logging.getLogger("pixorapdf.graph")


def mark_reachable(
    document: Document,
    roots: Iterable[Any],
    *,
    skip_keys: Collection[str] = (),
    stop: Collection[int] = (),
) -> set[int]:
    """Return the IDs of every object reachable from *roots*.

    *roots* may be references or direct values. Dictionary entries named in
    *skip_keys* are not followed and objects listed in *stop* are neither
    marked nor traversed.
    """

    marked: set[int] = set()
    pending: list[Any] = list(roots)
    while pending:
        value = pending.pop()
        if isinstance(value, IndirectObject):
            idnum = value.idnum
            if idnum in marked or idnum in stop or idnum not in document.objects:
                continue
            marked.add(idnum)
            pending.append(document.objects[idnum])
        elif isinstance(value, PdfStream):
            pending.append(value.dictionary)
        elif isinstance(value, DictionaryObject):
            pending.extend(item for key, item in value.items() if key not in skip_keys)
        elif isinstance(value, ArrayObject):
            pending.extend(value)
    return marked


def collect_garbage(document: Document) -> Document:
    """Drop every object unreachable from the trailer."""

    reachable = mark_reachable(document, document.trailer_roots())
    removed = len(document.objects) - len(reachable)
    if not removed:
        return document
    LOGGER.debug("Removing %d unreachable object(s)", removed)
    return document.evolve(objects=document.objects.subset(reachable))


def dangling_references(document: Document) -> set[int]:
    """IDs referenced from reachable objects that are missing from the table."""

    missing: set[int] = set()
    pending: list[Any] = list(document.trailer_roots())
    seen: set[int] = set()
    while pending:
        value = pending.pop()
        if isinstance(value, IndirectObject):
            if value.idnum not in document.objects:
                missing.add(value.idnum)
            elif value.idnum not in seen:
                seen.add(value.idnum)
                pending.append(document.objects[value.idnum])
        elif isinstance(value, PdfStream):
            pending.append(value.dictionary)
        elif isinstance(value, DictionaryObject):
            pending.extend(value.values())
        elif isinstance(value, ArrayObject):
            pending.extend(value)
    return missing


def remap_value(value: Any, id_map: Mapping[int, int], arena: ObjectArena) -> Any:
    """Deep-copy *value*, renumbering references through *id_map*.

    References to objects absent from *id_map* become ``null``.
    """

    if isinstance(value, IndirectObject):
        target = id_map.get(value.idnum)
        if target is None:
            return NullObject()
        return IndirectObject(target, 0, arena)
    if isinstance(value, PdfStream):
        return PdfStream(dictionary=remap_value(value.dictionary, id_map, arena), data=value.data)
    if isinstance(value, DictionaryObject):
        return DictionaryObject({key: remap_value(item, id_map, arena) for key, item in value.items()})
    if isinstance(value, ArrayObject):
        return ArrayObject(remap_value(item, id_map, arena) for item in value)
    return value


class PageAssembler:
    """Build a new document out of pages copied from source documents.

    Each call to :meth:`add_pages` copies the selected pages together with
    their transitive closure (resources, fonts, images, annotations) under
    fresh object numbers. ``/Parent`` links are not followed and references
    to pages that were not selected are replaced by ``null``.
    """

    def __init__(self) -> None:
        self.arena = ObjectArena()
        self.page_ids: list[int] = []
        self._page_dicts: dict[int, DictionaryObject] = {}

    def add_pages(self, source: Document, indices: Sequence[int]) -> list[int]:
        selected = [source.page_ids[index] for index in indices]
        flattened = {page_id: source.flattened_page(page_id) for page_id in dict.fromkeys(selected)}
        closure = mark_reachable(
            source,
            flattened.values(),
            skip_keys=("/Parent",),
            stop=set(source.page_ids),
        )

        id_map: dict[int, int] = {}
        new_pages: list[int] = []
        for page_id in selected:
            new_id = self.arena.reserve()
            id_map.setdefault(page_id, new_id)
            new_pages.append(new_id)
        for idnum in sorted(closure):
            id_map[idnum] = self.arena.reserve()

        for idnum in sorted(closure):
            self.arena.put(id_map[idnum], remap_value(source.objects[idnum], id_map, self.arena))
        for page_id, new_id in zip(selected, new_pages):
            page = remap_value(flattened[page_id], id_map, self.arena)
            page[NameObject("/Type")] = NameObject("/Page")
            self._page_dicts[new_id] = page
            self.arena.put(new_id, page)

        LOGGER.debug(
            "Copied %d page(s) with %d supporting object(s)", len(new_pages), len(closure)
        )
        self.page_ids.extend(new_pages)
        return new_pages

    def add_page(self, page: DictionaryObject) -> int:
        """Append a freshly built page dictionary; returns its object number."""

        page[NameObject("/Type")] = NameObject("/Page")
        page_id = self.arena.add(page).idnum
        self._page_dicts[page_id] = page
        self.page_ids.append(page_id)
        return page_id

    def ref(self, idnum: int) -> IndirectObject:
        return self.arena.ref(idnum)

    def add(self, value: Any) -> IndirectObject:
        return self.arena.add(value)

    def build(
        self,
        metadata: DocumentMetadata,
        *,
        catalog_entries: Mapping[str, Any] | None = None,
        version: str = "1.7",
    ) -> Document:
        tree_id = self.arena.reserve()
        for page_id in self.page_ids:
            self._page_dicts[page_id][NameObject("/Parent")] = self.arena.ref(tree_id)
        self.arena.put(
            tree_id,
            DictionaryObject(
                {
                    NameObject("/Type"): NameObject("/Pages"),
                    NameObject("/Kids"): ArrayObject(self.arena.ref(page_id) for page_id in self.page_ids),
                    NameObject("/Count"): NumberObject(len(self.page_ids)),
                }
            ),
        )
        catalog = DictionaryObject(
            {NameObject("/Type"): NameObject("/Catalog"), NameObject("/Pages"): self.arena.ref(tree_id)}
        )
        for key, value in (catalog_entries or {}).items():
            catalog[NameObject(key)] = value
        root = self.arena.add(catalog)
        return Document(
            objects=self.arena,
            root_id=root.idnum,
            page_ids=tuple(self.page_ids),
            metadata=metadata,
            version=version,
        )
