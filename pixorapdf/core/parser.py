"""Load PDF bytes into a :class:`~pixorapdf.core.model.Document`.

Loading first goes through :class:`pypdf.PdfReader`, which handles the
cross-reference table, object streams and decryption. When the reader cannot
make sense of the file, a recovery scan walks the raw bytes for
``N G obj`` markers and rebuilds the object table from whatever it finds.
"""

from __future__ import annotations

import io
import logging
import re
from collections import deque
from typing import Any, Callable, Iterable

from pypdf import PdfReader
from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NullObject,
    NumberObject,
    StreamObject,
    read_object,
)

from ..exceptions import CorruptDocumentError, EncodingError, EncryptedDocumentError
from .filters import decode_stream
from .model import Document, DocumentMetadata, ObjectArena, PdfStream

__all__ = ["load_document", "recover_document", "scan_objects", "collect_page_ids", "looks_encrypted"]

LOGGER = logging.getLogger("pixorapdf.parser")

_WHITESPACE = b"\x00\t\n\r\f "
_OBJECT_MARKER = re.compile(rb"(?<![0-9])(\d{1,10})[\x00\t\n\r\f ]+(\d{1,5})[\x00\t\n\r\f ]+obj(?![A-Za-z])")
_HEADER = re.compile(rb"%PDF-(\d\.\d)")
_STREAM_ONLY_KEYS = ("/Length",)
_INLINE_STREAM_KEYS = ("/Filter", "/DecodeParms")
_MAX_TREE_DEPTH = 64

# -- Utility helpers ---------------------------------------------------------


def _skip_ws(buffer: bytes, index: int) -> int:
    while index < len(buffer):
        if buffer[index] in _WHITESPACE:
            index += 1
        elif buffer[index] == 0x25:  # comment
            while index < len(buffer) and buffer[index] not in b"\r\n":
                index += 1
        else:
            break
    return index


def _header_version(data: bytes) -> str:
    match = _HEADER.search(data[:1024])
    return match.group(1).decode("ascii") if match else "1.7"


def _import_value(value: Any, arena: ObjectArena, on_reference: Callable[[IndirectObject], None]) -> Any:
    """Convert a pypdf object tree into arena values.

    References are rebound to *arena*; *on_reference* sees every reference
    encountered so callers can load or validate the target.
    """

    if isinstance(value, IndirectObject):
        on_reference(value)
        return IndirectObject(value.idnum, value.generation, arena)
    if isinstance(value, StreamObject):
        dictionary = DictionaryObject()
        for key, item in value.items():
            if key in _STREAM_ONLY_KEYS:
                continue
            if key in _INLINE_STREAM_KEYS and isinstance(item, IndirectObject):
                item = item.get_object()
            dictionary[NameObject(key)] = _import_value(item, arena, on_reference)
        return PdfStream(dictionary=dictionary, data=bytes(value._data or b""))
    if isinstance(value, DictionaryObject):
        return DictionaryObject(
            {NameObject(key): _import_value(item, arena, on_reference) for key, item in value.items()}
        )
    if isinstance(value, ArrayObject):
        return ArrayObject(_import_value(item, arena, on_reference) for item in value)
    if value is None:
        return NullObject()
    return value


def _raw_get(dictionary: DictionaryObject, key: str) -> Any:
    return dictionary.raw_get(key) if key in dictionary else None


def collect_page_ids(arena: ObjectArena, root_id: int) -> tuple[int, ...]:
    """Walk the page tree below catalog *root_id* and return leaf page IDs."""

    def resolve(value: Any) -> Any:
        while isinstance(value, IndirectObject):
            value = arena.get(value.idnum)
        return value

    catalog = arena.get(root_id)
    if not isinstance(catalog, DictionaryObject):
        return ()
    pages_ref = catalog.get("/Pages")
    if not isinstance(pages_ref, IndirectObject):
        return ()

    page_ids: list[int] = []
    visited: set[int] = set()
    stack: list[tuple[IndirectObject, int]] = [(pages_ref, 0)]
    while stack:
        ref, depth = stack.pop()
        if ref.idnum in visited or depth > _MAX_TREE_DEPTH:
            LOGGER.warning("Skipping cyclic or too deep page tree node %d", ref.idnum)
            continue
        visited.add(ref.idnum)
        node = resolve(ref)
        if not isinstance(node, DictionaryObject):
            continue
        kids = resolve(node.get("/Kids"))
        node_type = node.get("/Type")
        if node_type == "/Pages" or (node_type != "/Page" and isinstance(kids, ArrayObject)):
            if isinstance(kids, ArrayObject):
                stack.extend((kid, depth + 1) for kid in reversed(kids) if isinstance(kid, IndirectObject))
            continue
        page_ids.append(ref.idnum)
    return tuple(page_ids)


def _build_document(
    arena: ObjectArena,
    root_id: int,
    *,
    info: Any,
    file_id: Any,
    version: str,
) -> Document:
    page_ids = collect_page_ids(arena, root_id)
    if not page_ids:
        raise CorruptDocumentError("PDF does not contain a valid page tree")

    if isinstance(info, IndirectObject):
        info = info.get_object()
    metadata = DocumentMetadata()
    if isinstance(info, DictionaryObject):
        metadata = DocumentMetadata.from_info(
            {key: value.get_object() if isinstance(value, IndirectObject) else value for key, value in info.items()}
        )

    identifier = None
    if isinstance(file_id, ArrayObject) and len(file_id) == 2:
        parts = [bytes(part) if isinstance(part, ByteStringObject) else str(part).encode("latin-1", "ignore") for part in file_id]
        identifier = (parts[0], parts[1])

    return Document(
        objects=arena,
        root_id=root_id,
        page_ids=page_ids,
        metadata=metadata,
        file_id=identifier,
        version=version,
    )


# -- Primary path ------------------------------------------------------------


def _from_reader(reader: PdfReader, data: bytes) -> Document:
    trailer = reader.trailer
    root_ref = _raw_get(trailer, "/Root")
    if not isinstance(root_ref, IndirectObject):
        raise CorruptDocumentError("Trailer does not reference a document catalog")
    info_ref = _raw_get(trailer, "/Info")

    arena = ObjectArena()
    pending: deque[IndirectObject] = deque([root_ref])
    seen: set[int] = set()

    while pending:
        ref = pending.popleft()
        if ref.idnum in seen:
            continue
        seen.add(ref.idnum)
        try:
            value = reader.get_object(ref)
        except Exception as exc:  # pypdf errors vary with the damage
            LOGGER.warning("Object %d could not be read: %s", ref.idnum, exc)
            value = NullObject()
        arena.put(ref.idnum, _import_value(value, arena, pending.append), ref.generation)

    header = getattr(reader, "pdf_header", "") or ""
    version = header[5:] if header.startswith("%PDF-") else _header_version(data)
    file_id = _raw_get(trailer, "/ID")
    if isinstance(file_id, IndirectObject):
        file_id = file_id.get_object()
    return _build_document(arena, root_ref.idnum, info=info_ref, file_id=file_id, version=version)


def load_document(data: bytes, *, password: str | None = None) -> Document:
    """Parse *data* into a :class:`Document`.

    Encrypted inputs are decrypted with *password* (the empty user password
    is tried when none is given). Files the reader rejects are handed to
    :func:`recover_document`.

    Raises:
        CorruptDocumentError: if no valid page tree can be found.
        EncryptedDocumentError: if the document is encrypted and the
            password does not open it.
    """

    if not data:
        raise CorruptDocumentError("PDF data is empty")

    try:
        reader = PdfReader(io.BytesIO(data), strict=False)
        if reader.is_encrypted:
            LOGGER.debug("Attempting to decrypt encrypted PDF")
            if reader.decrypt(password or "") == 0:
                raise EncryptedDocumentError("Incorrect password for encrypted PDF")
        return _from_reader(reader, data)
    except EncryptedDocumentError:
        raise
    except Exception as exc:  # fall back to scanning on any reader failure
        if looks_encrypted(data):
            raise EncryptedDocumentError("Unable to decrypt encrypted PDF") from exc
        LOGGER.warning("Reader failed (%s); falling back to recovery scan", exc)
    return recover_document(data)


def looks_encrypted(data: bytes) -> bool:
    return re.search(rb"/Encrypt[\x00\t\n\r\f ]*\d+[\x00\t\n\r\f ]+\d+[\x00\t\n\r\f ]+R", data[-4096:]) is not None


# -- Recovery path -----------------------------------------------------------


def scan_objects(data: bytes) -> dict[int, tuple[int, int]]:
    """Locate every ``N G obj`` marker in *data*.

    Returns a mapping of object number to ``(generation, body_offset)``.
    When an object number appears more than once the last definition wins,
    matching incremental-update semantics.
    """

    found: dict[int, tuple[int, int]] = {}
    for match in _OBJECT_MARKER.finditer(data):
        found[int(match.group(1))] = (int(match.group(2)), match.end())
    return found


class _ScanResolver:
    """Minimal reader stand-in for :func:`pypdf.generic.read_object`.

    pypdf asks its reader for ``strict`` and for indirect ``/Length`` values
    while parsing stream objects.
    """

    strict = False

    def __init__(self, data: bytes, offsets: dict[int, tuple[int, int]]) -> None:
        self._data = data
        self._offsets = offsets
        self._cache: dict[int, Any] = {}
        self._active: set[int] = set()

    def parse(self, idnum: int) -> Any:
        if idnum in self._cache:
            return self._cache[idnum]
        if idnum in self._active or idnum not in self._offsets:
            return None
        self._active.add(idnum)
        try:
            value = self.parse_at(self._data, self._offsets[idnum][1])
        finally:
            self._active.discard(idnum)
        self._cache[idnum] = value
        return value

    def parse_at(self, data: bytes, offset: int) -> Any:
        stream = io.BytesIO(data)
        stream.seek(_skip_ws(data, offset))
        return read_object(stream, self)

    def get_object(self, reference: IndirectObject | int) -> Any:
        idnum = reference if isinstance(reference, int) else reference.idnum
        try:
            return self.parse(idnum)
        except Exception as exc:  # a broken /Length target just yields null
            LOGGER.debug("Failed to parse object %d during recovery: %s", idnum, exc)
            return None


def _expand_object_stream(stream: PdfStream, resolver: _ScanResolver) -> Iterable[tuple[int, Any]]:
    try:
        payload = decode_stream(stream)
    except EncodingError as exc:
        LOGGER.warning("Skipping unreadable object stream: %s", exc)
        return
    count = stream.get("/N")
    first = stream.get("/First")
    if not isinstance(count, NumberObject) or not isinstance(first, NumberObject):
        return
    numbers = payload[: int(first)].split()
    for position in range(min(int(count), len(numbers) // 2)):
        try:
            idnum = int(numbers[2 * position])
            offset = int(first) + int(numbers[2 * position + 1])
            yield idnum, resolver.parse_at(payload, offset)
        except Exception as exc:  # damaged entries are dropped individually
            LOGGER.debug("Skipping damaged object stream entry: %s", exc)


def _find_trailer(data: bytes, resolver: _ScanResolver) -> DictionaryObject | None:
    position = data.rfind(b"trailer")
    while position != -1:
        try:
            value = resolver.parse_at(data, position + len(b"trailer"))
        except Exception as exc:  # keep looking at earlier trailers
            LOGGER.debug("Unreadable trailer at offset %d: %s", position, exc)
            value = None
        if isinstance(value, DictionaryObject) and isinstance(_raw_get(value, "/Root"), IndirectObject):
            return value
        position = data.rfind(b"trailer", 0, position)
    return None


def _synthesise_catalog(arena: ObjectArena) -> int | None:
    catalogs = [
        idnum
        for idnum, value in arena.items()
        if isinstance(value, DictionaryObject) and value.get("/Type") == "/Catalog"
    ]
    if catalogs:
        return catalogs[-1]

    pages = [
        idnum
        for idnum, value in arena.items()
        if isinstance(value, DictionaryObject) and value.get("/Type") == "/Page"
    ]
    if not pages:
        return None
    LOGGER.warning("No catalog found; rebuilding page tree from %d loose page(s)", len(pages))
    tree_id = arena.reserve()
    for idnum in pages:
        page = DictionaryObject(arena[idnum])
        page[NameObject("/Parent")] = arena.ref(tree_id)
        arena.put(idnum, page, arena.generation(idnum))
    arena.put(
        tree_id,
        DictionaryObject(
            {
                NameObject("/Type"): NameObject("/Pages"),
                NameObject("/Kids"): ArrayObject(arena.ref(idnum) for idnum in pages),
                NameObject("/Count"): NumberObject(len(pages)),
            }
        ),
    )
    catalog = arena.add(
        DictionaryObject({NameObject("/Type"): NameObject("/Catalog"), NameObject("/Pages"): arena.ref(tree_id)})
    )
    return catalog.idnum


def recover_document(data: bytes) -> Document:
    """Rebuild a document by scanning *data* for object markers.

    Raises:
        CorruptDocumentError: when no catalog with a usable page tree can be
            reconstructed from the scanned objects.
    """

    offsets = scan_objects(data)
    if not offsets:
        raise CorruptDocumentError("No PDF objects found in data")
    LOGGER.info("Recovery scan found %d object marker(s)", len(offsets))

    resolver = _ScanResolver(data, offsets)
    arena = ObjectArena()
    referenced: set[int] = set()

    def note(ref: IndirectObject) -> None:
        referenced.add(ref.idnum)

    xref_trailer: DictionaryObject | None = None
    for idnum, (generation, _) in sorted(offsets.items()):
        try:
            value = resolver.parse(idnum)
        except Exception as exc:  # unparsable bodies are dropped
            LOGGER.warning("Dropping unreadable object %d: %s", idnum, exc)
            continue
        if value is None:
            continue
        imported = _import_value(value, arena, note)
        if isinstance(imported, PdfStream) and imported.get("/Type") == "/XRef":
            xref_trailer = imported.dictionary
            continue
        arena.put(idnum, imported, generation)

    for idnum, value in list(arena.items()):
        if isinstance(value, PdfStream) and value.get("/Type") == "/ObjStm":
            for inner_id, inner in _expand_object_stream(value, resolver):
                if inner_id not in arena and inner is not None:
                    arena.put(inner_id, _import_value(inner, arena, note))
            arena.discard(idnum)

    for idnum in referenced - set(arena):
        arena.put(idnum, NullObject())

    trailer = _find_trailer(data, resolver) or xref_trailer
    root_id: int | None = None
    info: Any = None
    file_id: Any = None
    if trailer is not None:
        root = _raw_get(trailer, "/Root")
        if isinstance(root, IndirectObject) and isinstance(arena.get(root.idnum), DictionaryObject):
            root_id = root.idnum
        info = _raw_get(trailer, "/Info")
        if isinstance(info, IndirectObject) and info.idnum in arena:
            info_id = info.idnum
            info = arena[info_id]
            if info_id not in referenced:
                arena.discard(info_id)
        else:
            info = None
        file_id = _raw_get(trailer, "/ID")
    if root_id is None or not collect_page_ids(arena, root_id):
        root_id = _synthesise_catalog(arena)
    if root_id is None:
        raise CorruptDocumentError("No document catalog could be recovered")

    return _build_document(arena, root_id, info=info, file_id=file_id, version=_header_version(data))
