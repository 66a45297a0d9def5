"""Shared domain models used across pixorapdf tools.

A :class:`Document` is an arena of indirect objects indexed by object number.
Values are :mod:`pypdf.generic` objects (dictionaries, arrays, names, numbers,
strings, references) plus :class:`PdfStream` for stream objects. Documents are
never mutated once built; every transform produces a new :class:`Document`
that may share unchanged values with its source.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping

from PIL import Image
from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NullObject,
    NumberObject,
    TextStringObject,
    create_string_object,
)

__all__ = [
    "ObjectArena",
    "PdfStream",
    "Page",
    "Document",
    "DocumentMetadata",
    "EncryptionAlgorithm",
    "EncryptionState",
    "ColorMode",
    "RasterImage",
    "INHERITABLE_PAGE_KEYS",
    "LETTER_MEDIA_BOX",
]

INHERITABLE_PAGE_KEYS = ("/Resources", "/MediaBox", "/CropBox", "/Rotate")
LETTER_MEDIA_BOX = (0.0, 0.0, 612.0, 792.0)
_MAX_INDIRECTION = 32
_MAX_TREE_DEPTH = 64


@dataclass(slots=True)
class PdfStream:
    """Stream object: dictionary, encoded payload and its filter chain.

    ``data`` always holds the bytes exactly as they would be written to the
    file, i.e. with every filter named in ``/Filter`` already applied. The
    ``/Length`` entry is never stored; the writer recomputes it.
    """

    dictionary: DictionaryObject
    data: bytes

    @property
    def filters(self) -> list[str]:
        value = self.dictionary.get("/Filter")
        if value is None or isinstance(value, NullObject):
            return []
        if isinstance(value, ArrayObject):
            return [str(item) for item in value]
        return [str(value)]

    @property
    def decode_parms(self) -> list[DictionaryObject | None]:
        value = self.dictionary.get("/DecodeParms")
        count = len(self.filters)
        if isinstance(value, ArrayObject):
            parms = [item if isinstance(item, DictionaryObject) else None for item in value]
        elif isinstance(value, DictionaryObject):
            parms = [value]
        else:
            parms = []
        return (parms + [None] * count)[:count]

    def get(self, key: str, default: Any = None) -> Any:
        return self.dictionary.get(key, default)

    def get_object(self) -> "PdfStream":
        return self

    def with_payload(
        self,
        data: bytes,
        filters: Iterable[str] = (),
        *,
        extra: Mapping[str, Any] | None = None,
        drop: Iterable[str] = (),
    ) -> "PdfStream":
        """Return a copy holding *data* encoded with *filters*."""

        dictionary = DictionaryObject(
            {key: value for key, value in self.dictionary.items() if key not in ("/Filter", "/DecodeParms", *drop)}
        )
        names = [NameObject(name) for name in filters]
        if len(names) == 1:
            dictionary[NameObject("/Filter")] = names[0]
        elif names:
            dictionary[NameObject("/Filter")] = ArrayObject(names)
        for key, value in (extra or {}).items():
            dictionary[NameObject(key)] = value
        return PdfStream(dictionary=dictionary, data=data)


class ObjectArena:
    """Indirect objects indexed by object number (the cross-reference table).

    The arena doubles as the resolver handed to :class:`IndirectObject`, so
    pypdf helpers that dereference values keep working on our objects.
    """

    def __init__(
        self,
        objects: Mapping[int, Any] | None = None,
        generations: Mapping[int, int] | None = None,
    ) -> None:
        self._objects: dict[int, Any] = dict(objects or {})
        self._generations: dict[int, int] = dict(generations or {})
        self._next = max(self._objects, default=0) + 1

    def __contains__(self, idnum: object) -> bool:
        return idnum in self._objects

    def __getitem__(self, idnum: int) -> Any:
        return self._objects[idnum]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._objects))

    def __len__(self) -> int:
        return len(self._objects)

    def items(self) -> Iterator[tuple[int, Any]]:
        for idnum in sorted(self._objects):
            yield idnum, self._objects[idnum]

    def get(self, idnum: int, default: Any = None) -> Any:
        return self._objects.get(idnum, default)

    def generation(self, idnum: int) -> int:
        return self._generations.get(idnum, 0)

    @property
    def max_id(self) -> int:
        return max(self._objects, default=0)

    def ref(self, idnum: int) -> IndirectObject:
        return IndirectObject(idnum, self.generation(idnum), self)

    def reserve(self) -> int:
        idnum = self._next
        self._next += 1
        return idnum

    def put(self, idnum: int, value: Any, generation: int = 0) -> IndirectObject:
        self._objects[idnum] = value
        if generation:
            self._generations[idnum] = generation
        self._next = max(self._next, idnum + 1)
        return self.ref(idnum)

    def add(self, value: Any) -> IndirectObject:
        return self.put(self.reserve(), value)

    def discard(self, idnum: int) -> None:
        self._objects.pop(idnum, None)
        self._generations.pop(idnum, None)

    def copy(self) -> "ObjectArena":
        return ObjectArena(self._objects, self._generations)

    def subset(self, ids: Iterable[int]) -> "ObjectArena":
        keep = set(ids)
        return ObjectArena(
            {idnum: value for idnum, value in self._objects.items() if idnum in keep},
            {idnum: gen for idnum, gen in self._generations.items() if idnum in keep},
        )

    def get_object(self, reference: IndirectObject | int) -> Any:
        idnum = reference if isinstance(reference, int) else reference.idnum
        return self._objects.get(idnum, NullObject())


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, NullObject):
        return None
    if isinstance(value, ByteStringObject):
        return bytes(value).decode("latin-1")
    return str(value)


@dataclass(frozen=True, slots=True)
class DocumentMetadata:
    title: str | None = None
    author: str | None = None
    subject: str | None = None
    keywords: str | None = None
    creator: str | None = None
    producer: str | None = None
    creation_date: str | None = None
    modified_date: str | None = None
    extra: Mapping[str, str] = field(default_factory=dict)

    _KEYS = {
        "/Title": "title",
        "/Author": "author",
        "/Subject": "subject",
        "/Keywords": "keywords",
        "/Creator": "creator",
        "/Producer": "producer",
        "/CreationDate": "creation_date",
        "/ModDate": "modified_date",
    }

    @classmethod
    def from_info(cls, info: Mapping[str, Any] | None) -> "DocumentMetadata":
        if not info:
            return cls()
        known: dict[str, str | None] = {}
        extra: dict[str, str] = {}
        for key, value in info.items():
            text = _text(value)
            if text is None:
                continue
            if key in cls._KEYS:
                known[cls._KEYS[key]] = text
            elif isinstance(value, (TextStringObject, ByteStringObject, NameObject, NumberObject)):
                extra[str(key)] = text
        return cls(**known, extra=extra)

    def is_empty(self) -> bool:
        return not self.extra and all(getattr(self, attr) is None for attr in self._KEYS.values())

    def to_info(self) -> DictionaryObject:
        info = DictionaryObject()
        for key, attr in self._KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                info[NameObject(key)] = create_string_object(value)
        for key, value in self.extra.items():
            info[NameObject(key)] = create_string_object(value)
        return info

    def replace(self, **changes: Any) -> "DocumentMetadata":
        return dataclasses.replace(self, **changes)

    def as_dict(self) -> dict[str, str]:
        data = {key: getattr(self, attr) for key, attr in self._KEYS.items() if getattr(self, attr) is not None}
        data.update(self.extra)
        return data


class EncryptionAlgorithm(str, Enum):
    RC4_40 = "rc4-40"
    RC4_128 = "rc4-128"
    AES_256 = "aes-256"


@dataclass(frozen=True, slots=True)
class EncryptionState:
    """Encryption attached to a :class:`Document` by the encryption module.

    ``permissions`` is the signed 32-bit ``/P`` value. ``owner_hash`` and
    ``user_hash`` are the ``/O`` and ``/U`` entries of the encryption
    dictionary stored at ``dictionary_id``.
    """

    algorithm: EncryptionAlgorithm
    key: bytes
    permissions: int
    owner_hash: bytes
    user_hash: bytes
    dictionary_id: int


@dataclass(frozen=True, slots=True)
class Page:
    index: int
    object_id: int
    media_box: tuple[float, float, float, float]
    rotation: int
    resources: DictionaryObject

    @property
    def width(self) -> float:
        return self.media_box[2] - self.media_box[0]

    @property
    def height(self) -> float:
        return self.media_box[3] - self.media_box[1]


@dataclass(frozen=True, slots=True)
class Document:
    """In-memory PDF: object arena, page order, metadata and trailer data."""

    objects: ObjectArena
    root_id: int
    page_ids: tuple[int, ...]
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    encryption: EncryptionState | None = None
    file_id: tuple[bytes, bytes] | None = None
    info_id: int | None = None
    version: str = "1.7"

    @property
    def page_count(self) -> int:
        return len(self.page_ids)

    @property
    def is_encrypted(self) -> bool:
        return self.encryption is not None

    def evolve(self, **changes: Any) -> "Document":
        return dataclasses.replace(self, **changes)

    def resolve(self, value: Any) -> Any:
        for _ in range(_MAX_INDIRECTION):
            if not isinstance(value, IndirectObject):
                return value
            value = self.objects.get(value.idnum, NullObject())
        return NullObject()

    def lookup(self, value: Any, key: str, default: Any = None) -> Any:
        """Resolve *value* as a dictionary and return its resolved *key*."""

        container = self.resolve(value)
        if isinstance(container, PdfStream):
            container = container.dictionary
        if not isinstance(container, DictionaryObject):
            return default
        found = self.resolve(container.get(key))
        if found is None or isinstance(found, NullObject):
            return default
        return found

    @property
    def catalog(self) -> DictionaryObject:
        catalog = self.resolve(self.objects.ref(self.root_id))
        return catalog if isinstance(catalog, DictionaryObject) else DictionaryObject()

    def trailer_roots(self) -> list[IndirectObject]:
        """References the trailer points at: catalog, info and encryption."""

        roots = [self.objects.ref(self.root_id)]
        if self.info_id is not None:
            roots.append(self.objects.ref(self.info_id))
        if self.encryption is not None:
            roots.append(self.objects.ref(self.encryption.dictionary_id))
        return roots

    def inherited(self, page_id: int, key: str) -> Any:
        node = self.resolve(self.objects.ref(page_id))
        for _ in range(_MAX_TREE_DEPTH):
            if not isinstance(node, DictionaryObject):
                return None
            if key in node:
                return node.get(key)
            node = self.resolve(node.get("/Parent"))
        return None

    def flattened_page(self, page_id: int) -> DictionaryObject:
        """Copy of the page dictionary with inherited attributes made explicit."""

        page = self.resolve(self.objects.ref(page_id))
        flattened = DictionaryObject(
            {key: value for key, value in page.items() if key != "/Parent"}
            if isinstance(page, DictionaryObject)
            else {}
        )
        for key in INHERITABLE_PAGE_KEYS:
            if key not in flattened:
                value = self.inherited(page_id, key)
                if value is not None:
                    flattened[NameObject(key)] = value
        return flattened

    def page(self, index: int) -> Page:
        page_id = self.page_ids[index]
        box = self._rectangle(self.inherited(page_id, "/MediaBox")) or LETTER_MEDIA_BOX
        rotation = self.resolve(self.inherited(page_id, "/Rotate"))
        try:
            rotation = int(rotation or 0) % 360
        except (TypeError, ValueError):
            rotation = 0
        if rotation % 90:
            rotation = 0
        resources = self.resolve(self.inherited(page_id, "/Resources"))
        if not isinstance(resources, DictionaryObject):
            resources = DictionaryObject()
        return Page(index=index, object_id=page_id, media_box=box, rotation=rotation, resources=resources)

    @property
    def pages(self) -> list[Page]:
        return [self.page(index) for index in range(self.page_count)]

    def page_content(self, index: int) -> bytes:
        """Decoded, concatenated content streams of page *index*."""

        from .filters import decode_stream

        contents = self.resolve(self.resolve(self.objects.ref(self.page_ids[index])).get("/Contents"))
        parts = contents if isinstance(contents, ArrayObject) else [contents]
        chunks = []
        for part in parts:
            stream = self.resolve(part)
            if isinstance(stream, PdfStream):
                chunks.append(decode_stream(stream))
        return b"\n".join(chunks)

    def _rectangle(self, value: Any) -> tuple[float, float, float, float] | None:
        array = self.resolve(value)
        if not isinstance(array, ArrayObject) or len(array) != 4:
            return None
        try:
            x0, y0, x1, y1 = (float(self.resolve(item)) for item in array)
        except (TypeError, ValueError):
            return None
        return (min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


class ColorMode(str, Enum):
    COLOR = "color"
    GRAYSCALE = "grayscale"
    MONOCHROME = "monochrome"


_MEDIA_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "tiff": "image/tiff",
}


@dataclass(slots=True)
class RasterImage:
    """Rendered page, before and after encoding to a raster format."""

    page_index: int
    pixels: Image.Image
    color_mode: ColorMode
    dpi: int
    format: str
    data: bytes = b""

    @property
    def size(self) -> tuple[int, int]:
        return self.pixels.size

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self.format]

    @property
    def extension(self) -> str:
        return "jpg" if self.format == "jpeg" else self.format
