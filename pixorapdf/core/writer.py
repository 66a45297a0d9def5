"""Serialise a :class:`~pixorapdf.core.model.Document` to PDF bytes.

Values are written compactly: no line breaks inside dictionaries or arrays
and a separating space only where the next token would otherwise merge with
the previous one. With ``object_streams=True`` plain objects are packed into
a Flate-compressed ``/ObjStm`` and the cross-reference table becomes an
``/XRef`` stream (PDF 1.5).
"""

from __future__ import annotations

import hashlib
import io
import logging
from typing import Any

from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NullObject,
    NumberObject,
)

from ..exceptions import EncodingError
from .filters import flate_encode
from .model import Document, PdfStream

LOGGER = logging.getLogger("pixorapdf.writer")

_BINARY_MARKER = b"%\xe2\xe3\xcf\xd3\n"
_DELIMITERS = b"/<[("
_OBJECT_STREAM_VERSION = "1.5"


def _needs_space(previous: bytes, following: bytes) -> bool:
    if not previous or not following:
        return False
    return following[:1] not in _DELIMITERS and previous[-1:] not in b">])"


def _join(parts: list[bytes]) -> bytes:
    out = bytearray()
    for part in parts:
        if _needs_space(bytes(out[-1:]), part):
            out += b" "
        out += part
    return bytes(out)


def _serialise(value: Any) -> bytes:
    if isinstance(value, PdfStream):
        dictionary = DictionaryObject(
            {key: item for key, item in value.dictionary.items() if key != "/Length"}
        )
        dictionary[NameObject("/Length")] = NumberObject(len(value.data))
        return _serialise(dictionary) + b"\nstream\n" + value.data + b"\nendstream"
    if isinstance(value, DictionaryObject):
        parts: list[bytes] = []
        for key, item in value.items():
            parts.append(_serialise(NameObject(key)))
            parts.append(_serialise(item))
        return b"<<" + _join(parts) + b">>"
    if isinstance(value, ArrayObject):
        return b"[" + b" ".join(_serialise(item) for item in value) + b"]"
    if value is None:
        value = NullObject()
    if not hasattr(value, "write_to_stream"):
        raise EncodingError(f"Cannot serialise value of type {type(value).__name__}")
    buffer = io.BytesIO()
    value.write_to_stream(buffer)
    return buffer.getvalue()


def _xref_entry(offset: int, generation: int, kind: bytes) -> bytes:
    return b"%010d %05d %s \n" % (offset, generation, kind)


def _version_key(version: str) -> tuple[int, ...]:
    try:
        return tuple(int(part) for part in version.split("."))
    except ValueError:
        return (0,)


def _file_id(document: Document, written: bytes) -> ArrayObject:
    file_id = document.file_id
    if file_id is None:
        digest = hashlib.md5(written).digest()
        file_id = (digest, digest)
    return ArrayObject([ByteStringObject(file_id[0]), ByteStringObject(file_id[1])])


def _byte_width(value: int) -> int:
    return max((value.bit_length() + 7) // 8, 1)


def _object_stream(members: list[tuple[int, Any]]) -> PdfStream:
    header: list[bytes] = []
    body = bytearray()
    for idnum, value in members:
        header.append(b"%d %d" % (idnum, len(body)))
        body += _serialise(value) + b"\n"
    prefix = b" ".join(header) + b"\n"
    dictionary = DictionaryObject(
        {
            NameObject("/Type"): NameObject("/ObjStm"),
            NameObject("/N"): NumberObject(len(members)),
            NameObject("/First"): NumberObject(len(prefix)),
            NameObject("/Filter"): NameObject("/FlateDecode"),
        }
    )
    return PdfStream(dictionary, flate_encode(prefix + bytes(body)))


def _xref_stream(rows: list[tuple[int, int, int]], trailer: DictionaryObject) -> PdfStream:
    widths = [max(_byte_width(row[column]) for row in rows) for column in range(3)]
    widths[0] = 1
    data = b"".join(
        b"".join(field.to_bytes(width, "big") for field, width in zip(row, widths)) for row in rows
    )
    dictionary = DictionaryObject(trailer)
    dictionary[NameObject("/Type")] = NameObject("/XRef")
    dictionary[NameObject("/W")] = ArrayObject(NumberObject(width) for width in widths)
    dictionary[NameObject("/Filter")] = NameObject("/FlateDecode")
    return PdfStream(dictionary, flate_encode(data))


def write_document(document: Document, *, object_streams: bool = False) -> bytes:
    """Serialise *document*: header, objects in ascending order, xref, trailer.

    Every object listed in the arena is written exactly once. When the
    document carries metadata but no ``/Info`` object, a fresh one is emitted
    after the highest object number.

    ``object_streams`` packs generation-0 non-stream objects into a single
    object stream indexed by a cross-reference stream. It is ignored for
    encrypted documents.
    """

    objects = dict(document.objects.items())
    generations = {idnum: document.objects.generation(idnum) for idnum in objects}
    info_id = document.info_id
    if info_id is None and not document.metadata.is_empty():
        info_id = document.objects.max_id + 1
        objects[info_id] = document.metadata.to_info()
        generations[info_id] = 0

    trailer = DictionaryObject()
    trailer[NameObject("/Root")] = IndirectObject(document.root_id, generations.get(document.root_id, 0), None)
    if info_id is not None:
        trailer[NameObject("/Info")] = IndirectObject(info_id, generations.get(info_id, 0), None)
    if document.encryption is not None:
        encrypt_id = document.encryption.dictionary_id
        trailer[NameObject("/Encrypt")] = IndirectObject(encrypt_id, generations.get(encrypt_id, 0), None)

    if object_streams and document.encryption is None:
        return _write_compressed(document, objects, generations, trailer)

    buffer = io.BytesIO()
    buffer.write(f"%PDF-{document.version}\n".encode("ascii"))
    buffer.write(_BINARY_MARKER)
    offsets: dict[int, int] = {}
    for idnum in sorted(objects):
        offsets[idnum] = buffer.tell()
        buffer.write(b"%d %d obj\n" % (idnum, generations[idnum]))
        buffer.write(_serialise(objects[idnum]))
        buffer.write(b"\nendobj\n")

    size = max(objects, default=0) + 1
    xref_offset = buffer.tell()
    buffer.write(b"xref\n0 %d\n" % size)
    buffer.write(_xref_entry(0, 65535, b"f"))
    for idnum in range(1, size):
        if idnum in offsets:
            buffer.write(_xref_entry(offsets[idnum], generations[idnum], b"n"))
        else:
            buffer.write(_xref_entry(0, 1, b"f"))

    trailer[NameObject("/Size")] = NumberObject(size)
    trailer[NameObject("/ID")] = _file_id(document, buffer.getvalue())
    buffer.write(b"trailer\n")
    buffer.write(_serialise(trailer))
    buffer.write(b"\nstartxref\n%d\n%%%%EOF\n" % xref_offset)
    LOGGER.debug("Serialised %d objects (%d bytes)", len(offsets), buffer.tell())
    return buffer.getvalue()


def _write_compressed(
    document: Document,
    objects: dict[int, Any],
    generations: dict[int, int],
    trailer: DictionaryObject,
) -> bytes:
    version = max(document.version, _OBJECT_STREAM_VERSION, key=_version_key)
    packed = [
        (idnum, objects[idnum])
        for idnum in sorted(objects)
        if generations[idnum] == 0 and not isinstance(objects[idnum], PdfStream)
    ]
    packed_ids = {idnum for idnum, _ in packed}
    direct = {idnum: value for idnum, value in objects.items() if idnum not in packed_ids}
    next_id = max(objects, default=0) + 1
    stream_id = None
    if packed:
        stream_id = next_id
        direct[stream_id] = _object_stream(packed)
        generations[stream_id] = 0
        next_id += 1
    xref_id = next_id
    size = xref_id + 1

    buffer = io.BytesIO()
    buffer.write(f"%PDF-{version}\n".encode("ascii"))
    buffer.write(_BINARY_MARKER)
    rows: dict[int, tuple[int, int, int]] = {0: (0, 0, 65535)}
    for idnum in sorted(direct):
        rows[idnum] = (1, buffer.tell(), generations[idnum])
        buffer.write(b"%d %d obj\n" % (idnum, generations[idnum]))
        buffer.write(_serialise(direct[idnum]))
        buffer.write(b"\nendobj\n")
    for index, (idnum, _) in enumerate(packed):
        rows[idnum] = (2, stream_id, index)

    xref_offset = buffer.tell()
    rows[xref_id] = (1, xref_offset, 0)
    trailer[NameObject("/Size")] = NumberObject(size)
    trailer[NameObject("/ID")] = _file_id(document, buffer.getvalue())
    table = [rows.get(idnum, (0, 0, 1)) for idnum in range(size)]
    buffer.write(b"%d 0 obj\n" % xref_id)
    buffer.write(_serialise(_xref_stream(table, trailer)))
    buffer.write(b"\nendobj\nstartxref\n%d\n%%%%EOF\n" % xref_offset)
    LOGGER.debug(
        "Serialised %d objects, %d in an object stream (%d bytes)", len(objects), len(packed), buffer.tell()
    )
    return buffer.getvalue()


__all__ = ["write_document"]
