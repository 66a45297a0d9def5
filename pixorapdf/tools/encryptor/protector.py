"""Password protection for :mod:`pixorapdf` documents.

Permission flags written by :func:`protect_document` are advisory: they are
honoured by compliant readers only and do not prevent a non-compliant tool
from printing, copying or editing the content once the document is open.
"""

from __future__ import annotations

import hashlib
import io
import logging
import os
from typing import Any, Callable

from pypdf import PdfReader
from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    DictionaryObject,
    TextStringObject,
)

from ...config import ProtectOptions
from ...core.model import Document, EncryptionState, ObjectArena, PdfStream
from ...core.parser import load_document, looks_encrypted
from ...core.writer import write_document
from ...exceptions import CorruptDocumentError, EncryptedDocumentError, WeakPasswordError
from .security import create_security_handler

LOGGER = logging.getLogger("pixorapdf.protect")

CREATOR = "PixoraTools PDF Protector"

Cipher = Callable[[int, int, bytes], bytes]


def _string_bytes(value: TextStringObject | ByteStringObject) -> bytes:
    if isinstance(value, TextStringObject):
        return value.get_original_bytes()
    return bytes(value)


def _encrypt_value(value: Any, cipher: Cipher, idnum: int, generation: int) -> Any:
    if isinstance(value, (TextStringObject, ByteStringObject)):
        return ByteStringObject(cipher(idnum, generation, _string_bytes(value)))
    if isinstance(value, PdfStream):
        return PdfStream(
            dictionary=_encrypt_value(value.dictionary, cipher, idnum, generation),
            data=cipher(idnum, generation, value.data),
        )
    if isinstance(value, DictionaryObject):
        return DictionaryObject(
            {key: _encrypt_value(item, cipher, idnum, generation) for key, item in value.items()}
        )
    if isinstance(value, ArrayObject):
        return ArrayObject(_encrypt_value(item, cipher, idnum, generation) for item in value)
    return value


def _new_file_id() -> tuple[bytes, bytes]:
    digest = hashlib.md5(os.urandom(32)).digest()
    return (digest, digest)


def protect_document(document: Document, options: ProtectOptions) -> Document:
    """Return an encrypted copy of *document*.

    Every string and stream in the document, including the document
    information dictionary, is encrypted under a key derived from the
    passwords in *options*. When ``owner_password`` is empty the user
    password doubles as the owner password.

    Raises:
        WeakPasswordError: if both passwords are empty.
        EncryptedDocumentError: if *document* is already encrypted.
    """

    user_password = options.user_password or ""
    owner_password = options.owner_password or user_password
    if not user_password and not owner_password:
        raise WeakPasswordError()
    if document.is_encrypted:
        raise EncryptedDocumentError("Input PDF is already encrypted")

    file_id = document.file_id or _new_file_id()
    handler = create_security_handler(options.algorithm)
    setup = handler.setup(user_password, owner_password, sorted(options.permissions), file_id[0])

    def cipher(idnum: int, generation: int, data: bytes) -> bytes:
        return handler.encrypt(setup.key, idnum, generation, data)

    arena = ObjectArena()
    for idnum, value in document.objects.items():
        generation = document.objects.generation(idnum)
        arena.put(idnum, _encrypt_value(value, cipher, idnum, generation), generation)

    metadata = document.metadata.replace(creator=CREATOR)
    info_id = document.info_id
    if info_id is None:
        info_id = arena.reserve()
    arena.put(info_id, _encrypt_value(metadata.to_info(), cipher, info_id, 0))
    encrypt_ref = arena.add(setup.dictionary)

    LOGGER.info(
        "Encrypted %d object(s) with %s (permissions: %s)",
        len(document.objects),
        options.algorithm.value,
        ", ".join(sorted(options.permissions)) or "none",
    )
    return document.evolve(
        objects=arena,
        metadata=metadata,
        info_id=info_id,
        file_id=file_id,
        encryption=EncryptionState(
            algorithm=options.algorithm,
            key=setup.key,
            permissions=setup.permissions,
            owner_hash=setup.owner_hash,
            user_hash=setup.user_hash,
            dictionary_id=encrypt_ref.idnum,
        ),
    )


def protect_pdf(data: bytes, options: ProtectOptions) -> bytes:
    """Encrypt PDF bytes and return the protected serialisation."""

    if not (options.user_password or options.owner_password):
        raise WeakPasswordError()
    if is_pdf_encrypted(data):
        raise EncryptedDocumentError("Input PDF is already encrypted")
    return write_document(protect_document(load_document(data), options))


def unprotect_document(data: bytes, password: str) -> Document:
    """Open encrypted PDF bytes with *password* and return a plain Document."""

    if not is_pdf_encrypted(data):
        raise EncryptedDocumentError("Input PDF is not encrypted")
    document = load_document(data, password=password)
    LOGGER.info("Decrypted document with %d page(s)", document.page_count)
    return document


def unprotect_pdf(data: bytes, password: str) -> bytes:
    """Decrypt PDF bytes with *password* and return the unencrypted serialisation."""

    return write_document(unprotect_document(data, password))


def is_pdf_encrypted(data: bytes) -> bool:
    """Return ``True`` when *data* is an encrypted PDF document."""

    if not data:
        raise CorruptDocumentError("PDF data is empty")
    try:
        reader = PdfReader(io.BytesIO(data), strict=False)
        return bool(reader.is_encrypted)
    except Exception:  # pypdf exceptions vary; damaged files get a textual check
        return looks_encrypted(data)


__all__ = [
    "CREATOR",
    "protect_document",
    "protect_pdf",
    "unprotect_document",
    "unprotect_pdf",
    "is_pdf_encrypted",
]
