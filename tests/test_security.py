from __future__ import annotations

import io

import pytest
from pypdf import PdfReader

from pixorapdf.config import ProtectOptions
from pixorapdf.core.parser import load_document
from pixorapdf.exceptions import (
    CorruptDocumentError,
    EncryptedDocumentError,
    InvalidOptionsError,
    UnsupportedFormatError,
    WeakPasswordError,
)
from pixorapdf.tools.encryptor import (
    is_pdf_encrypted,
    permission_flags,
    protect_pdf,
    unprotect_pdf,
)

STRENGTHS = ["rc4-40", "rc4-128", "aes-256"]


@pytest.mark.parametrize("algorithm", STRENGTHS)
def test_protect_pdf_encrypts_document(sample_pdf: bytes, algorithm: str) -> None:
    protected = protect_pdf(sample_pdf, ProtectOptions(user_password="secret", algorithm=algorithm))

    reader = PdfReader(io.BytesIO(protected))
    assert reader.is_encrypted is True
    assert is_pdf_encrypted(protected) is True
    assert reader.decrypt("secret") != 0
    assert len(reader.pages) == 5
    assert reader.metadata["/Title"] == "Sample"


@pytest.mark.parametrize("algorithm", STRENGTHS)
def test_wrong_password_does_not_open(sample_pdf: bytes, algorithm: str) -> None:
    protected = protect_pdf(sample_pdf, ProtectOptions(user_password="secret", algorithm=algorithm))

    assert PdfReader(io.BytesIO(protected)).decrypt("wrong") == 0
    with pytest.raises(EncryptedDocumentError):
        load_document(protected, password="wrong")


@pytest.mark.parametrize("algorithm", STRENGTHS)
def test_owner_password_opens_document(sample_pdf: bytes, algorithm: str) -> None:
    options = ProtectOptions(user_password="reader", owner_password="boss", algorithm=algorithm)
    protected = protect_pdf(sample_pdf, options)

    assert PdfReader(io.BytesIO(protected)).decrypt("boss") != 0
    assert load_document(protected, password="boss").page_count == 5


def test_encryption_dictionary_reflects_strength(sample_pdf: bytes) -> None:
    def encrypt_entry(algorithm: str):
        data = protect_pdf(sample_pdf, ProtectOptions(user_password="secret", algorithm=algorithm))
        return PdfReader(io.BytesIO(data)).trailer["/Encrypt"]

    assert (encrypt_entry("rc4-40")["/V"], encrypt_entry("rc4-40")["/R"]) == (1, 2)
    assert (encrypt_entry("rc4-128")["/V"], encrypt_entry("rc4-128")["/R"]) == (2, 3)
    aes = encrypt_entry("256")
    assert (aes["/V"], aes["/R"]) == (5, 6)
    assert aes["/CF"]["/StdCF"]["/CFM"] == "/AESV3"


def test_permissions_allow_only_printing(sample_pdf: bytes) -> None:
    protected = protect_pdf(
        sample_pdf,
        ProtectOptions(user_password="secret", permissions=frozenset({"print"})),
    )

    flags = int(PdfReader(io.BytesIO(protected)).trailer["/Encrypt"]["/P"])
    assert flags < 0
    assert flags & (1 << 2)
    assert not flags & (1 << 3)
    assert not flags & (1 << 4)
    assert not flags & (1 << 5)


def test_permission_flags() -> None:
    assert permission_flags([], 2) == -3904
    assert permission_flags(["print"], 3) & (1 << 11)
    assert not permission_flags(["print"], 2) & (1 << 11)
    with pytest.raises(InvalidOptionsError):
        permission_flags(["teleport"], 3)


def test_unprotect_pdf_removes_encryption(sample_pdf: bytes) -> None:
    protected = protect_pdf(sample_pdf, ProtectOptions(user_password="secret", algorithm="aes-256"))

    plain = unprotect_pdf(protected, "secret")

    reader = PdfReader(io.BytesIO(plain))
    assert reader.is_encrypted is False
    assert len(reader.pages) == 5
    assert reader.metadata["/Title"] == "Sample"


def test_unprotect_pdf_requires_correct_password(sample_pdf: bytes) -> None:
    protected = protect_pdf(sample_pdf, ProtectOptions(user_password="secret"))

    with pytest.raises(EncryptedDocumentError):
        unprotect_pdf(protected, "wrong")


def test_unprotect_pdf_rejects_plain_input(sample_pdf: bytes) -> None:
    with pytest.raises(EncryptedDocumentError):
        unprotect_pdf(sample_pdf, "secret")


def test_protect_pdf_refuses_already_encrypted(sample_pdf: bytes) -> None:
    protected = protect_pdf(sample_pdf, ProtectOptions(user_password="secret"))

    with pytest.raises(EncryptedDocumentError):
        protect_pdf(protected, ProtectOptions(user_password="another"))


def test_protect_pdf_requires_a_password(sample_pdf: bytes) -> None:
    with pytest.raises(WeakPasswordError):
        protect_pdf(sample_pdf, ProtectOptions())


def test_owner_only_password_keeps_document_readable(sample_pdf: bytes) -> None:
    protected = protect_pdf(sample_pdf, ProtectOptions(owner_password="boss"))

    reader = PdfReader(io.BytesIO(protected))
    assert reader.decrypt("") != 0
    assert load_document(protected).page_count == 5


def test_protect_options_validation() -> None:
    with pytest.raises(InvalidOptionsError):
        ProtectOptions(user_password="x", permissions=frozenset({"fly"}))
    with pytest.raises(UnsupportedFormatError):
        ProtectOptions(user_password="x", algorithm="des")


def test_is_pdf_encrypted(sample_pdf: bytes) -> None:
    assert is_pdf_encrypted(sample_pdf) is False
    with pytest.raises(CorruptDocumentError):
        is_pdf_encrypted(b"")
