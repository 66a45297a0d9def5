from __future__ import annotations

import pytest

from pixorapdf import describe_document
from pixorapdf.config import ProtectOptions
from pixorapdf.exceptions import EncryptedDocumentError
from pixorapdf.tools.encryptor import protect_pdf


def test_describe_document(sample_pdf: bytes) -> None:
    info = describe_document(sample_pdf)

    assert info.num_pages == 5
    assert info.is_encrypted is False
    assert info.metadata["/Title"] == "Sample"
    assert info.object_count >= 6
    assert [page.number for page in info.pages] == [1, 2, 3, 4, 5]
    assert (info.pages[0].width, info.pages[0].height) == (200, 200)


def test_describe_encrypted_document(sample_pdf: bytes) -> None:
    protected = protect_pdf(sample_pdf, ProtectOptions(user_password="secret"))

    info = describe_document(protected, password="secret")
    assert info.is_encrypted is True
    assert info.num_pages == 5
    with pytest.raises(EncryptedDocumentError):
        describe_document(protected)
