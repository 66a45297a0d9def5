"""Password protection helpers.

Permission bits are advisory: only compliant readers honour them.
"""

from __future__ import annotations

from .protector import (
    is_pdf_encrypted,
    protect_document,
    protect_pdf,
    unprotect_document,
    unprotect_pdf,
)
from .security import create_security_handler, permission_flags

__all__ = [
    "create_security_handler",
    "is_pdf_encrypted",
    "permission_flags",
    "protect_document",
    "protect_pdf",
    "unprotect_document",
    "unprotect_pdf",
]
