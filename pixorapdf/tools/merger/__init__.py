"""PDF merging utilities."""

from __future__ import annotations

from .merger import merge_documents, merge_pdfs

__all__ = ["merge_documents", "merge_pdfs"]
