"""Text watermark stamping."""

from __future__ import annotations

from .watermarker import text_matrix, watermark_content, watermark_document, watermark_pdf

__all__ = ["text_matrix", "watermark_content", "watermark_document", "watermark_pdf"]
