"""PDF splitting utilities."""

from __future__ import annotations

from .splitter import plan_ranges, split_document, split_pdf
from .utils import build_output_filename, equal_part_ranges, single_page_ranges, validate_ranges

__all__ = [
    "split_document",
    "split_pdf",
    "plan_ranges",
    "validate_ranges",
    "equal_part_ranges",
    "single_page_ranges",
    "build_output_filename",
]
