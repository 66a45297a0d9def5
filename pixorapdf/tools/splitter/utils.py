"""Range helpers for the :mod:`pixorapdf.tools.splitter` package."""

from __future__ import annotations

import math
from typing import Iterable, List, Sequence

from ...config import PageRange
from ...exceptions import PageRangeError


def validate_ranges(ranges: Iterable[PageRange], *, total_pages: int) -> List[PageRange]:
    """Check each range against *total_pages*.

    Raises:
        PageRangeError: if a range starts before page 1, ends after the last
            page, or has its start after its end.
    """

    validated: List[PageRange] = []
    for page_range in ranges:
        if page_range.start < 1 or page_range.end > total_pages or page_range.start > page_range.end:
            raise PageRangeError(
                f"Invalid page range {page_range.start}-{page_range.end} "
                f"for a document with {total_pages} page(s)",
                ranges=[page_range],
            )
        validated.append(page_range)
    if not validated:
        raise PageRangeError("No page ranges given")
    return validated


def equal_part_ranges(total_pages: int, parts: int) -> List[PageRange]:
    """Split *total_pages* into parts of ``ceil(total_pages / parts)`` pages.

    The last part receives the remainder and may be smaller. When *parts*
    exceeds what the ceiling allows, fewer ranges are returned.
    """

    if parts < 1:
        raise PageRangeError(f"Part count must be positive, got {parts}")
    per_part = math.ceil(total_pages / parts)
    ranges: List[PageRange] = []
    for part in range(parts):
        start = part * per_part + 1
        if start > total_pages:
            break
        ranges.append(PageRange(start, min(start + per_part - 1, total_pages)))
    return ranges


def single_page_ranges(total_pages: int, pages: Sequence[int] | None = None) -> List[PageRange]:
    numbers = list(pages) if pages else list(range(1, total_pages + 1))
    return [PageRange(number, number) for number in numbers]


def build_output_filename(stem: str, page_range: PageRange, extension: str = "pdf") -> str:
    return f"{stem}_pages_{page_range.start}-{page_range.end}.{extension}"


__all__ = ["validate_ranges", "equal_part_ranges", "single_page_ranges", "build_output_filename"]
