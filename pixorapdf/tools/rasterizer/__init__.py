"""PDF to image conversion."""

from __future__ import annotations

from .rasterizer import apply_color_mode, encode_raster, rasterize_document, rasterize_pdf
from .renderer import PageRenderer

__all__ = ["PageRenderer", "apply_color_mode", "encode_raster", "rasterize_document", "rasterize_pdf"]
