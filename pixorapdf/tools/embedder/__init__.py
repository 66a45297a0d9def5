"""Image to PDF conversion."""

from __future__ import annotations

from .embedder import Placement, compute_placement, embed_images, images_to_pdf, natural_size

__all__ = ["Placement", "compute_placement", "embed_images", "images_to_pdf", "natural_size"]
