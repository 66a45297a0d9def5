"""Plugin exposing image to PDF conversion through the registry."""

from __future__ import annotations

from ...config import EmbedOptions
from ...core.utils import get_logger
from ...exceptions import InvalidOptionsError
from ..common.interfaces import BaseTool, OutputEntry
from ..common.pipeline import register_tool
from .embedder import images_to_pdf

LOGGER = get_logger("pixorapdf.tools.image_to_pdf")


@register_tool("image-to-pdf")
class EmbedTool(BaseTool):
    options_type = EmbedOptions
    per_file = False

    def run(self) -> list[OutputEntry]:
        inputs = self.context.inputs
        if not inputs:
            raise InvalidOptionsError("No images provided")

        options: EmbedOptions = self.options
        LOGGER.debug("Embedding %d image(s) on %s %s pages", len(inputs), options.page_size, options.orientation)
        entry = OutputEntry(name="images.pdf", data=images_to_pdf([item.data for item in inputs], options))
        self.context.resources["result"] = entry
        return [entry]
