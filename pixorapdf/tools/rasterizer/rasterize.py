"""Plugin exposing page rasterization through the registry."""

from __future__ import annotations

from ...config import RasterizeOptions
from ...core.utils import get_logger
from ..common.interfaces import BaseTool, OutputEntry
from ..common.pipeline import register_tool
from .rasterizer import rasterize_pdf

LOGGER = get_logger("pixorapdf.tools.pdf_to_image")


@register_tool("pdf-to-image")
class RasterizeTool(BaseTool):
    options_type = RasterizeOptions

    def run(self) -> list[OutputEntry]:
        source = self.context.single_input()
        options: RasterizeOptions = self.options
        LOGGER.debug("Rendering %s at %d DPI to %s", source.name, options.dpi, options.format)

        entries = [
            OutputEntry(
                name=f"{source.stem}_page_{image.page_index + 1}.{image.extension}",
                data=image.data,
                media_type=image.media_type,
            )
            for image in rasterize_pdf(source.data, options)
        ]
        self.context.resources["result"] = entries
        return entries
