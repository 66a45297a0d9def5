"""Plugin exposing text watermarking through the registry."""

from __future__ import annotations

from ...config import WatermarkOptions
from ...core.utils import get_logger
from ..common.interfaces import BaseTool, OutputEntry
from ..common.pipeline import register_tool
from .watermarker import watermark_pdf

LOGGER = get_logger("pixorapdf.tools.watermark")


@register_tool("watermark")
class WatermarkTool(BaseTool):
    options_type = WatermarkOptions

    def run(self) -> list[OutputEntry]:
        source = self.context.single_input()
        options: WatermarkOptions = self.options
        LOGGER.debug("Watermarking %s (%s, %s)", source.name, options.position, options.color)
        entry = OutputEntry(name=f"watermarked_{source.name}", data=watermark_pdf(source.data, options))
        self.context.resources["result"] = entry
        return [entry]
