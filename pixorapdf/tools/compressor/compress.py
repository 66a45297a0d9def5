"""Plugin exposing compression helper through the registry."""

from __future__ import annotations

from ...config import CompressOptions
from ...core.utils import format_file_size, get_logger
from ..common.interfaces import BaseTool, OutputEntry
from ..common.pipeline import register_tool
from .compressor import compress_pdf

LOGGER = get_logger("pixorapdf.tools.compress")


@register_tool("compress")
class CompressTool(BaseTool):
    options_type = CompressOptions

    def run(self) -> list[OutputEntry]:
        source = self.context.single_input()
        options: CompressOptions = self.options
        LOGGER.debug(
            "Compressing %s with level %s (quality %d)",
            source.name,
            options.level or "custom",
            options.quality,
        )
        result = compress_pdf(source.data, options)
        LOGGER.debug(
            "%s: %s -> %s",
            source.name,
            format_file_size(result.original_size),
            format_file_size(result.compressed_size),
        )
        self.context.resources["result"] = result
        return [OutputEntry(name=f"compressed_{source.name}", data=result.data)]
