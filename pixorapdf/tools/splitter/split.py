"""Plugin adapter exposing the split utilities through the registry."""

from __future__ import annotations

from ...config import SplitOptions
from ...core.utils import get_logger
from ..common.interfaces import BaseTool, OutputEntry
from ..common.pipeline import register_tool
from .splitter import split_pdf
from .utils import build_output_filename

LOGGER = get_logger("pixorapdf.tools.split")


@register_tool("split")
class SplitTool(BaseTool):
    options_type = SplitOptions

    def run(self) -> list[OutputEntry]:
        source = self.context.single_input()
        options: SplitOptions = self.options
        LOGGER.debug("Splitting %s in %s mode", source.name, options.mode)

        results = []
        for page_range, data in split_pdf(source.data, options, title=source.stem):
            name = build_output_filename(source.stem, page_range)
            results.append(OutputEntry(name=name, data=data))
        self.context.resources["result"] = results
        return results
