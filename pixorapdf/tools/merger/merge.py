"""Plugin exposing PDF merge capabilities through the registry."""

from __future__ import annotations

from ...config import MergeOptions
from ...core.utils import get_logger
from ...exceptions import InvalidOptionsError
from ..common.interfaces import BaseTool, OutputEntry
from ..common.pipeline import register_tool
from .merger import merge_pdfs

LOGGER = get_logger("pixorapdf.tools.merge")


@register_tool("merge")
class MergeTool(BaseTool):
    options_type = MergeOptions
    per_file = False

    def run(self) -> list[OutputEntry]:
        inputs = self.context.inputs
        if not inputs:
            raise InvalidOptionsError("No input PDFs provided")

        LOGGER.debug("Merging %d input(s)", len(inputs))
        data = merge_pdfs(
            [item.data for item in inputs],
            options=self.options,
            names=[item.stem for item in inputs],
        )
        entry = OutputEntry(name="merged.pdf", data=data)
        self.context.resources["result"] = entry
        return [entry]
