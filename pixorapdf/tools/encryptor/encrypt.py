"""Plugin exposing PDF encryption utilities."""

from __future__ import annotations

from ...config import ProtectOptions, UnprotectOptions
from ...core.utils import get_logger
from ...exceptions import WeakPasswordError
from ..common.interfaces import BaseTool, OutputEntry
from ..common.pipeline import register_tool
from .protector import protect_pdf, unprotect_pdf

LOGGER = get_logger("pixorapdf.tools.protect")


@register_tool("protect")
class ProtectTool(BaseTool):
    options_type = ProtectOptions

    def run(self) -> list[OutputEntry]:
        source = self.context.single_input()
        options: ProtectOptions = self.options
        if not (options.user_password or options.owner_password):
            raise WeakPasswordError()

        LOGGER.debug(
            "Encrypting %s with %s, owner password %s",
            source.name,
            options.algorithm.value,
            "<provided>" if options.owner_password else "<default>",
        )
        entry = OutputEntry(name=f"protected_{source.name}", data=protect_pdf(source.data, options))
        self.context.resources["result"] = entry
        return [entry]


@register_tool("unprotect")
class UnprotectTool(BaseTool):
    options_type = UnprotectOptions

    def run(self) -> list[OutputEntry]:
        source = self.context.single_input()
        options: UnprotectOptions = self.options

        LOGGER.debug("Decrypting %s", source.name)
        entry = OutputEntry(name=f"unprotected_{source.name}", data=unprotect_pdf(source.data, options.password))
        self.context.resources["result"] = entry
        return [entry]
