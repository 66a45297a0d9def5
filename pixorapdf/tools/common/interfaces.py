"""Core interfaces and context objects shared by pixorapdf tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Callable, ClassVar


@dataclass(frozen=True, slots=True)
class InputFile:
    """Named byte buffer handed to a tool."""

    name: str
    data: bytes

    @property
    def stem(self) -> str:
        return PurePath(self.name).stem or "document"


@dataclass(frozen=True, slots=True)
class OutputEntry:
    """One produced artefact: file name, payload and media type."""

    name: str
    data: bytes
    media_type: str = "application/pdf"


@dataclass
class ToolContext:
    """Holds shared execution state for a tool invocation."""

    inputs: list[InputFile]
    options: Any = None
    resources: dict[str, Any] = field(default_factory=dict)

    def single_input(self) -> InputFile:
        if len(self.inputs) != 1:
            raise ValueError(f"Expected exactly one input, got {len(self.inputs)}")
        return self.inputs[0]


class BaseTool:
    """Base class for all pluggable pixorapdf tools.

    ``per_file`` tools are invoked once for each input by the batch
    orchestrator; the others receive every input in a single context.
    """

    name: ClassVar[str]
    options_type: ClassVar[type | None] = None
    per_file: ClassVar[bool] = True

    def __init__(self, context: ToolContext) -> None:
        self.context = context

    @property
    def options(self) -> Any:
        if self.context.options is None and self.options_type is not None:
            self.context.options = self.options_type()
        return self.context.options

    def run(self) -> list[OutputEntry]:  # pragma: no cover - to be implemented by subclasses
        raise NotImplementedError


ToolFactory = Callable[[ToolContext], BaseTool]
