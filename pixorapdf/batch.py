"""Run one operation over a set of input files.

Per-file operations are invoked once for each input, optionally on a thread
pool. The first failure aborts the whole batch: no partial results are
returned. A single output is returned as-is; several outputs are packaged in
a ZIP archive whose entries follow input order.
"""

from __future__ import annotations

import io
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Mapping, Sequence, Union
from zipfile import ZIP_DEFLATED, ZipFile

from .config import Settings, options_from_mapping
from .exceptions import EncodingError, InvalidOptionsError, PixoraPDFError
from .tools import load_builtin_plugins
from .tools.common.interfaces import BaseTool, InputFile, OutputEntry, ToolContext
from .tools.common.pipeline import registry

LOGGER = logging.getLogger("pixorapdf.batch")

ARCHIVE_MEDIA_TYPE = "application/zip"

InputLike = Union[InputFile, tuple[str, bytes]]


@dataclass(frozen=True, slots=True)
class OperationSuccess:
    """Output of a successful operation: one file or a ZIP of several."""

    name: str
    data: bytes
    media_type: str
    entries: tuple[OutputEntry, ...]

    @property
    def ok(self) -> bool:
        return True

    @property
    def is_archive(self) -> bool:
        return self.media_type == ARCHIVE_MEDIA_TYPE


@dataclass(frozen=True, slots=True)
class OperationFailure:
    message: str
    error: PixoraPDFError | None = None

    @property
    def ok(self) -> bool:
        return False


OperationResult = Union[OperationSuccess, OperationFailure]


def _as_input(item: InputLike) -> InputFile:
    if isinstance(item, InputFile):
        return item
    name, data = item
    return InputFile(name=name, data=data)


def _tool_class(operation: str) -> type[BaseTool]:
    load_builtin_plugins()
    tool_class = registry.get(operation)
    if tool_class is None:
        raise InvalidOptionsError(
            f"Unknown operation: {operation!r} (available: {', '.join(registry.names())})"
        )
    return tool_class


def _resolve_options(operation: str, options: Any) -> Any:
    if options is None or isinstance(options, Mapping):
        return options_from_mapping(operation, options)
    return options


def _invoke(tool_class: type[BaseTool], context: ToolContext, operation: str) -> list[OutputEntry]:
    try:
        return tool_class(context).run()
    except PixoraPDFError:
        raise
    except Exception as exc:
        names = ", ".join(item.name for item in context.inputs)
        LOGGER.exception("%s failed unexpectedly for %s", operation, names)
        raise EncodingError(f"{operation} failed for {names}: {exc}") from exc


def unique_names(names: Sequence[str]) -> list[str]:
    """Suffix repeated names with `` (2)``, `` (3)``... before the extension."""

    seen: dict[str, int] = {}
    taken = set(names)
    result = []
    for name in names:
        count = seen.get(name, 0) + 1
        seen[name] = count
        if count == 1:
            result.append(name)
            continue
        path = PurePath(name)
        candidate = f"{path.stem} ({count}){path.suffix}"
        while candidate in taken:
            count += 1
            candidate = f"{path.stem} ({count}){path.suffix}"
        seen[name] = count
        taken.add(candidate)
        result.append(candidate)
    return result


def create_archive(entries: Sequence[OutputEntry]) -> bytes:
    """ZIP *entries* (deflated) in the given order."""

    buffer = io.BytesIO()
    with ZipFile(buffer, "w", compression=ZIP_DEFLATED) as archive:
        for name, entry in zip(unique_names([entry.name for entry in entries]), entries):
            archive.writestr(name, entry.data)
    return buffer.getvalue()


def run_operation(
    operation: str,
    inputs: Sequence[InputLike],
    options: Any = None,
    *,
    workers: int | None = None,
) -> list[OutputEntry]:
    """Run *operation* and return every produced entry, in input order.

    Raises the first :class:`~pixorapdf.exceptions.PixoraPDFError`
    encountered; entries from other inputs are discarded. Any other exception
    raised by a tool is re-raised as :class:`~pixorapdf.exceptions.EncodingError`
    naming the failing input.
    """

    tool_class = _tool_class(operation)
    files = [_as_input(item) for item in inputs]
    if not files:
        raise InvalidOptionsError("No input files provided")
    options = _resolve_options(operation, options)

    if not tool_class.per_file:
        return _invoke(tool_class, ToolContext(inputs=files, options=options), operation)

    def run_one(item: InputFile) -> list[OutputEntry]:
        LOGGER.debug("Running %s on %s", operation, item.name)
        return _invoke(tool_class, ToolContext(inputs=[item], options=options), operation)

    workers = workers if workers is not None else Settings.from_env().workers
    if workers <= 1 or len(files) == 1:
        results = [run_one(item) for item in files]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(files))) as executor:
            futures: list[Future[list[OutputEntry]]] = [executor.submit(run_one, item) for item in files]
            results = []
            try:
                for future in futures:
                    results.append(future.result())
            except Exception:
                executor.shutdown(wait=True, cancel_futures=True)
                raise
    return [entry for produced in results for entry in produced]


def run_batch(
    operation: str,
    inputs: Sequence[InputLike],
    options: Any = None,
    *,
    workers: int | None = None,
) -> OperationResult:
    """Run *operation* over *inputs* and package the outcome.

    Any failure turns the whole batch into an :class:`OperationFailure`.
    """

    try:
        entries = run_operation(operation, inputs, options, workers=workers)
    except PixoraPDFError as exc:
        LOGGER.warning("%s failed: %s", operation, exc)
        return OperationFailure(message=str(exc), error=exc)

    if len(entries) == 1:
        entry = entries[0]
        return OperationSuccess(name=entry.name, data=entry.data, media_type=entry.media_type, entries=(entry,))
    archive = create_archive(entries)
    LOGGER.info("%s produced %d file(s); archived %d bytes", operation, len(entries), len(archive))
    return OperationSuccess(
        name=f"{operation}_results.zip",
        data=archive,
        media_type=ARCHIVE_MEDIA_TYPE,
        entries=tuple(entries),
    )


__all__ = [
    "OperationSuccess",
    "OperationFailure",
    "OperationResult",
    "create_archive",
    "run_batch",
    "run_operation",
    "unique_names",
]
