from __future__ import annotations

import pytest

from pixorapdf.config import CompressOptions, MergeOptions
from pixorapdf.tools import load_builtin_plugins
from pixorapdf.tools.common.interfaces import BaseTool, InputFile, ToolContext
from pixorapdf.tools.common.pipeline import ToolRegistry, registry


def setup_module(module):
    load_builtin_plugins()


def test_builtin_tools_are_registered() -> None:
    assert set(registry.names()) >= {
        "merge",
        "split",
        "compress",
        "protect",
        "unprotect",
        "watermark",
        "pdf-to-image",
        "image-to-pdf",
    }


def test_loading_plugins_twice_is_harmless() -> None:
    load_builtin_plugins()

    assert registry.get("merge").per_file is False


def test_merge_tool(sample_pdf: bytes) -> None:
    context = ToolContext(
        inputs=[InputFile("a.pdf", sample_pdf), InputFile("b.pdf", sample_pdf)],
        options=MergeOptions(add_bookmarks=True),
    )
    tool = registry.create("merge", context)
    result = tool.run()

    assert [entry.name for entry in result] == ["merged.pdf"]
    assert context.resources["result"] is result[0]


def test_compress_tool_uses_default_options(sample_pdf: bytes) -> None:
    context = ToolContext(inputs=[InputFile("a.pdf", sample_pdf)])
    tool = registry.create("compress", context)
    (entry,) = tool.run()

    assert entry.name == "compressed_a.pdf"
    assert isinstance(context.options, CompressOptions)
    assert context.resources["result"].compressed_size <= context.resources["result"].original_size


def test_per_file_tool_requires_single_input(sample_pdf: bytes) -> None:
    context = ToolContext(inputs=[InputFile("a.pdf", sample_pdf), InputFile("b.pdf", sample_pdf)])

    with pytest.raises(ValueError):
        registry.create("split", context).run()


def test_registry_rejects_duplicates() -> None:
    local = ToolRegistry()
    local.register("noop", BaseTool)

    with pytest.raises(ValueError):
        local.register("noop", BaseTool)
    with pytest.raises(KeyError):
        local.create("missing", ToolContext(inputs=[]))


def test_input_file_stem() -> None:
    assert InputFile("scan.final.pdf", b"").stem == "scan.final"
    assert InputFile("", b"").stem == "document"
