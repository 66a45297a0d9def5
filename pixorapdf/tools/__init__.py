"""Namespace for pluggable pixorapdf tools."""

from __future__ import annotations

from .common.pipeline import registry


def load_builtin_plugins() -> None:
    from .splitter import split  # noqa: F401  # register the split tool
    from .merger import merge  # noqa: F401
    from .compressor import compress  # noqa: F401
    from .encryptor import encrypt  # noqa: F401  # protect and unprotect
    from .watermark import watermark  # noqa: F401
    from .rasterizer import rasterize  # noqa: F401
    from .embedder import embed  # noqa: F401


__all__ = ["registry", "load_builtin_plugins"]
