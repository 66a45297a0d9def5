"""Utilities shared by pixorapdf components."""

from __future__ import annotations

import logging
import os
from pathlib import Path

_LEVEL_ENV_VAR = "PIXORAPDF_LOG_LEVEL"


def _configured_level() -> int:
    level = getattr(logging, os.getenv(_LEVEL_ENV_VAR, "WARNING").strip().upper(), None)
    return level if isinstance(level, int) else logging.WARNING


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
        logger.setLevel(_configured_level())
    return logger


def resolve_path(path: str | Path | None) -> Path:
    if path is None:
        raise ValueError("Path must not be None")
    resolved = Path(path).expanduser().resolve()
    return resolved


def format_file_size(size_bytes: float) -> str:
    """Format *size_bytes* in a human-readable form (e.g. ``"1.5 MB"``)."""

    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"
