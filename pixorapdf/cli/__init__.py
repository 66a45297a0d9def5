"""Command line interface for pixorapdf."""

from __future__ import annotations

from .main import cli

__all__ = ["cli"]
