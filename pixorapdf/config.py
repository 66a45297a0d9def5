"""Option records for every operation, validated at construction.

Each record is a frozen dataclass whose ``__post_init__`` rejects invalid
values with :class:`~pixorapdf.exceptions.InvalidOptionsError`. Front ends
that speak camelCase (``imageQuality``, ``allowPrinting``...) go through
:func:`options_from_mapping`, which also rejects unknown keys.
"""

from __future__ import annotations

import dataclasses
import os
import re
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Sequence

from .exceptions import InvalidOptionsError, UnsupportedFormatError
from .core.model import ColorMode, EncryptionAlgorithm

__all__ = [
    "PageRange",
    "MergeOptions",
    "SplitOptions",
    "CompressOptions",
    "COMPRESSION_PRESETS",
    "ProtectOptions",
    "UnprotectOptions",
    "WatermarkOptions",
    "RasterizeOptions",
    "EmbedOptions",
    "Settings",
    "PERMISSIONS",
    "PAGE_SIZES",
    "options_from_mapping",
]

SplitMode = Literal["range", "pages", "equal"]
PERMISSIONS = frozenset({"print", "copy", "modify", "annotate"})
PAGE_SIZES: dict[str, tuple[float, float]] = {
    "a4": (595.28, 841.89),
    "letter": (612.0, 792.0),
    "legal": (612.0, 1008.0),
    "a3": (841.89, 1190.55),
}
RASTER_FORMATS = {"png": "png", "jpeg": "jpeg", "jpg": "jpeg", "webp": "webp", "tiff": "tiff", "tif": "tiff"}
WATERMARK_POSITIONS = frozenset({"center", "diagonal", "top-left", "top-right", "bottom-left", "bottom-right"})
WATERMARK_COLORS: dict[str, tuple[float, float, float]] = {
    "gray": (0.7, 0.7, 0.7),
    "red": (0.85, 0.1, 0.1),
    "blue": (0.1, 0.2, 0.8),
    "black": (0.0, 0.0, 0.0),
}
_STRENGTH_ALIASES = {"40": "rc4-40", "128": "rc4-128", "256": "aes-256"}
# level -> (JPEG quality, strip metadata)
_PRESETS: dict[str, tuple[int, bool]] = {
    "low": (90, False),
    "medium": (75, False),
    "high": (55, True),
    "extreme": (30, True),
}


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise InvalidOptionsError(message)


def _percent(value: float) -> float:
    """Accept either a fraction (0.3) or a percentage (30)."""

    return value / 100.0 if value > 1 else value


@dataclass(frozen=True, slots=True)
class PageRange:
    """Inclusive, 1-indexed page range; validated against a page count later."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if isinstance(self.start, bool) or isinstance(self.end, bool):
            raise InvalidOptionsError("Page numbers must be integers")
        object.__setattr__(self, "start", int(self.start))
        object.__setattr__(self, "end", int(self.end))

    def __len__(self) -> int:
        return max(self.end - self.start + 1, 0)

    def indices(self) -> range:
        """Zero-based page indices covered by the range."""

        return range(self.start - 1, self.end)

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"

    @classmethod
    def parse(cls, text: str) -> "PageRange":
        match = re.fullmatch(r"\s*(\d+)\s*(?:-\s*(\d+)\s*)?", text)
        if not match:
            raise InvalidOptionsError(f"Invalid page range: {text!r}")
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else start
        return cls(start, end)

    @classmethod
    def parse_many(cls, text: str) -> tuple["PageRange", ...]:
        parts = [part for part in text.split(",") if part.strip()]
        _require(bool(parts), "No page ranges given")
        return tuple(cls.parse(part) for part in parts)


def _coerce_range(value: Any) -> PageRange:
    if isinstance(value, PageRange):
        return value
    if isinstance(value, str):
        return PageRange.parse(value)
    if isinstance(value, Mapping):
        try:
            return PageRange(value.get("from", value.get("start")), value.get("to", value.get("end")))
        except (TypeError, ValueError) as exc:
            raise InvalidOptionsError(f"Invalid page range: {value!r}") from exc
    if isinstance(value, Sequence) and len(value) == 2:
        return PageRange(value[0], value[1])
    raise InvalidOptionsError(f"Invalid page range: {value!r}")


@dataclass(frozen=True, slots=True)
class MergeOptions:
    preserve_metadata: bool = True
    add_bookmarks: bool = False
    title: str | None = None
    selections: tuple[tuple[int, ...] | None, ...] = ()

    def __post_init__(self) -> None:
        selections = []
        for selection in self.selections:
            if selection is None:
                selections.append(None)
                continue
            pages = tuple(int(page) for page in selection)
            _require(all(page >= 1 for page in pages), "Merge page numbers start at 1")
            selections.append(pages)
        object.__setattr__(self, "selections", tuple(selections))


@dataclass(frozen=True, slots=True)
class SplitOptions:
    mode: SplitMode = "range"
    ranges: tuple[PageRange, ...] = ()
    parts: int = 2

    def __post_init__(self) -> None:
        mode = "equal" if self.mode == "size" else self.mode
        _require(mode in ("range", "pages", "equal"), f"Unknown split mode: {self.mode!r}")
        object.__setattr__(self, "mode", mode)
        ranges = self.ranges
        if isinstance(ranges, str):
            ranges = PageRange.parse_many(ranges)
        object.__setattr__(self, "ranges", tuple(_coerce_range(item) for item in ranges))
        if mode == "range":
            _require(bool(self.ranges), "At least one page range is required")
        if mode == "equal":
            _require(isinstance(self.parts, int) and self.parts >= 1, "Parts must be a positive integer")


@dataclass(frozen=True, slots=True)
class CompressOptions:
    """Compression switches.

    ``quality`` applies to JPEG re-encoding of eligible images. The other
    flags enable the individual strategies applied by the compressor.
    """

    quality: int = 80
    optimize_images: bool = True
    remove_metadata: bool = False
    compress_fonts: bool = True
    recompress_streams: bool = True
    remove_unused_objects: bool = True
    level: str | None = None

    def __post_init__(self) -> None:
        _require(
            isinstance(self.quality, int) and 10 <= self.quality <= 100,
            "Image quality must be between 10 and 100",
        )
        if self.level is not None and self.level not in _PRESETS:
            raise UnsupportedFormatError(f"Unsupported compression level: {self.level!r}")

    @classmethod
    def preset(cls, level: str) -> "CompressOptions":
        try:
            quality, remove_metadata = _PRESETS[level]
        except KeyError as exc:
            raise UnsupportedFormatError(f"Unsupported compression level: {level!r}") from exc
        return cls(quality=quality, remove_metadata=remove_metadata, level=level)


COMPRESSION_PRESETS: dict[str, CompressOptions] = {name: CompressOptions.preset(name) for name in _PRESETS}


@dataclass(frozen=True, slots=True)
class ProtectOptions:
    user_password: str = ""
    owner_password: str = ""
    permissions: frozenset[str] = frozenset({"print", "annotate"})
    algorithm: EncryptionAlgorithm = EncryptionAlgorithm.RC4_128

    def __post_init__(self) -> None:
        permissions = frozenset(self.permissions)
        unknown = permissions - PERMISSIONS
        _require(not unknown, f"Unknown permission(s): {', '.join(sorted(unknown))}")
        object.__setattr__(self, "permissions", permissions)
        algorithm = _STRENGTH_ALIASES.get(str(self.algorithm), self.algorithm)
        try:
            object.__setattr__(self, "algorithm", EncryptionAlgorithm(algorithm))
        except ValueError as exc:
            raise UnsupportedFormatError(f"Unsupported encryption strength: {self.algorithm!r}") from exc


@dataclass(frozen=True, slots=True)
class UnprotectOptions:
    password: str = ""


@dataclass(frozen=True, slots=True)
class WatermarkOptions:
    text: str = "CONFIDENTIAL"
    opacity: float = 0.3
    font_size: float = 48
    position: str = "center"
    color: str = "gray"

    def __post_init__(self) -> None:
        _require(bool(self.text and self.text.strip()), "Watermark text must not be empty")
        opacity = _percent(float(self.opacity))
        _require(0.1 <= opacity <= 1.0, "Opacity must be between 10% and 100%")
        object.__setattr__(self, "opacity", opacity)
        _require(12 <= float(self.font_size) <= 120, "Font size must be between 12 and 120")
        _require(self.position in WATERMARK_POSITIONS, f"Unknown watermark position: {self.position!r}")
        _require(self.color in WATERMARK_COLORS, f"Unknown watermark color: {self.color!r}")

    @property
    def rgb(self) -> tuple[float, float, float]:
        return WATERMARK_COLORS[self.color]


@dataclass(frozen=True, slots=True)
class RasterizeOptions:
    format: str = "png"
    dpi: int = 150
    quality: int = 90
    color_mode: ColorMode = ColorMode.COLOR
    pages: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        fmt = RASTER_FORMATS.get(str(self.format).lower())
        if fmt is None:
            raise UnsupportedFormatError(f"Unsupported output format: {self.format!r}")
        object.__setattr__(self, "format", fmt)
        _require(isinstance(self.dpi, int) and 1 <= self.dpi <= 1200, "DPI must be between 1 and 1200")
        _require(isinstance(self.quality, int) and 10 <= self.quality <= 100, "Quality must be between 10 and 100")
        try:
            object.__setattr__(self, "color_mode", ColorMode(self.color_mode))
        except ValueError as exc:
            raise InvalidOptionsError(f"Unknown color mode: {self.color_mode!r}") from exc
        pages = tuple(int(page) for page in self.pages)
        _require(all(page >= 1 for page in pages), "Page numbers start at 1")
        object.__setattr__(self, "pages", pages)


@dataclass(frozen=True, slots=True)
class EmbedOptions:
    page_size: str = "a4"
    orientation: str = "portrait"
    margin: float = 20
    fit_to_page: bool = True
    preserve_aspect_ratio: bool = True
    custom_size: tuple[float, float] | None = None

    def __post_init__(self) -> None:
        _require(self.page_size in PAGE_SIZES or self.page_size == "custom", f"Unknown page size: {self.page_size!r}")
        _require(self.orientation in ("portrait", "landscape"), f"Unknown orientation: {self.orientation!r}")
        _require(float(self.margin) >= 0, "Margin must not be negative")
        if self.page_size == "custom":
            _require(self.custom_size is not None, "Custom page size requires width and height")
            width, height = (float(value) for value in self.custom_size)  # type: ignore[union-attr]
            _require(width > 0 and height > 0, "Custom page size must be positive")
            object.__setattr__(self, "custom_size", (width, height))

    @property
    def dimensions(self) -> tuple[float, float]:
        width, height = self.custom_size if self.page_size == "custom" else PAGE_SIZES[self.page_size]  # type: ignore[misc]
        if self.orientation == "landscape":
            return max(width, height), min(width, height)
        return width, height


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide settings read from the environment.

    The log level is not part of it: :func:`pixorapdf.core.utils.get_logger`
    reads ``PIXORAPDF_LOG_LEVEL`` itself.
    """

    workers: int = 1

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        raw_workers = env.get("PIXORAPDF_WORKERS", "1").strip() or "1"
        try:
            workers = max(int(raw_workers), 1)
        except ValueError as exc:
            raise InvalidOptionsError(f"PIXORAPDF_WORKERS must be an integer, got {raw_workers!r}") from exc
        return cls(workers=workers)


# -- Mapping front end -------------------------------------------------------

_OPTION_TYPES: dict[str, type] = {
    "merge": MergeOptions,
    "split": SplitOptions,
    "compress": CompressOptions,
    "protect": ProtectOptions,
    "unprotect": UnprotectOptions,
    "watermark": WatermarkOptions,
    "pdf-to-image": RasterizeOptions,
    "image-to-pdf": EmbedOptions,
}

_ALIASES: dict[str, dict[str, str]] = {
    "merge": {"preserveMetadata": "preserve_metadata", "addBookmarks": "add_bookmarks"},
    "split": {"splitMode": "mode", "pageRanges": "ranges", "equalParts": "parts"},
    "compress": {
        "imageQuality": "quality",
        "compressionLevel": "level",
        "optimizeImages": "optimize_images",
        "removeMetadata": "remove_metadata",
        "compressFonts": "compress_fonts",
        "recompressStreams": "recompress_streams",
        "removeUnusedObjects": "remove_unused_objects",
    },
    "protect": {
        "userPassword": "user_password",
        "ownerPassword": "owner_password",
        "encryptionLevel": "algorithm",
    },
    "watermark": {"watermarkText": "text", "fontSize": "font_size"},
    "pdf-to-image": {"outputFormat": "format", "resolution": "dpi", "colorMode": "color_mode"},
    "image-to-pdf": {
        "pageSize": "page_size",
        "fitToPage": "fit_to_page",
        "maintainAspectRatio": "preserve_aspect_ratio",
        "customSize": "custom_size",
    },
}

_PERMISSION_FLAGS = {
    "allowPrinting": "print",
    "allowCopying": "copy",
    "allowModifying": "modify",
    "allowAnnotations": "annotate",
}


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def options_from_mapping(operation: str, mapping: Mapping[str, Any] | None) -> Any:
    """Build the option record for *operation* from a loosely typed mapping.

    camelCase keys are accepted. A ``compressionLevel`` fixes the quality and
    strategy flags to the matching preset.
    """

    try:
        option_type = _OPTION_TYPES[operation]
    except KeyError as exc:
        raise InvalidOptionsError(f"Unknown operation: {operation!r}") from exc

    aliases = _ALIASES.get(operation, {})
    valid = {item.name for item in dataclasses.fields(option_type)}
    values: dict[str, Any] = {}
    permissions: set[str] | None = None
    for key, value in (mapping or {}).items():
        if operation == "protect" and key in _PERMISSION_FLAGS:
            permissions = set() if permissions is None else permissions
            if value:
                permissions.add(_PERMISSION_FLAGS[key])
            continue
        name = aliases.get(key) or _snake(key)
        if name not in valid:
            raise InvalidOptionsError(f"Unknown option for {operation}: {key!r}")
        values[name] = value
    if permissions is not None:
        values.setdefault("permissions", frozenset(permissions))

    if operation == "compress" and values.get("level") is not None:
        return CompressOptions.preset(str(values["level"]))
    if operation == "split" and isinstance(values.get("ranges"), list):
        values["ranges"] = tuple(values["ranges"])
    if operation == "image-to-pdf" and values.get("custom_size") is not None:
        values["custom_size"] = tuple(values["custom_size"])
    if operation == "pdf-to-image" and values.get("pages") is not None:
        values["pages"] = tuple(values["pages"])
    if operation == "merge" and values.get("selections") is not None:
        values["selections"] = tuple(
            None if selection is None else tuple(selection) for selection in values["selections"]
        )

    try:
        return option_type(**values)
    except TypeError as exc:
        raise InvalidOptionsError(f"Invalid options for {operation}: {exc}") from exc
