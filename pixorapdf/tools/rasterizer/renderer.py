"""Best-effort content stream renderer drawing onto a Pillow canvas.

The renderer understands the graphics state, colour, path construction and
painting operators, image and form XObjects, and the basic text operators
(drawn with Pillow's built-in font). Everything else is skipped; skipped
operators are counted so callers can report them.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Any, Sequence

from PIL import Image, ImageDraw, ImageFont
from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    ContentStream,
    DecodedStreamObject,
    DictionaryObject,
    TextStringObject,
)

from ...core.filters import decode_stream
from ...core.images import decode_image
from ...core.model import Document, Page, PdfStream
from ...exceptions import EncodingError

LOGGER = logging.getLogger("pixorapdf.render")

Matrix = tuple[float, float, float, float, float, float]
Color = tuple[int, int, int]

IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
_MAX_FORM_DEPTH = 8
_CURVE_STEPS = 12
_MAX_FONT_PIXELS = 2048
_PAINT_OPERATORS = {b"S", b"s", b"f", b"F", b"f*", b"B", b"B*", b"b", b"b*"}


# -- Geometry helpers --------------------------------------------------------


def _matrix_multiply(lhs: Matrix, rhs: Matrix) -> Matrix:
    a1, b1, c1, d1, e1, f1 = lhs
    a2, b2, c2, d2, e2, f2 = rhs
    return (
        a1 * a2 + c1 * b2,
        b1 * a2 + d1 * b2,
        a1 * c2 + c1 * d2,
        b1 * c2 + d1 * d2,
        a1 * e2 + c1 * f2 + e1,
        b1 * e2 + d1 * f2 + f1,
    )


def _matrix_apply(matrix: Matrix, x: float, y: float) -> tuple[float, float]:
    a, b, c, d, e, f = matrix
    return a * x + c * y + e, b * x + d * y + f


def _matrix_scale(matrix: Matrix) -> float:
    a, b, c, d, _, _ = matrix
    return math.sqrt(abs(a * d - b * c))


def _cubic_points(
    p0: tuple[float, float],
    p1: tuple[float, float],
    p2: tuple[float, float],
    p3: tuple[float, float],
) -> list[tuple[float, float]]:
    points = []
    for index in range(1, _CURVE_STEPS + 1):
        t = index / _CURVE_STEPS
        mt = 1.0 - t
        x = mt**3 * p0[0] + 3 * mt**2 * t * p1[0] + 3 * mt * t**2 * p2[0] + t**3 * p3[0]
        y = mt**3 * p0[1] + 3 * mt**2 * t * p1[1] + 3 * mt * t**2 * p2[1] + t**3 * p3[1]
        points.append((x, y))
    return points


def _to_float(value: object) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0


def _unit(value: float) -> int:
    return int(round(max(0.0, min(value, 1.0)) * 255))


def _gray(values: Sequence[object]) -> Color:
    level = _unit(_to_float(values[0])) if values else 0
    return (level, level, level)


def _rgb(values: Sequence[object]) -> Color:
    r, g, b = (_unit(_to_float(value)) for value in values[:3])
    return (r, g, b)


def _cmyk(values: Sequence[object]) -> Color:
    c, m, y, k = (max(0.0, min(_to_float(value), 1.0)) for value in values[:4])
    return (_unit(1.0 - min(1.0, c + k)), _unit(1.0 - min(1.0, m + k)), _unit(1.0 - min(1.0, y + k)))


def _generic_color(values: Sequence[object]) -> Color | None:
    numbers = [value for value in values if isinstance(value, (int, float))]
    if len(numbers) == 1:
        return _gray(numbers)
    if len(numbers) == 3:
        return _rgb(numbers)
    if len(numbers) == 4:
        return _cmyk(numbers)
    return None


@lru_cache(maxsize=32)
def _font(size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    return ImageFont.load_default(size=size)


def _text(value: object) -> str:
    if isinstance(value, TextStringObject):
        return str(value)
    if isinstance(value, (ByteStringObject, bytes)):
        return bytes(value).decode("latin-1")
    return ""


# -- Interpreter ------------------------------------------------------------


@dataclass(slots=True)
class GraphicsState:
    ctm: Matrix = IDENTITY
    fill_color: Color = (0, 0, 0)
    stroke_color: Color = (0, 0, 0)
    line_width: float = 1.0
    fill_alpha: float = 1.0
    stroke_alpha: float = 1.0
    font_size: float = 12.0
    leading: float = 0.0
    char_spacing: float = 0.0
    word_spacing: float = 0.0
    rise: float = 0.0


class PageRenderer:
    """Render pages of *document* at *dpi* onto RGB canvases."""

    def __init__(self, document: Document, dpi: int) -> None:
        self.document = document
        self.dpi = dpi
        self.scale = dpi / 72.0
        self.ignored: Counter[str] = Counter()

    def canvas_size(self, page: Page) -> tuple[int, int]:
        width = max(int(round(page.width * self.scale)), 1)
        height = max(int(round(page.height * self.scale)), 1)
        return width, height

    def render(self, page: Page) -> Image.Image:
        """Return the unrotated rendering of *page* on a white background."""

        self.ignored = Counter()
        canvas = Image.new("RGB", self.canvas_size(page), "white")
        x0, _, _, y1 = page.media_box
        base = (self.scale, 0.0, 0.0, -self.scale, -x0 * self.scale, y1 * self.scale)
        try:
            content = self.document.page_content(page.index)
        except EncodingError as exc:
            LOGGER.warning("Page %d content could not be decoded: %s", page.index + 1, exc)
            return canvas
        self._run(canvas, content, page.resources, GraphicsState(ctm=base), depth=0)
        if self.ignored:
            LOGGER.debug(
                "Page %d: ignored operators %s",
                page.index + 1,
                ", ".join(f"{name} x{count}" for name, count in sorted(self.ignored.items())),
            )
        return canvas

    def _operations(self, content: bytes) -> list[tuple[list[Any], bytes]]:
        stream = DecodedStreamObject()
        stream.set_data(content)
        try:
            return list(ContentStream(stream, self.document.objects).operations)
        except Exception as exc:  # pypdf raises a variety of errors for damaged content
            LOGGER.warning("Content stream could not be tokenized: %s", exc)
            return []

    def _resource(self, resources: DictionaryObject, category: str, name: Any) -> Any:
        group = self.document.resolve(resources.get(category))
        if not isinstance(group, DictionaryObject):
            return None
        return self.document.resolve(group.get(str(name)))

    def _run(
        self,
        canvas: Image.Image,
        content: bytes,
        resources: DictionaryObject,
        state: GraphicsState,
        depth: int,
    ) -> None:
        draw = ImageDraw.Draw(canvas, "RGBA")
        stack: list[GraphicsState] = []
        subpaths: list[list[tuple[float, float]]] = []
        current: tuple[float, float] | None = None
        text_matrix = line_matrix = IDENTITY

        def move_to(x: float, y: float) -> None:
            nonlocal current
            current = _matrix_apply(state.ctm, x, y)
            subpaths.append([current])

        def line_to(x: float, y: float) -> None:
            nonlocal current
            if not subpaths:
                move_to(x, y)
                return
            current = _matrix_apply(state.ctm, x, y)
            subpaths[-1].append(current)

        def curve_to(points: Sequence[float], first_is_current: bool = False, last_is_control: bool = False) -> None:
            nonlocal current
            if current is None:
                move_to(points[-2], points[-1])
                return
            coords = [_matrix_apply(state.ctm, points[i], points[i + 1]) for i in range(0, len(points), 2)]
            if first_is_current:
                coords.insert(0, current)
            if last_is_control:
                coords.insert(1, coords[1])
            p1, p2, p3 = coords[0], coords[1], coords[2]
            subpaths[-1].extend(_cubic_points(current, p1, p2, p3))
            current = p3

        def close_path() -> None:
            nonlocal current
            if subpaths and subpaths[-1] and subpaths[-1][0] != subpaths[-1][-1]:
                subpaths[-1].append(subpaths[-1][0])
                current = subpaths[-1][0]

        def paint(stroke: bool, fill: bool) -> None:
            nonlocal current
            for points in subpaths:
                if len(points) < 2:
                    continue
                if fill and len(points) >= 3:
                    draw.polygon(points, fill=(*state.fill_color, _unit(state.fill_alpha)))
                if stroke:
                    width = max(int(round(state.line_width * _matrix_scale(state.ctm))), 1)
                    draw.line(points, fill=(*state.stroke_color, _unit(state.stroke_alpha)), width=width)
            subpaths.clear()
            current = None

        def show_text(value: object) -> None:
            nonlocal text_matrix
            text = _text(value)
            if not text:
                return
            combined = _matrix_multiply(state.ctm, text_matrix)
            device_scale = _matrix_scale(combined) or 1.0
            size = max(int(round(state.font_size * device_scale)), 1)
            size = min(size, max(canvas.size), _MAX_FONT_PIXELS)
            font = _font(size)
            x, y = _matrix_apply(combined, 0.0, state.rise)
            if isinstance(font, ImageFont.FreeTypeFont):
                draw.text((x, y), text, font=font, fill=(*state.fill_color, _unit(state.fill_alpha)), anchor="ls")
            else:
                draw.text((x, y - size), text, font=font, fill=(*state.fill_color, _unit(state.fill_alpha)))
            advance = font.getlength(text) / device_scale
            advance += state.char_spacing * len(text) + state.word_spacing * text.count(" ")
            text_matrix = _matrix_multiply(text_matrix, (1.0, 0.0, 0.0, 1.0, advance, 0.0))

        def next_line(tx: float, ty: float) -> None:
            nonlocal text_matrix, line_matrix
            line_matrix = _matrix_multiply(line_matrix, (1.0, 0.0, 0.0, 1.0, tx, ty))
            text_matrix = line_matrix

        for operands, operator in self._operations(content):
            try:
                if operator == b"q":
                    stack.append(replace(state))
                elif operator == b"Q":
                    if stack:
                        state = stack.pop()
                elif operator == b"cm" and len(operands) == 6:
                    matrix = tuple(_to_float(value) for value in operands)
                    state.ctm = _matrix_multiply(state.ctm, matrix)  # type: ignore[arg-type]
                elif operator == b"w" and operands:
                    state.line_width = _to_float(operands[0])
                elif operator == b"gs" and operands:
                    ext = self._resource(resources, "/ExtGState", operands[0])
                    if isinstance(ext, DictionaryObject):
                        if ext.get("/ca") is not None:
                            state.fill_alpha = max(0.0, min(_to_float(ext.get("/ca")), 1.0))
                        if ext.get("/CA") is not None:
                            state.stroke_alpha = max(0.0, min(_to_float(ext.get("/CA")), 1.0))
                elif operator == b"g" and operands:
                    state.fill_color = _gray(operands)
                elif operator == b"G" and operands:
                    state.stroke_color = _gray(operands)
                elif operator == b"rg" and len(operands) >= 3:
                    state.fill_color = _rgb(operands)
                elif operator == b"RG" and len(operands) >= 3:
                    state.stroke_color = _rgb(operands)
                elif operator == b"k" and len(operands) >= 4:
                    state.fill_color = _cmyk(operands)
                elif operator == b"K" and len(operands) >= 4:
                    state.stroke_color = _cmyk(operands)
                elif operator in (b"sc", b"scn"):
                    state.fill_color = _generic_color(operands) or state.fill_color
                elif operator in (b"SC", b"SCN"):
                    state.stroke_color = _generic_color(operands) or state.stroke_color
                elif operator == b"cs":
                    state.fill_color = (0, 0, 0)
                elif operator == b"CS":
                    state.stroke_color = (0, 0, 0)
                elif operator == b"m" and len(operands) >= 2:
                    move_to(_to_float(operands[0]), _to_float(operands[1]))
                elif operator == b"l" and len(operands) >= 2:
                    line_to(_to_float(operands[0]), _to_float(operands[1]))
                elif operator == b"c" and len(operands) >= 6:
                    curve_to([_to_float(value) for value in operands[:6]])
                elif operator == b"v" and len(operands) >= 4:
                    curve_to([_to_float(value) for value in operands[:4]], first_is_current=True)
                elif operator == b"y" and len(operands) >= 4:
                    curve_to([_to_float(value) for value in operands[:4]], last_is_control=True)
                elif operator == b"h":
                    close_path()
                elif operator == b"re" and len(operands) >= 4:
                    x, y, width, height = (_to_float(value) for value in operands[:4])
                    move_to(x, y)
                    line_to(x + width, y)
                    line_to(x + width, y + height)
                    line_to(x, y + height)
                    close_path()
                elif operator in _PAINT_OPERATORS:
                    if operator in (b"s", b"b", b"b*"):
                        close_path()
                    paint(
                        stroke=operator in (b"S", b"s", b"B", b"B*", b"b", b"b*"),
                        fill=operator in (b"f", b"F", b"f*", b"B", b"B*", b"b", b"b*"),
                    )
                elif operator == b"n":
                    subpaths.clear()
                    current = None
                elif operator == b"BT":
                    text_matrix = line_matrix = IDENTITY
                elif operator == b"ET":
                    pass
                elif operator == b"Tf" and len(operands) >= 2:
                    state.font_size = _to_float(operands[1])
                elif operator == b"TL" and operands:
                    state.leading = _to_float(operands[0])
                elif operator == b"Tc" and operands:
                    state.char_spacing = _to_float(operands[0])
                elif operator == b"Tw" and operands:
                    state.word_spacing = _to_float(operands[0])
                elif operator == b"Ts" and operands:
                    state.rise = _to_float(operands[0])
                elif operator == b"Td" and len(operands) >= 2:
                    next_line(_to_float(operands[0]), _to_float(operands[1]))
                elif operator == b"TD" and len(operands) >= 2:
                    state.leading = -_to_float(operands[1])
                    next_line(_to_float(operands[0]), _to_float(operands[1]))
                elif operator == b"Tm" and len(operands) == 6:
                    line_matrix = tuple(_to_float(value) for value in operands)  # type: ignore[assignment]
                    text_matrix = line_matrix
                elif operator == b"T*":
                    next_line(0.0, -state.leading)
                elif operator == b"Tj" and operands:
                    show_text(operands[0])
                elif operator == b"'" and operands:
                    next_line(0.0, -state.leading)
                    show_text(operands[0])
                elif operator == b'"' and len(operands) >= 3:
                    state.word_spacing = _to_float(operands[0])
                    state.char_spacing = _to_float(operands[1])
                    next_line(0.0, -state.leading)
                    show_text(operands[2])
                elif operator == b"TJ" and operands and isinstance(operands[0], ArrayObject):
                    for item in operands[0]:
                        if isinstance(item, (int, float)):
                            shift = -_to_float(item) / 1000.0 * state.font_size
                            text_matrix = _matrix_multiply(text_matrix, (1.0, 0.0, 0.0, 1.0, shift, 0.0))
                        else:
                            show_text(item)
                elif operator == b"Do" and operands:
                    self._draw_xobject(canvas, resources, operands[0], state, depth)
                else:
                    self.ignored[operator.decode("latin-1", "replace")] += 1
            except (ArithmeticError, ValueError, TypeError, OSError, EncodingError) as exc:
                LOGGER.debug("Skipping %r after error: %s", operator, exc)
                self.ignored[operator.decode("latin-1", "replace")] += 1

    def _draw_xobject(
        self,
        canvas: Image.Image,
        resources: DictionaryObject,
        name: Any,
        state: GraphicsState,
        depth: int,
    ) -> None:
        xobject = self._resource(resources, "/XObject", name)
        if not isinstance(xobject, PdfStream):
            self.ignored["Do"] += 1
            return
        subtype = xobject.get("/Subtype")
        if subtype == "/Image":
            self._draw_image(canvas, xobject, state)
        elif subtype == "/Form":
            if depth >= _MAX_FORM_DEPTH:
                LOGGER.debug("Form XObject nesting exceeds %d levels", _MAX_FORM_DEPTH)
                return
            matrix = self.document.resolve(xobject.get("/Matrix"))
            form_state = replace(state)
            if isinstance(matrix, ArrayObject) and len(matrix) == 6:
                form_matrix = tuple(_to_float(self.document.resolve(value)) for value in matrix)
                form_state.ctm = _matrix_multiply(state.ctm, form_matrix)  # type: ignore[arg-type]
            form_resources = self.document.resolve(xobject.get("/Resources"))
            if not isinstance(form_resources, DictionaryObject):
                form_resources = resources
            self._run(canvas, decode_stream(xobject), form_resources, form_state, depth + 1)
        else:
            self.ignored["Do"] += 1

    def _draw_image(self, canvas: Image.Image, xobject: PdfStream, state: GraphicsState) -> None:
        image = decode_image(self.document, xobject).convert("RGBA")
        smask = self.document.resolve(xobject.get("/SMask"))
        if isinstance(smask, PdfStream):
            try:
                alpha = decode_image(self.document, smask).convert("L")
                image.putalpha(alpha.resize(image.size))
            except EncodingError as exc:
                LOGGER.debug("Ignoring unreadable soft mask: %s", exc)
        if state.fill_alpha < 1.0:
            alpha = image.getchannel("A").point(lambda value: int(value * state.fill_alpha))
            image.putalpha(alpha)

        width, height = image.size
        a, b, c, d, e, f = state.ctm
        # image pixel (u, v) -> device, with the unit square's top edge at v = 0
        forward = (a / width, -c / height, c + e, b / width, -d / height, d + f)
        fa, fb, fc, fd, fe, ff = forward
        determinant = fa * fe - fb * fd
        if abs(determinant) < 1e-12:
            return

        corners = [
            (fa * u + fb * v + fc, fd * u + fe * v + ff)
            for u, v in ((0, 0), (width, 0), (0, height), (width, height))
        ]
        left = max(int(math.floor(min(x for x, _ in corners))), 0)
        top = max(int(math.floor(min(y for _, y in corners))), 0)
        right = min(int(math.ceil(max(x for x, _ in corners))), canvas.width)
        bottom = min(int(math.ceil(max(y for _, y in corners))), canvas.height)
        if right <= left or bottom <= top:
            return

        ia, ib = fe / determinant, -fb / determinant
        id_, ie = -fd / determinant, fa / determinant
        ic = -(ia * fc + ib * ff)
        if_ = -(id_ * fc + ie * ff)
        # shift so output pixel (0, 0) is device pixel (left, top)
        inverse = (ia, ib, ia * left + ib * top + ic, id_, ie, id_ * left + ie * top + if_)
        placed = image.transform(
            (right - left, bottom - top),
            Image.Transform.AFFINE,
            data=inverse,
            resample=Image.Resampling.BILINEAR,
        )
        canvas.paste(placed, (left, top), placed)


__all__ = ["GraphicsState", "PageRenderer", "IDENTITY"]
