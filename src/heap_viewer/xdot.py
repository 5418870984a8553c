"""Graphviz xdot drawing operations, decoded from ``dot -Tjson`` output."""

from __future__ import annotations

import collections.abc as cabc
import logging
from dataclasses import dataclass
from typing import Any, TypeAlias

from .model import Point

logger = logging.getLogger(__name__)


class XDotError(RuntimeError):
    """Raised when a drawing operation cannot be decoded."""


@dataclass(frozen=True)
class Ellipse:
    center: Point
    width: float
    height: float
    filled: bool


@dataclass(frozen=True)
class Polygon:
    points: tuple[Point, ...]
    filled: bool


@dataclass(frozen=True)
class Polyline:
    points: tuple[Point, ...]


@dataclass(frozen=True)
class BSpline:
    points: tuple[Point, ...]
    filled: bool


@dataclass(frozen=True)
class Text:
    baseline: Point
    alignment: str
    width: float
    text: str


@dataclass(frozen=True)
class Color:
    color: str
    filled: bool


@dataclass(frozen=True)
class Font:
    size: float
    name: str


@dataclass(frozen=True)
class Style:
    style: str


@dataclass(frozen=True)
class FontCharacteristics:
    flags: int

    @property
    def bold(self) -> bool:
        return bool(self.flags & 1)

    @property
    def italic(self) -> bool:
        return bool(self.flags & 2)


@dataclass(frozen=True)
class Image:
    position: Point
    width: float
    height: float
    name: str


Operation: TypeAlias = (
    Ellipse | Polygon | Polyline | BSpline | Text | Color | Font | Style
    | FontCharacteristics | Image
)

ALIGNMENTS = {"l": "left", "c": "center", "r": "right"}


def _point(value: Any) -> Point:
    x, y = value
    return (float(x), float(y))


def _points(value: Any) -> tuple[Point, ...]:
    return tuple(_point(p) for p in value)


def _color(op: cabc.Mapping[str, Any]) -> str:
    if "color" in op:
        return str(op["color"])
    # Gradients carry their colours in stops; draw with the first one.
    stops = op.get("stops") or ()
    logger.debug("Flattening %s gradient to a solid colour", op.get("grad"))
    return str(stops[0]["color"]) if stops else "black"


def decode_operation(op: cabc.Mapping[str, Any]) -> Operation:
    """Convert one JSON drawing operation into its :data:`Operation`."""
    if not isinstance(op, cabc.Mapping):
        msg = f"expected a drawing operation object, got {op!r}"
        raise XDotError(msg)
    code = op.get("op")
    try:
        if code in ("E", "e"):
            x, y, w, h = op["rect"]
            return Ellipse((float(x), float(y)), float(w), float(h), filled=code == "E")
        if code in ("P", "p"):
            return Polygon(_points(op["points"]), filled=code == "P")
        if code == "L":
            return Polyline(_points(op["points"]))
        if code in ("B", "b"):
            return BSpline(_points(op["points"]), filled=code == "b")
        if code == "T":
            return Text(
                _point(op["pt"]),
                ALIGNMENTS.get(op.get("align", "l"), "left"),
                float(op["width"]),
                str(op["text"]),
            )
        if code in ("C", "c"):
            return Color(_color(op), filled=code == "C")
        if code == "F":
            return Font(float(op["size"]), str(op["face"]))
        if code == "S":
            return Style(str(op["style"]))
        if code == "t":
            return FontCharacteristics(int(op["fontchar"]))
        if code == "I":
            x, y, w, h = op["rect"]
            return Image((float(x), float(y)), float(w), float(h), str(op["name"]))
    except (KeyError, TypeError, ValueError) as exc:
        msg = f"malformed xdot operation {dict(op)!r}"
        raise XDotError(msg) from exc
    msg = f"unknown xdot operation {code!r}"
    raise XDotError(msg)


def parse_operations(ops: Any) -> list[Operation]:
    """Decode one drawing attribute (``_draw_``, ``_ldraw_`` ...)."""
    if not isinstance(ops, list):
        msg = f"expected a list of drawing operations, got {type(ops).__name__}"
        raise XDotError(msg)
    return [decode_operation(op) for op in ops]


def _flip(point: Point, height: float) -> Point:
    return (point[0], height - point[1])


def flip_operation(op: Operation, height: float) -> Operation:
    """Mirror ``op`` vertically so y grows downward from the top of the canvas."""
    if isinstance(op, Ellipse):
        return Ellipse(_flip(op.center, height), op.width, op.height, op.filled)
    if isinstance(op, Polygon):
        return Polygon(tuple(_flip(p, height) for p in op.points), op.filled)
    if isinstance(op, Polyline):
        return Polyline(tuple(_flip(p, height) for p in op.points))
    if isinstance(op, BSpline):
        return BSpline(tuple(_flip(p, height) for p in op.points), op.filled)
    if isinstance(op, Text):
        return Text(_flip(op.baseline, height), op.alignment, op.width, op.text)
    if isinstance(op, Image):
        x, y = _flip(op.position, height)
        return Image((x, y - op.height), op.width, op.height, op.name)
    return op
