"""Replay drawing operations on matplotlib axes and export them to files."""

from __future__ import annotations

import collections.abc as cabc
import contextlib
import functools
import logging
import os
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeAlias

import numpy as np
from matplotlib import colors as mcolors
from matplotlib import patches
from matplotlib.figure import Figure
from matplotlib.lines import Line2D
from matplotlib.path import Path

from .layout import DrawOp
from .xdot import (
    BSpline,
    Color,
    Ellipse,
    Font,
    FontCharacteristics,
    Image,
    Polygon,
    Polyline,
    Style,
    Text,
)

logger = logging.getLogger(__name__)

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from matplotlib.axes import Axes
    from PIL import ImageFont

    FreeTypeFont = ImageFont.FreeTypeFont
else:
    Axes: TypeAlias = Any
    FreeTypeFont: TypeAlias = Any

POINTS_PER_INCH = 72.0
HOVER_COLOR = "#0000c0"
DEFAULT_FONT_SIZE = 14.0

WRITERS = {".svg": "svg", ".pdf": "pdf", ".png": "png", ".ps": "ps"}
UNKNOWN_EXTENSION = (
    "Unknown file extension, try one of the following: .svg, .pdf, .ps, .png"
)

_LINE_WIDTH = re.compile(r"setlinewidth\(([0-9.]+)\)")


def resolve_writer(path: str) -> str | None:
    """Return the matplotlib output format for ``path``'s extension, if known."""
    return WRITERS.get(os.path.splitext(path)[1].lower())


@functools.lru_cache(maxsize=16)
def pick_font(size: int = 14) -> FreeTypeFont:
    """Return the font matplotlib renders text with, falling back to Pillow's default."""
    try:
        from matplotlib import font_manager as fm
        from PIL import ImageFont
    except ModuleNotFoundError as exc:  # pragma: no cover
        msg = "Font metrics require both Pillow and Matplotlib"
        raise RuntimeError(msg) from exc

    path = fm.findfont("DejaVu Sans", fallback_to_default=True)
    try:
        return ImageFont.truetype(path, size=size)
    except Exception:  # pragma: no cover - Pillow fallback path
        logger.debug("Falling back to Pillow's default font")
        return ImageFont.load_default()


def text_width(text: str, size: int = 14) -> float:
    """Width in points of ``text`` rendered at ``size``."""
    font = pick_font(size)
    try:
        return float(font.getlength(text))
    except Exception:  # pragma: no cover - bitmap default font
        return 0.6 * size * len(text)


def to_rgba(color: str) -> tuple[float, float, float, float]:
    """Convert an xdot colour to RGBA; unknown colours become black."""
    if color.lower() == "transparent":
        return (0.0, 0.0, 0.0, 0.0)
    try:
        return mcolors.to_rgba(color)
    except ValueError:
        logger.debug("Unsupported color %r, using black", color)
        return (0.0, 0.0, 0.0, 1.0)


def font_family(name: str) -> str:
    lowered = name.lower()
    if "mono" in lowered or "courier" in lowered:
        return "monospace"
    if "times" in lowered or ("serif" in lowered and "sans" not in lowered):
        return "serif"
    return "sans-serif"


@dataclass
class _Pen:
    stroke: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    fill: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    font_size: float = DEFAULT_FONT_SIZE
    font_name: str = "Sans"
    line_style: str = "solid"
    line_width: float = 1.0
    bold: bool = False
    italic: bool = False
    invisible: bool = False

    def apply_style(self, style: str) -> None:
        if style in ("solid", "dashed", "dotted"):
            self.line_style = style
        elif style == "invis":
            self.invisible = True
        elif style == "bold":
            self.line_width = 2.0
        else:
            match = _LINE_WIDTH.match(style)
            if match:
                self.line_width = float(match.group(1))


def _bezier_path(points: cabc.Sequence[tuple[float, float]]) -> Path:
    verts = np.asarray(points, dtype=float)
    if len(verts) >= 4 and (len(verts) - 1) % 3 == 0:
        codes = [Path.MOVETO] + [Path.CURVE4] * (len(verts) - 1)
    else:
        codes = [Path.MOVETO] + [Path.LINETO] * (len(verts) - 1)
    return Path(verts, codes)


def paint(
    ax: Axes,
    operations: cabc.Iterable[DrawOp],
    text_scale: float = 1.0,
    highlight: int | None = None,
) -> int:
    """Replay ``operations`` in order onto ``ax`` (data units = canvas units).

    ``text_scale`` converts canvas font sizes to screen points. Operations
    owned by ``highlight`` are stroked in the hover colour. Returns the number
    of artists added.
    """
    pen = _Pen()
    hover = to_rgba(HOVER_COLOR)
    added = 0
    owner_of_pen: int | None = None
    for owner, op in operations:
        if owner != owner_of_pen:
            # Each element's drawing state starts fresh, as in Graphviz.
            pen.line_style, pen.line_width, pen.invisible = "solid", 1.0, False
            owner_of_pen = owner
        stroke = hover if highlight is not None and owner == highlight else pen.stroke
        artist: Any = None
        if isinstance(op, Color):
            if op.filled:
                pen.fill = to_rgba(op.color)
            else:
                pen.stroke = to_rgba(op.color)
        elif isinstance(op, Font):
            pen.font_size, pen.font_name = op.size, op.name
        elif isinstance(op, FontCharacteristics):
            pen.bold, pen.italic = op.bold, op.italic
        elif isinstance(op, Style):
            pen.apply_style(op.style)
        elif pen.invisible or not getattr(op, "points", True):
            continue
        elif isinstance(op, Ellipse):
            artist = patches.Ellipse(
                op.center,
                2 * op.width,
                2 * op.height,
                facecolor=pen.fill if op.filled else "none",
                edgecolor=stroke,
                linestyle=pen.line_style,
                linewidth=pen.line_width,
            )
        elif isinstance(op, Polygon):
            artist = patches.Polygon(
                np.asarray(op.points, dtype=float),
                closed=True,
                facecolor=pen.fill if op.filled else "none",
                edgecolor=stroke,
                linestyle=pen.line_style,
                linewidth=pen.line_width,
            )
        elif isinstance(op, BSpline):
            artist = patches.PathPatch(
                _bezier_path(op.points),
                facecolor=pen.fill if op.filled else "none",
                edgecolor=stroke,
                linestyle=pen.line_style,
                linewidth=pen.line_width,
            )
        elif isinstance(op, Polyline):
            xs, ys = np.asarray(op.points, dtype=float).T
            artist = Line2D(
                xs, ys, color=stroke, linestyle=pen.line_style, linewidth=pen.line_width,
            )
        elif isinstance(op, Text):
            ax.text(
                op.baseline[0],
                op.baseline[1],
                op.text,
                ha=op.alignment,
                va="baseline",
                color=stroke,
                fontsize=max(pen.font_size * text_scale, 0.1),
                family=font_family(pen.font_name),
                fontweight="bold" if pen.bold else "normal",
                fontstyle="italic" if pen.italic else "normal",
                clip_on=True,
            )
            added += 1
        elif isinstance(op, Image):
            logger.debug("Skipping xdot image %r", op.name)
        if isinstance(artist, Line2D):
            ax.add_line(artist)
            added += 1
        elif artist is not None:
            ax.add_patch(artist)
            added += 1
    return added


@contextlib.contextmanager
def export_surface(width: float, height: float) -> cabc.Iterator[tuple[Figure, Axes]]:
    """Yield a figure sized to a ``width`` x ``height`` canvas (in points).

    The axes use canvas coordinates with y growing downward. The figure is
    cleared on every exit path.
    """
    width = max(float(width), 1.0)
    height = max(float(height), 1.0)
    fig = Figure(
        figsize=(width / POINTS_PER_INCH, height / POINTS_PER_INCH),
        dpi=POINTS_PER_INCH,
    )
    try:
        ax = fig.add_axes((0.0, 0.0, 1.0, 1.0))
        ax.set_axis_off()
        ax.set_xlim(0.0, width)
        ax.set_ylim(height, 0.0)
        yield fig, ax
    finally:
        fig.clear()


def export_operations(
    operations: cabc.Sequence[DrawOp], width: float, height: float, writer: str, path: str,
) -> None:
    """Write ``operations`` to ``path`` in the ``writer`` format."""
    with export_surface(width, height) as (fig, ax):
        paint(ax, operations)
        fig.savefig(path, format=writer, transparent=True)
    logger.info("Exported %d drawing operations to %s", len(operations), path)
