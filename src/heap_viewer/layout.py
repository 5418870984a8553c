"""Lay out reference graphs with Graphviz and read back its drawing script."""

from __future__ import annotations

import collections.abc as cabc
import json
import logging
import shutil
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Protocol

import graphviz
import networkx as nx

from .model import Box, Entry, NodeLabel, Rect, Snapshot
from .xdot import Operation, XDotError, flip_operation, parse_operations

logger = logging.getLogger(__name__)

FONT_NAME = "Sans"
GRAPH_FONT_SIZE = 24
NODE_FONT_SIZE = 24
EDGE_FONT_SIZE = 24
POINTS_PER_INCH = 72.0

# Somehow "transparent" renders white in some backends, use RGBA zero instead.
TRANSPARENT = "#00000000"

DRAW_ATTRIBUTES = ("_draw_", "_ldraw_", "_hdraw_", "_tdraw_", "_hldraw_", "_tldraw_")
_RECORD_SPECIALS = "\\{}|<>"


class LayoutError(RuntimeError):
    """Raised when the layout engine fails on a graph."""


class LayoutUnavailable(LayoutError):
    """Raised when the Graphviz binaries cannot be found."""


class DrawOp(NamedTuple):
    """A drawing operation and the node it belongs to (``None`` for the canvas)."""

    owner: int | None
    op: Operation


@dataclass(frozen=True)
class Layout:
    """Everything a view needs to paint and hit-test one snapshot."""

    operations: tuple[DrawOp, ...] = ()
    boxes: dict[int, Box] = field(default_factory=dict)
    rects: dict[int, Rect] = field(default_factory=dict)
    size: Rect = Rect(0.0, 0.0, 0.0, 0.0)

    def hit(self, point: tuple[float, float]) -> int | None:
        """Return the id of the topmost box containing ``point``."""
        for ident, rect in reversed(list(self.rects.items())):
            if ident in self.boxes and rect.contains(point):
                return ident
        return None


class LayoutEngine(Protocol):
    """Black-box graph layout: DOT graph in, JSON drawing script out."""

    def available(self) -> bool:
        """Return ``True`` if ``render`` can be called."""

    def render(self, graph: graphviz.Digraph) -> str:
        """Return Graphviz ``json`` output (xdot operations included) for ``graph``."""


class GraphvizEngine:
    """Runs a Graphviz layout program on the DOT source."""

    def __init__(self, prog: str = "dot") -> None:
        self.prog = prog

    def available(self) -> bool:
        return shutil.which(self.prog) is not None

    def render(self, graph: graphviz.Digraph) -> str:
        try:
            return graph.pipe(engine=self.prog, format="json", encoding="utf-8")
        except graphviz.ExecutableNotFound as exc:
            msg = f"Graphviz program {self.prog!r} is not installed"
            raise LayoutUnavailable(msg) from exc
        except graphviz.CalledProcessError as exc:
            msg = f"Graphviz program {self.prog!r} failed: {exc.stderr!r}"
            raise LayoutError(msg) from exc


# -------- DOT generation --------


def node_name(ident: int) -> str:
    """DOT identifier for graph node ``ident`` (name nodes get an ``r`` prefix)."""
    return f"n{ident}" if ident >= 0 else f"r{-ident}"


def node_ident(name: str) -> int | None:
    """Inverse of :func:`node_name`."""
    if len(name) < 2 or name[0] not in "nr" or not name[1:].isdigit():
        return None
    value = int(name[1:])
    return value if name[0] == "n" else -value


def record_escape(text: str) -> str:
    """Escape ``text`` for use as one field of a Graphviz record label."""
    text = text.replace('"', "'").replace("\n", " ").replace("\r", " ")
    return "".join(f"\\{ch}" if ch in _RECORD_SPECIALS else ch for ch in text)


def record_label(label: NodeLabel) -> str:
    """Field sub-labels followed by one port per outgoing slot."""
    parts = [record_escape(f) for f in label.fields]
    parts.extend(f"<{port}>" for port in range(label.port_count))
    return "|".join(parts)


def to_dot(graph: nx.MultiDiGraph) -> graphviz.Digraph:
    """Convert a (pruned) reference graph into a styled DOT graph."""
    dot = graphviz.Digraph(
        "heap",
        graph_attr={
            "bgcolor": TRANSPARENT,
            "fontname": FONT_NAME,
            "fontsize": str(GRAPH_FONT_SIZE),
        },
    )
    for ident, label in graph.nodes(data="label"):
        if ident >= 0:
            dot.node(
                node_name(ident),
                graphviz.nohtml(record_label(label)),
                shape="record",
                fontname=FONT_NAME,
                fontsize=str(NODE_FONT_SIZE),
            )
        else:
            # Marker for a user-bound name; only hosts the label edge.
            dot.node(node_name(ident), shape="point", style="invis")

    for source, target, label in graph.edges(data="label"):
        attrs = {"fontname": FONT_NAME, "fontsize": str(EDGE_FONT_SIZE)}
        if label.name:
            attrs["label"] = graphviz.escape(label.name)
        if source >= 0:
            attrs["tailport"] = str(label.slot)
        dot.edge(node_name(source), node_name(target), **attrs)
    return dot


# -------- layout parsing --------


def _floats(value: object) -> list[float]:
    return [float(part) for part in str(value).split(",")]


def _element_operations(attrs: cabc.Mapping[str, Any], height: float) -> list[Operation]:
    ops: list[Operation] = []
    for key in DRAW_ATTRIBUTES:
        if key in attrs:
            ops.extend(flip_operation(op, height) for op in parse_operations(attrs[key]))
    return ops


def parse_layout(
    text: str, entries: cabc.Mapping[int, Entry] | None = None,
) -> Layout:
    """Parse Graphviz ``json`` output into drawing operations and boxes.

    Operations keep document order: the canvas first, then nodes, then edges.
    Edge operations are owned by the edge's tail node. Coordinates are
    flipped so that y grows downward from the top of the canvas.
    """
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as exc:
        raise XDotError("Graphviz output is not valid JSON") from exc
    if not isinstance(doc, dict) or "bb" not in doc:
        raise XDotError("Graphviz output has no bounding box")
    llx, lly, urx, ury = _floats(doc["bb"])
    height = ury

    operations = [DrawOp(None, op) for op in _element_operations(doc, height)]
    owners: dict[int, int | None] = {}
    rects: dict[int, Rect] = {}
    for obj in doc.get("objects", ()):
        ident = node_ident(str(obj.get("name", "")))
        owners[obj.get("_gvid", -1)] = ident
        if ident is None:
            continue
        operations.extend(DrawOp(ident, op) for op in _element_operations(obj, height))
        if ident >= 0 and "pos" in obj:
            x, y = _floats(obj["pos"])[:2]
            w = float(obj.get("width", 0)) * POINTS_PER_INCH
            h = float(obj.get("height", 0)) * POINTS_PER_INCH
            rects[ident] = Rect(x - w / 2, height - y - h / 2, w, h)

    for edge in doc.get("edges", ()):
        owner = owners.get(edge.get("tail", -1))
        operations.extend(DrawOp(owner, op) for op in _element_operations(edge, height))

    boxes = {ident: entry.box for ident, entry in (entries or {}).items()}
    return Layout(
        operations=tuple(operations),
        boxes=boxes,
        rects=rects,
        size=Rect(0.0, 0.0, urx - llx, ury - lly),
    )


def xdot_layout(snapshot: Snapshot, engine: LayoutEngine) -> Layout:
    """Run the layout engine on ``snapshot`` and parse the result."""
    if snapshot.graph.number_of_nodes() == 0:
        return Layout(boxes={i: e.box for i, e in snapshot.entries.items()})
    dot = to_dot(snapshot.graph)
    text = engine.render(dot)
    layout = parse_layout(text, snapshot.entries)
    logger.debug(
        "Laid out %d nodes into %d drawing operations",
        snapshot.graph.number_of_nodes(),
        len(layout.operations),
    )
    return layout
