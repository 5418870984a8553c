"""The list and graph views: layout, painting, hit-testing and export."""

from __future__ import annotations

import collections.abc as cabc
import logging
from typing import TYPE_CHECKING, Any, TypeAlias

from . import render
from .graph import entry_slots
from .layout import (
    DrawOp,
    GraphvizEngine,
    Layout,
    LayoutEngine,
    LayoutError,
    xdot_layout,
)
from .model import Box, Rect, Signal, Snapshot, Update, ViewKind, ViewState
from .viewport import to_canvas, visible_window
from .xdot import Color, Font, Polygon, Text, XDotError

logger = logging.getLogger(__name__)

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from matplotlib.axes import Axes
else:
    Axes: TypeAlias = Any

LIST_FONT_SIZE = 14
LIST_PADDING = 6.0
LIST_ROW_GAP = 10.0
LIST_BOX_GAP = 8.0
MAX_ROW_ENTRIES = 24
MAX_FIELD_TEXT = 40
PLACEHOLDER = "Nothing to show yet: call view(obj, name) to track an object."


class View:
    """Capability set shared by both variants.

    ``update_objects`` runs on the reactor thread and swaps in a new
    :class:`Layout`; the other operations run on the input thread and only
    read the current one.
    """

    kind: ViewKind

    def __init__(
        self,
        view_state: ViewState,
        post: cabc.Callable[[Signal], object],
        evaluate: cabc.Callable[[object], object] | None = None,
    ) -> None:
        self.view_state = view_state
        self.post = post
        self.evaluate = evaluate
        self.layout = Layout()
        self.hover: int | None = None
        self.widget_size: tuple[float, float] = (640.0, 480.0)

    def build_layout(self, snapshot: Snapshot) -> Layout:
        raise NotImplementedError

    def update_objects(self, snapshot: Snapshot) -> None:
        """Rebuild the drawable representation of ``snapshot``."""
        if not snapshot.tracked:
            self.layout = placeholder_layout()
        else:
            self.layout = self.build_layout(snapshot)
        self.hover = None

    def redraw(self, ax: Axes) -> list[DrawOp]:
        """Paint the current layout onto ``ax`` and return the operations used."""
        layout = self.layout
        bbox = ax.bbox
        self.widget_size = (max(float(bbox.width), 1.0), max(float(bbox.height), 1.0))
        x0, x1, y0, y1, scale = visible_window(self.view_state, layout.size, self.widget_size)
        ax.cla()
        ax.set_axis_off()
        ax.set_xlim(x0, x1)
        ax.set_ylim(y1, y0)
        text_scale = scale * render.POINTS_PER_INCH / ax.figure.dpi
        render.paint(ax, layout.operations, text_scale=text_scale, highlight=self.hover)
        return list(layout.operations)

    def target(self, layout: Layout | None = None) -> int | None:
        """Return the id of the box under the last pointer position."""
        if layout is None:
            layout = self.layout
        point = to_canvas(
            self.view_state, layout.size, self.widget_size, self.view_state.mouse_pos,
        )
        return layout.hit(point)

    def click(self) -> Box | None:
        """Force the object under the pointer and ask for a fresh snapshot."""
        # The reactor may swap self.layout meanwhile; hit-test and look up in one.
        layout = self.layout
        ident = self.target(layout)
        if ident is None:
            return None
        box = layout.boxes[ident]
        obj = box.get()
        if self.evaluate is not None and (obj is not None or not box.is_weak):
            self.evaluate(obj)
        self.post(Update())
        return box

    def move(self, ax: Axes | None = None) -> bool:
        """Update the hover target; returns ``True`` if it changed."""
        hover = self.target()
        changed = hover != self.hover
        self.hover = hover
        return changed

    def export(self, writer: str, path: str) -> None:
        """Write the current layout to ``path`` using the ``writer`` format."""
        layout = self.layout
        render.export_operations(
            layout.operations, layout.size.width, layout.size.height, writer, path,
        )


def placeholder_layout() -> Layout:
    width = render.text_width(PLACEHOLDER, LIST_FONT_SIZE) + 2 * LIST_PADDING
    height = LIST_FONT_SIZE + 2 * LIST_PADDING
    ops = (
        DrawOp(None, Color("#808080", filled=False)),
        DrawOp(None, Font(LIST_FONT_SIZE, "Sans")),
        DrawOp(
            None,
            Text((LIST_PADDING, LIST_PADDING + LIST_FONT_SIZE), "left", width, PLACEHOLDER),
        ),
    )
    return Layout(operations=ops, size=Rect(0.0, 0.0, width, height))


def entry_caption(fields: cabc.Sequence[str]) -> str:
    text = " ".join(f for f in fields if f)
    if len(text) > MAX_FIELD_TEXT:
        text = text[: MAX_FIELD_TEXT - 3] + "..."
    return text or "?"


class ListView(View):
    """One row per tracked name: the label, then the objects reachable from it."""

    kind = ViewKind.LIST

    def build_layout(self, snapshot: Snapshot) -> Layout:
        entries = snapshot.entries
        by_box = {entry.box: ident for ident, entry in entries.items()}
        ops: list[DrawOp] = [
            DrawOp(None, Color("#000000", filled=False)),
            DrawOp(None, Font(LIST_FONT_SIZE, "Sans")),
        ]
        boxes: dict[int, Box] = {}
        rects: dict[int, Rect] = {}
        row_height = LIST_FONT_SIZE + 2 * LIST_PADDING
        y = LIST_ROW_GAP
        width = 0.0

        for item in snapshot.tracked:
            caption = f"{item.label}:"
            x = LIST_PADDING
            caption_w = render.text_width(caption, LIST_FONT_SIZE)
            baseline = (x, y + LIST_PADDING + LIST_FONT_SIZE * 0.8)
            ops.append(DrawOp(None, Text(baseline, "left", caption_w, caption)))
            x += caption_w + LIST_BOX_GAP

            for ident in self._row(entries, by_box.get(item.box)):
                text = entry_caption(entries[ident].fields)
                text_w = render.text_width(text, LIST_FONT_SIZE)
                rect = Rect(x, y, text_w + 2 * LIST_PADDING, row_height)
                key = len(boxes)
                boxes[key] = entries[ident].box
                rects[key] = rect
                corners = (
                    (rect.x, rect.y),
                    (rect.x + rect.width, rect.y),
                    (rect.x + rect.width, rect.y + rect.height),
                    (rect.x, rect.y + rect.height),
                )
                ops.append(DrawOp(key, Polygon(corners, filled=False)))
                baseline = (x + LIST_PADDING, y + LIST_PADDING + LIST_FONT_SIZE * 0.8)
                ops.append(DrawOp(key, Text(baseline, "left", text_w, text)))
                x += rect.width + LIST_BOX_GAP
            width = max(width, x)
            y += row_height + LIST_ROW_GAP

        return Layout(
            operations=tuple(ops),
            boxes=boxes,
            rects=rects,
            size=Rect(0.0, 0.0, width + LIST_PADDING, y),
        )

    @staticmethod
    def _row(entries: cabc.Mapping[int, Any], root: int | None) -> list[int]:
        """Depth-first order of the entries reachable from ``root``, each once."""
        if root is None:
            return []
        order: list[int] = []
        seen: set[int] = set()
        stack = [root]
        while stack and len(order) < MAX_ROW_ENTRIES:
            ident = stack.pop()
            if ident in seen or ident not in entries:
                continue
            seen.add(ident)
            order.append(ident)
            children = [t for t in entry_slots(entries[ident]) if t is not None]
            stack.extend(reversed(children))
        return order


class GraphView(View):
    """Reference graph laid out by the external layout engine."""

    kind = ViewKind.GRAPH

    def __init__(
        self,
        view_state: ViewState,
        post: cabc.Callable[[Signal], object],
        evaluate: cabc.Callable[[object], object] | None = None,
        engine: LayoutEngine | None = None,
    ) -> None:
        super().__init__(view_state, post, evaluate)
        self.engine: LayoutEngine = engine if engine is not None else GraphvizEngine()

    def build_layout(self, snapshot: Snapshot) -> Layout:
        try:
            return xdot_layout(snapshot, self.engine)
        except (LayoutError, XDotError) as exc:
            logger.warning("Cannot lay out the heap graph: %s", exc)
            return placeholder_layout()


def make_views(
    view_state: ViewState,
    post: cabc.Callable[[Signal], object],
    engine: LayoutEngine | None = None,
    evaluate: cabc.Callable[[object], object] | None = None,
) -> dict[ViewKind, View]:
    """Instantiate both view variants keyed by :class:`ViewKind`."""
    return {
        ViewKind.LIST: ListView(view_state, post, evaluate),
        ViewKind.GRAPH: GraphView(view_state, post, evaluate, engine=engine),
    }
