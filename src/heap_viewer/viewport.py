"""Pan/zoom state changes and the canvas <-> widget coordinate mapping."""

from __future__ import annotations

import logging

from .model import Clear, MoveHistory, Point, Rect, Signal, SwitchView, Update, ViewState

logger = logging.getLogger(__name__)

ZOOM_INCREMENT = 1.25
POSITION_INCREMENT = 50.0
BIG_POSITION_INCREMENT = 200.0

ZOOM_IN_KEYS = ("+", "pageup", "kp_add")
ZOOM_OUT_KEYS = ("-", "pagedown", "kp_subtract")
RESET_KEYS = ("0", "=")
CLICK_KEYS = (" ", "enter", "kp_enter")

# key -> (dx, dy) in small steps; the shifted variants move a big step.
PAN_KEYS: dict[str, tuple[int, int]] = {
    "left": (1, 0), "h": (1, 0), "a": (1, 0),
    "right": (-1, 0), "l": (-1, 0), "d": (-1, 0),
    "up": (0, 1), "k": (0, 1), "w": (0, 1),
    "down": (0, -1), "j": (0, -1), "s": (0, -1),
}
BIG_PAN_KEYS: dict[str, tuple[int, int]] = {
    "shift+left": (1, 0), "H": (1, 0), "A": (1, 0),
    "shift+right": (-1, 0), "L": (-1, 0), "D": (-1, 0),
    "shift+up": (0, 1), "K": (0, 1), "W": (0, 1),
    "shift+down": (0, -1), "J": (0, -1), "S": (0, -1),
}
SIGNAL_KEYS: dict[str, Signal] = {
    "v": SwitchView(),
    "c": Clear(),
    "u": Update(),
    ",": MoveHistory(1),
    ".": MoveHistory(-1),
}


def set_zoom(state: ViewState, new_zoom: float) -> None:
    """Change the zoom ratio, scaling the pan by the same factor.

    Zoom is anchored at the canvas origin, not at the pointer.
    """
    factor = new_zoom / state.zoom_ratio
    px, py = state.pan
    state.zoom_ratio = new_zoom
    state.pan = (px * factor, py * factor)


def zoom_in(state: ViewState) -> None:
    set_zoom(state, state.zoom_ratio * ZOOM_INCREMENT)


def zoom_out(state: ViewState) -> None:
    set_zoom(state, state.zoom_ratio / ZOOM_INCREMENT)


def reset(state: ViewState) -> None:
    state.zoom_ratio = 1.0
    state.pan = (0.0, 0.0)


def pan_by(state: ViewState, dx: float, dy: float) -> None:
    px, py = state.pan
    state.pan = (px + dx, py + dy)


def pointer_moved(state: ViewState, pos: Point) -> bool:
    """Record the pointer position; while dragging, pan by its delta.

    Returns ``True`` if the pan changed.
    """
    old_x, old_y = state.mouse_pos
    state.mouse_pos = pos
    if not state.dragging:
        return False
    pan_by(state, pos[0] - old_x, pos[1] - old_y)
    return True


def handle_key(state: ViewState, key: str | None) -> Signal | str | None:
    """Apply a viewport key binding.

    Returns the signal to enqueue, ``"click"`` for the click keys, or ``None``
    when the key only changed the viewport (or is unbound).
    """
    if key is None:
        return None
    if key in ZOOM_IN_KEYS:
        zoom_in(state)
    elif key in ZOOM_OUT_KEYS:
        zoom_out(state)
    elif key in RESET_KEYS:
        reset(state)
    elif key in PAN_KEYS:
        dx, dy = PAN_KEYS[key]
        pan_by(state, dx * POSITION_INCREMENT, dy * POSITION_INCREMENT)
    elif key in BIG_PAN_KEYS:
        dx, dy = BIG_PAN_KEYS[key]
        pan_by(state, dx * BIG_POSITION_INCREMENT, dy * BIG_POSITION_INCREMENT)
    elif key in CLICK_KEYS:
        return "click"
    elif key in SIGNAL_KEYS:
        return SIGNAL_KEYS[key]
    else:
        logger.debug("Unbound key %r", key)
    return None


# -------- Coordinate mapping --------


def fit_scale(canvas: Rect, widget: tuple[float, float]) -> float:
    """Scale that fits ``canvas`` into ``widget`` (never enlarging past 1:1)."""
    width, height = widget
    if canvas.width <= 0 or canvas.height <= 0:
        return 1.0
    return min(1.0, width / canvas.width, height / canvas.height)


def _transform(
    state: ViewState, canvas: Rect, widget: tuple[float, float],
) -> tuple[float, float, float]:
    """Return ``(scale, offset_x, offset_y)`` with widget = offset + scale * canvas."""
    scale = fit_scale(canvas, widget) * state.zoom_ratio
    width, height = widget
    px, py = state.pan
    ox = (width - scale * canvas.width) / 2 + px - scale * canvas.x
    oy = (height - scale * canvas.height) / 2 + py - scale * canvas.y
    return scale, ox, oy


def to_canvas(
    state: ViewState, canvas: Rect, widget: tuple[float, float], pos: Point,
) -> Point:
    """Map a widget pixel position (y down) to canvas coordinates."""
    scale, ox, oy = _transform(state, canvas, widget)
    return ((pos[0] - ox) / scale, (pos[1] - oy) / scale)


def visible_window(
    state: ViewState, canvas: Rect, widget: tuple[float, float],
) -> tuple[float, float, float, float, float]:
    """Return ``(x0, x1, y0, y1, scale)``: the canvas region shown in the widget."""
    scale, ox, oy = _transform(state, canvas, widget)
    width, height = widget
    return (-ox / scale, (width - ox) / scale, -oy / scale, (height - oy) / scale, scale)
