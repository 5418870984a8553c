#!/usr/bin/env python3
"""Interactive matplotlib viewer for live Python object graphs."""

# mypy: ignore-errors

from __future__ import annotations

import argparse
import collections.abc as cabc
import logging
import os
import runpy
import sys
import threading
import types
from typing import TYPE_CHECKING, Any, TypeAlias

if __package__ in (None, ""):
    import importlib

    PACKAGE_ROOT = os.path.dirname(os.path.dirname(__file__))
    if PACKAGE_ROOT not in sys.path:
        sys.path.insert(0, PACKAGE_ROOT)
    api = importlib.import_module("heap_viewer.api")
    heap = importlib.import_module("heap_viewer.heap")
    model = importlib.import_module("heap_viewer.model")
    render = importlib.import_module("heap_viewer.render")
    viewport = importlib.import_module("heap_viewer.viewport")
else:  # pragma: no cover - exercised via unit tests
    from . import api, heap, model, render, viewport

logger = logging.getLogger(__name__)

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from matplotlib.axes import Axes
    from matplotlib.backend_bases import Event, KeyEvent, MouseEvent
else:
    Axes: TypeAlias = Any

TITLE = "heap-viewer"
DEFAULT_SIZE = (640, 480)
LEFT_BUTTON, MIDDLE_BUTTON, RIGHT_BUTTON = 1, 2, 3

LEGENDS = {
    model.ViewKind.LIST: (
        "List view",
        "name: obj  child  child ...",
        "each row lists what the name reaches",
    ),
    model.ViewKind.GRAPH: (
        "Graph view",
        "record = fields | pointer ports",
        "arrows leave from the port they fill",
    ),
}
KEY_HELP = (
    "wheel / + -   zoom",
    "right drag    pan",
    "hjkl / arrows pan (shift: more)",
    "0 / middle    reset",
    "click / enter update",
    "v switch   u update   c clear",
    ", .   older / newer snapshot",
)

_SKIPPED_GLOBALS = (
    types.ModuleType,
    type,
    types.FunctionType,
    types.BuiltinFunctionType,
)


def select_objects(
    namespace: cabc.Mapping[str, object], names: cabc.Sequence[str] | None = None,
) -> list[tuple[str, object]]:
    """Pick the globals of a script to track.

    Explicit ``names`` are returned in the given order; otherwise every public
    global that is not a module, class or function is used.
    """
    if names:
        missing = [name for name in names if name not in namespace]
        if missing:
            msg = f"not defined by the script: {', '.join(missing)}"
            raise KeyError(msg)
        return [(name, namespace[name]) for name in names]
    return [
        (name, value)
        for name, value in namespace.items()
        if not name.startswith("_") and not isinstance(value, _SKIPPED_GLOBALS)
    ]


def export_once(
    visualizer: api.Visualizer,
    objects: cabc.Sequence[tuple[str, object]],
    path: str,
    graph: bool = False,
) -> str | None:
    """Snapshot ``objects`` and write one view to ``path`` without a window.

    Runs the reactor's handlers synchronously on the calling thread. Returns an
    error message if the file extension is not supported.
    """
    writer = render.resolve_writer(path)
    if writer is None:
        return render.UNKNOWN_EXTENSION
    register_all(visualizer, objects, graph=graph)
    visualizer.reactor.active_view.export(writer, path)
    return None


def register_all(
    visualizer: api.Visualizer,
    objects: cabc.Sequence[tuple[str, object]],
    graph: bool = False,
) -> None:
    """Track ``objects`` through the reactor's handlers on the calling thread.

    Must run before the reactor is started.
    """
    reactor = visualizer.reactor
    for name, obj in objects:
        reactor.handle(model.NewObject(model.Box(obj), name))
    if graph:
        reactor.handle(model.SwitchView())


def draw_legend(ax: Axes, kind: model.ViewKind, history: tuple[int, int]) -> None:
    """Describe the active view, the history position and the key bindings."""
    ax.cla()
    ax.set_axis_off()
    title, *lines = LEGENDS[kind]
    cursor, total = history
    position = f"snapshot {cursor + 1} of {total} (1 = newest)"
    text = "\n".join([*lines, "", position, "", *KEY_HELP])
    ax.set_title(title, fontsize=10, loc="left")
    ax.text(
        0.0, 1.0, text,
        transform=ax.transAxes,
        fontsize=8,
        va="top",
        ha="left",
        family="monospace",
    )


def show(visualizer: api.Visualizer, fps: int = 30) -> None:
    """Open the viewer window and block until it is closed."""
    try:
        import matplotlib.pyplot as plt
        from matplotlib.animation import FuncAnimation
    except ModuleNotFoundError as exc:  # pragma: no cover - viewer path only
        raise RuntimeError("Matplotlib is required to run the viewer") from exc

    state = visualizer.state
    vs = state.view_state
    reactor = visualizer.reactor

    # The viewer owns the keyboard; keep only matplotlib's quit binding.
    for key in list(plt.rcParams):
        if key.startswith("keymap.") and key != "keymap.quit":
            plt.rcParams[key] = []

    fig = plt.figure(figsize=(DEFAULT_SIZE[0] / 80, DEFAULT_SIZE[1] / 80))
    gs = fig.add_gridspec(nrows=1, ncols=2, width_ratios=[4, 1.3])
    ax = fig.add_subplot(gs[0, 0])
    ax_legend = fig.add_subplot(gs[0, 1])
    ax.set_axis_off()
    ax_legend.set_axis_off()
    if fig.canvas.manager is not None:
        fig.canvas.manager.set_window_title(TITLE)

    need_redraw = threading.Event()
    need_redraw.set()
    state.redraw_listeners.append(need_redraw.set)
    shown_view = vs.active_view

    def pointer(event: MouseEvent) -> model.Point | None:
        if event.x is None or event.y is None:
            return None
        bbox = ax.bbox
        return (event.x - bbox.x0, bbox.y1 - event.y)

    def on_move(event: MouseEvent) -> None:
        pos = pointer(event)
        if pos is None:
            return
        if viewport.pointer_moved(vs, pos) or reactor.active_view.move(ax):
            need_redraw.set()

    def on_press(event: MouseEvent) -> None:
        pos = pointer(event)
        if pos is not None:
            vs.mouse_pos = pos
        if event.button == LEFT_BUTTON and not event.dblclick:
            reactor.active_view.click()
        elif event.button == RIGHT_BUTTON:
            vs.dragging = True
        elif event.button == MIDDLE_BUTTON:
            viewport.reset(vs)
            need_redraw.set()

    def on_release(event: MouseEvent) -> None:
        if event.button == RIGHT_BUTTON:
            vs.dragging = False

    def on_scroll(event: MouseEvent) -> None:
        if event.button == "up":
            viewport.zoom_in(vs)
        elif event.button == "down":
            viewport.zoom_out(vs)
        need_redraw.set()

    def on_key(event: KeyEvent) -> None:
        action = viewport.handle_key(vs, event.key)
        if action == "click":
            reactor.active_view.click()
        elif action is not None:
            visualizer.post(action)
        need_redraw.set()

    def on_resize(_: Event) -> None:
        need_redraw.set()

    def on_close(_: Event) -> None:
        visualizer.stop()

    def update(_: int) -> tuple[object, ...]:
        nonlocal shown_view
        if vs.active_view is not shown_view:
            # A fresh view starts unzoomed.
            shown_view = vs.active_view
            viewport.reset(vs)
            need_redraw.set()
        if not need_redraw.is_set():
            return ()
        need_redraw.clear()
        reactor.active_view.redraw(ax)
        with state.history_lock:
            position = (state.history.cursor, len(state.history))
        draw_legend(ax_legend, vs.active_view, position)
        return ()

    cids = [
        fig.canvas.mpl_connect("key_press_event", on_key),
        fig.canvas.mpl_connect("scroll_event", on_scroll),
        fig.canvas.mpl_connect("motion_notify_event", on_move),
        fig.canvas.mpl_connect("button_press_event", on_press),
        fig.canvas.mpl_connect("button_release_event", on_release),
        fig.canvas.mpl_connect("resize_event", on_resize),
        fig.canvas.mpl_connect("close_event", on_close),
    ]

    visualizer.start()
    visualizer.request_update()

    interval_ms = int(1000 / max(1, fps))
    anim = FuncAnimation(
        fig,
        update,
        interval=interval_ms,
        blit=False,
        cache_frame_data=False,
    )
    plt.show()
    _ = (cids, anim)


def main(argv: list[str] | None = None) -> int:
    """Run a script and show (or export) the objects it defines."""
    p = argparse.ArgumentParser(
        description="Live viewer for the object graphs of a Python script",
    )
    p.add_argument("script", help="Python file whose globals are visualized")
    p.add_argument(
        "--name",
        action="append",
        dest="names",
        help="global to show (repeatable); default: every public value",
    )
    p.add_argument("--graph", action="store_true", help="start in the graph view")
    p.add_argument(
        "--max-depth",
        type=int,
        default=heap.DEFAULT_BOUND,
        help="how many references deep to follow",
    )
    p.add_argument(
        "--strict-prune",
        action="store_true",
        help="also prune name nodes, keeping only what they point to",
    )
    p.add_argument("--export", metavar="PATH", help="write the view to PATH and exit")
    p.add_argument("--fps", type=int, default=30)
    p.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    namespace = runpy.run_path(args.script, run_name="__heap_viewer__")
    try:
        objects = select_objects(namespace, args.names)
    except KeyError as exc:
        raise SystemExit(f"{args.script}: {exc.args[0]}") from exc

    visualizer = api.Visualizer(bound=args.max_depth, keep_roots=not args.strict_prune)

    if args.export:
        error = export_once(visualizer, objects, args.export, graph=args.graph)
        if error is not None:
            raise SystemExit(error)
        return 0

    register_all(visualizer, objects, graph=args.graph)
    show(visualizer, fps=args.fps)
    return 0


if __name__ == "__main__":
    sys.exit(main())
