"""Programmatic entry points for attaching objects to the viewer."""

from __future__ import annotations

import collections.abc as cabc
import logging

from .heap import DEFAULT_BOUND
from .layout import GraphvizEngine, LayoutEngine
from .model import (
    Box,
    Clear,
    Export,
    MoveHistory,
    NewObject,
    Signal,
    SwitchView,
    Update,
)
from .reactor import SIGNAL_TIMEOUT, Reactor, VisState, put
from .render import UNKNOWN_EXTENSION, resolve_writer
from .views import make_views

logger = logging.getLogger(__name__)


class Visualizer:
    """Owns the shared state and the reactor; every method only enqueues."""

    def __init__(
        self,
        engine: LayoutEngine | None = None,
        bound: int = DEFAULT_BOUND,
        keep_roots: bool = True,
        timeout: float = SIGNAL_TIMEOUT,
        evaluate: cabc.Callable[[object], object] | None = None,
    ) -> None:
        self.state = VisState()
        self.timeout = timeout
        self.engine: LayoutEngine = engine if engine is not None else GraphvizEngine()
        views = make_views(
            self.state.view_state, self.post, engine=self.engine, evaluate=evaluate,
        )
        self.reactor = Reactor(
            self.state,
            views=views,
            engine=self.engine,
            bound=bound,
            keep_roots=keep_roots,
            timeout=timeout,
        )

    def start(self) -> None:
        self.reactor.start()

    def stop(self) -> None:
        self.reactor.stop()

    @property
    def running(self) -> bool:
        return self.state.running.is_set()

    def post(self, signal: Signal) -> bool:
        return put(self.state, signal, self.timeout)

    def register(self, obj: object, label: str) -> bool:
        """Track ``obj`` under ``label``."""
        return self.post(NewObject(Box(obj), label))

    def request_update(self) -> bool:
        return self.post(Update())

    def clear(self) -> bool:
        return self.post(Clear())

    def switch_view(self) -> bool:
        return self.post(SwitchView())

    def move_history(self, delta: int) -> bool:
        """Step ``delta`` snapshots back (positive) or forward (negative)."""
        return self.post(MoveHistory(delta))

    def export_to(self, path: str) -> str | None:
        """Export the current view; returns an error message for unknown formats."""
        writer = resolve_writer(path)
        if writer is None:
            logger.warning("%s (got %r)", UNKNOWN_EXTENSION, path)
            return UNKNOWN_EXTENSION
        self.post(Export(writer, path))
        return None

    def evaluate(self, label: str) -> bool:
        """Force the object bound to ``label`` and refresh the view."""
        for item in self.state.tracked():
            if item.label != label:
                continue
            obj = item.box.get()
            evaluator = self.reactor.active_view.evaluate
            if evaluator is not None and obj is not None:
                evaluator(obj)
        return self.request_update()


# -------- Module-level convenience API --------

_default: Visualizer | None = None


def get_visualizer() -> Visualizer:
    """Return the default visualizer, creating it on first use."""
    global _default
    if _default is None:
        _default = Visualizer()
    return _default


def vis() -> Visualizer:
    """Start the default visualizer's reactor (idempotent)."""
    visualizer = get_visualizer()
    visualizer.start()
    return visualizer


def view(obj: object, name: str) -> None:
    get_visualizer().register(obj, name)


def update() -> None:
    get_visualizer().request_update()


def clear() -> None:
    get_visualizer().clear()


def switch() -> None:
    get_visualizer().switch_view()


def move_history(delta: int) -> None:
    get_visualizer().move_history(delta)


def export(path: str) -> str | None:
    return get_visualizer().export_to(path)


def evaluate(name: str) -> None:
    get_visualizer().evaluate(name)
