"""The signal loop: the only thread that mutates the registry and history."""

from __future__ import annotations

import collections.abc as cabc
import logging
import queue
import threading
from dataclasses import dataclass, field

from .graph import capture_snapshot
from .heap import DEFAULT_BOUND, collect_garbage
from .history import History
from .layout import GraphvizEngine, LayoutEngine
from .model import (
    Clear,
    Export,
    MoveHistory,
    NewObject,
    Signal,
    Snapshot,
    SwitchView,
    TrackedObject,
    Update,
    ViewKind,
    ViewState,
)
from .views import View, make_views

logger = logging.getLogger(__name__)

SIGNAL_TIMEOUT = 1.0


@dataclass
class VisState:
    """Process-wide state shared by the input thread and the reactor.

    Writers: the reactor owns ``registry``, ``history`` and
    ``view_state.active_view``; the input thread owns the remaining
    ``view_state`` fields. Readers on other threads take the matching lock.
    """

    registry: list[TrackedObject] = field(default_factory=list)
    history: History = field(default_factory=History)
    view_state: ViewState = field(default_factory=ViewState)
    signals: queue.Queue[Signal] = field(default_factory=lambda: queue.Queue(maxsize=1))
    running: threading.Event = field(default_factory=threading.Event)
    registry_lock: threading.Lock = field(default_factory=threading.Lock)
    history_lock: threading.Lock = field(default_factory=threading.Lock)
    redraw_listeners: list[cabc.Callable[[], object]] = field(default_factory=list)

    def tracked(self) -> list[TrackedObject]:
        with self.registry_lock:
            return list(self.registry)

    def current_snapshot(self) -> Snapshot:
        with self.history_lock:
            return self.history.current


def put(state: VisState, signal: Signal, timeout: float = SIGNAL_TIMEOUT) -> bool:
    """Enqueue ``signal``, dropping it if the slot stays full for ``timeout``."""
    try:
        state.signals.put(signal, timeout=timeout)
    except queue.Full:
        logger.debug("Dropped %r: reactor is busy", signal)
        return False
    return True


class Reactor:
    """Consumes signals one at a time and rebuilds snapshots and views."""

    def __init__(
        self,
        state: VisState,
        views: dict[ViewKind, View] | None = None,
        engine: LayoutEngine | None = None,
        snapshotter: cabc.Callable[[list[TrackedObject]], Snapshot] | None = None,
        collect: cabc.Callable[[], object] = collect_garbage,
        bound: int = DEFAULT_BOUND,
        keep_roots: bool = True,
        timeout: float = SIGNAL_TIMEOUT,
    ) -> None:
        self.state = state
        self.engine: LayoutEngine = engine if engine is not None else GraphvizEngine()
        self.views = views if views is not None else make_views(
            state.view_state, lambda s: put(state, s), engine=self.engine,
        )
        self.snapshotter = snapshotter or (
            lambda tracked: capture_snapshot(tracked, bound, keep_roots)
        )
        self.collect = collect
        self.timeout = timeout
        self.processed = 0
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def active_view(self) -> View:
        return self.views[self.state.view_state.active_view]

    # -------- lifecycle --------

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopped.clear()
        self.state.running.set()
        self._thread = threading.Thread(
            target=self.run, name="heap-viewer-reactor", daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Shut the loop down; it exits at the next timeout or signal."""
        self._stopped.set()
        self.state.running.clear()
        if self._thread is not None:
            self._thread.join(timeout if timeout is not None else 2 * self.timeout)
            self._thread = None

    def run(self) -> None:
        while not self._stopped.is_set():
            self.step()
        logger.debug("Reactor stopped after %d signals", self.processed)

    def step(self) -> bool:
        """Wait for one signal and handle it; returns ``False`` on timeout."""
        try:
            signal = self.state.signals.get(timeout=self.timeout)
        except queue.Empty:
            if not self.state.running.is_set() and not self._stopped.is_set():
                # The host reset the flag (e.g. a module reload): re-arm.
                self.state.running.set()
                put(self.state, Update(), self.timeout)
            return False
        try:
            self.handle(signal)
        except Exception:
            logger.exception("Failed to handle %r", signal)
        finally:
            self.processed += 1
        return True

    # -------- signal handling --------

    def handle(self, signal: Signal) -> None:
        state = self.state
        if isinstance(signal, NewObject):
            item = TrackedObject(signal.box, signal.label)
            with state.registry_lock:
                if item not in state.registry:
                    state.registry.append(item)
            self.rebuild()
        elif isinstance(signal, Update):
            self.rebuild()
        elif isinstance(signal, Clear):
            with state.registry_lock:
                state.registry.clear()
            with state.history_lock:
                state.history.clear()
            self.refresh()
        elif isinstance(signal, SwitchView):
            self.switch_view()
        elif isinstance(signal, MoveHistory):
            with state.history_lock:
                state.history.move_cursor(lambda cursor: cursor + signal.delta)
            self.refresh()
        elif isinstance(signal, Export):
            self.export(signal.writer, signal.path)
        else:
            logger.warning("Ignoring unknown signal %r", signal)

    def rebuild(self) -> None:
        """Take a fresh snapshot of the registry and show it."""
        self.collect()
        snapshot = self.snapshotter(self.state.tracked())
        with self.state.history_lock:
            self.state.history.push(snapshot)
        self.refresh()

    def refresh(self) -> None:
        """Rebuild the active view from the displayed snapshot, then redraw."""
        self.active_view.update_objects(self.state.current_snapshot())
        self.request_redraw()

    def request_redraw(self) -> None:
        for listener in list(self.state.redraw_listeners):
            try:
                listener()
            except Exception as exc:  # pragma: no cover - host callbacks
                logger.debug("Redraw listener failed: %s", exc)

    def switch_view(self) -> None:
        view_state = self.state.view_state
        if not self.engine.available():
            logger.warning("Cannot switch view: Graphviz not installed")
            return
        view_state.active_view = view_state.active_view.toggled()
        logger.debug("Switched to the %s view", view_state.active_view.value)
        self.refresh()

    def export(self, writer: str, path: str) -> None:
        try:
            self.active_view.export(writer, path)
        except Exception as exc:
            logger.error("Couldn't export to file %r: %s", path, exc)
