# pyright: reportUnknownMemberType=false, reportPrivateUsage=false

import queue
import time

import pytest
from conftest import DummyEngine

import heap_viewer
import heap_viewer.api as api
from heap_viewer.model import (
    Box,
    Clear,
    Export,
    MoveHistory,
    NewObject,
    SwitchView,
    Update,
    ViewKind,
)
from heap_viewer.render import UNKNOWN_EXTENSION


def make_visualizer(**kwargs: object) -> api.Visualizer:
    return api.Visualizer(engine=DummyEngine(), timeout=0.01, **kwargs)


def drain(visualizer: api.Visualizer) -> object:
    return visualizer.state.signals.get_nowait()


def test_export_to_rejects_unknown_extension() -> None:
    visualizer = make_visualizer()

    assert visualizer.export_to("out.xyz") == UNKNOWN_EXTENSION
    with pytest.raises(queue.Empty):
        drain(visualizer)


def test_export_to_enqueues_the_writer() -> None:
    visualizer = make_visualizer()

    assert visualizer.export_to("picture.PDF") is None
    assert drain(visualizer) == Export("pdf", "picture.PDF")


def test_operations_only_enqueue_signals() -> None:
    visualizer = make_visualizer()
    xs = [1]
    calls = [
        (lambda: visualizer.register(xs, "xs"), NewObject(Box(xs), "xs")),
        (visualizer.request_update, Update()),
        (visualizer.clear, Clear()),
        (visualizer.switch_view, SwitchView()),
        (lambda: visualizer.move_history(-2), MoveHistory(-2)),
    ]

    for call, expected in calls:
        assert call()
        assert drain(visualizer) == expected
    assert visualizer.state.tracked() == []


def test_signals_are_dropped_while_the_slot_is_full() -> None:
    visualizer = make_visualizer()

    assert visualizer.request_update()
    assert not visualizer.clear()
    assert drain(visualizer) == Update()


def test_evaluate_forces_the_named_object() -> None:
    forced: list[object] = []
    visualizer = make_visualizer(evaluate=forced.append)
    xs = [1]
    visualizer.reactor.handle(NewObject(Box(xs), "xs"))

    assert visualizer.evaluate("xs")

    assert forced == [xs]
    assert drain(visualizer) == Update()


def test_visualizer_round_trip() -> None:
    visualizer = api.Visualizer(engine=DummyEngine(), timeout=0.5)
    xs = [1, 2]
    visualizer.start()
    try:
        assert visualizer.running
        visualizer.register(xs, "xs")
        visualizer.switch_view()
        end = time.monotonic() + 5.0
        while visualizer.reactor.processed < 2 and time.monotonic() < end:
            time.sleep(0.01)
    finally:
        visualizer.stop()

    latest = visualizer.state.history.latest
    assert [item.label for item in latest.tracked] == ["xs"]
    assert latest.graph.number_of_nodes() == 4
    assert visualizer.reactor.active_view.kind is ViewKind.GRAPH


def test_package_reexports_the_module_api() -> None:
    assert heap_viewer.view is api.view
    assert heap_viewer.export is api.export
    assert set(heap_viewer.__all__) >= {"vis", "view", "update", "clear", "switch"}


def test_package_keeps_the_history_module_reachable() -> None:
    import heap_viewer.history as history

    assert hasattr(history, "History")
    assert heap_viewer.move_history is api.move_history


def test_module_level_functions_drive_the_default_visualizer(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    visualizer = make_visualizer()
    monkeypatch.setattr(api, "_default", visualizer)
    xs = [1]

    api.view(xs, "xs")
    assert drain(visualizer) == NewObject(Box(xs), "xs")
    api.move_history(3)
    assert drain(visualizer) == MoveHistory(3)
    assert api.export("out.bmp") == UNKNOWN_EXTENSION
    assert api.get_visualizer() is visualizer
