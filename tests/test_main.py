# pyright: reportUnknownMemberType=false, reportPrivateUsage=false

import os
import textwrap
from pathlib import Path

import pytest
from conftest import DummyEngine
from matplotlib.figure import Figure

import heap_viewer.api as api
import heap_viewer.main as main
from heap_viewer.model import ViewKind


def test_select_objects_defaults_to_public_values() -> None:
    namespace = {
        "xs": [1],
        "_hidden": 2,
        "os": os,
        "Path": Path,
        "helper": lambda: None,
        "count": 3,
    }

    selected = main.select_objects(namespace)

    assert [name for name, _ in selected] == ["xs", "count"]


def test_select_objects_keeps_requested_order() -> None:
    namespace = {"a": 1, "b": 2}

    assert main.select_objects(namespace, ["b", "a"]) == [("b", 2), ("a", 1)]


def test_select_objects_reports_missing_names() -> None:
    with pytest.raises(KeyError, match="not defined by the script: c"):
        main.select_objects({"a": 1}, ["a", "c"])


def test_export_once_writes_the_list_view(tmp_path: Path) -> None:
    visualizer = api.Visualizer(engine=DummyEngine(available=False))
    path = tmp_path / "list.png"

    assert main.export_once(visualizer, [("xs", [1, 2])], str(path)) is None

    assert path.read_bytes().startswith(b"\x89PNG")
    assert len(visualizer.state.history) == 2


def test_export_once_can_use_the_graph_view(tmp_path: Path) -> None:
    engine = DummyEngine()
    visualizer = api.Visualizer(engine=engine)
    path = tmp_path / "graph.svg"

    main.export_once(visualizer, [("xs", [])], str(path), graph=True)

    assert visualizer.state.view_state.active_view is ViewKind.GRAPH
    assert len(engine.graphs) == 1
    assert "<svg" in path.read_text()


def test_export_once_rejects_unknown_extension(tmp_path: Path) -> None:
    visualizer = api.Visualizer(engine=DummyEngine())

    error = main.export_once(visualizer, [("xs", [1])], str(tmp_path / "out.gif"))

    assert error == main.render.UNKNOWN_EXTENSION
    assert visualizer.state.tracked() == []


def test_draw_legend_lists_history_position() -> None:
    ax = Figure().add_subplot()

    main.draw_legend(ax, ViewKind.GRAPH, (1, 3))

    (text,) = ax.texts
    assert "snapshot 2 of 3" in text.get_text()
    assert ax.get_title(loc="left") == "Graph view"


def test_main_exports_script_globals(tmp_path: Path) -> None:
    script = tmp_path / "demo.py"
    script.write_text(
        textwrap.dedent(
            """
            import os

            pairs = [(1, "one"), (2, "two")]
            table = {"pairs": pairs}
            """
        )
    )
    out = tmp_path / "demo.svg"

    assert main.main([str(script), "--name", "table", "--export", str(out)]) == 0

    assert "<svg" in out.read_text()


def test_main_registers_every_global_before_showing(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
) -> None:
    script = tmp_path / "demo.py"
    script.write_text("a = [1]\nb = {'k': 2}\nc = (3, 4)\nd = 'text'\n")
    shown: list[api.Visualizer] = []
    monkeypatch.setattr(main, "show", lambda visualizer, fps: shown.append(visualizer))

    assert main.main([str(script)]) == 0

    (visualizer,) = shown
    assert not visualizer.running
    assert [item.label for item in visualizer.state.tracked()] == ["a", "b", "c", "d"]
    assert visualizer.state.signals.empty()


def test_main_exits_on_unknown_names(tmp_path: Path) -> None:
    script = tmp_path / "demo.py"
    script.write_text("xs = [1]\n")

    with pytest.raises(SystemExit, match="missing"):
        main.main([str(script), "--name", "missing", "--export", str(tmp_path / "x.png")])


def test_main_exits_on_unknown_extension(tmp_path: Path) -> None:
    script = tmp_path / "demo.py"
    script.write_text("xs = [1]\n")

    with pytest.raises(SystemExit, match="Unknown file extension"):
        main.main([str(script), "--export", str(tmp_path / "x.bmp")])
