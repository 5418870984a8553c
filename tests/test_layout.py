# pyright: reportUnknownMemberType=false, reportPrivateUsage=false

import json
import shutil

import pytest
from conftest import SAMPLE_JSON, SAMPLE_LAYOUT, DummyEngine

import heap_viewer.layout as layout
from heap_viewer.graph import capture_snapshot
from heap_viewer.model import Box, Entry, NodeLabel, Rect, Snapshot, TrackedObject
from heap_viewer.xdot import BSpline, Color, Font, Polygon, Text


def sample_entries() -> dict[int, Entry]:
    return {0: Entry(0, Box([]), ("list",), ())}


def test_node_names_round_trip() -> None:
    assert layout.node_name(3) == "n3"
    assert layout.node_name(-2) == "r2"
    assert layout.node_ident("n3") == 3
    assert layout.node_ident("r2") == -2
    assert layout.node_ident("graph") is None
    assert layout.node_ident("node") is None


def test_record_label_lists_fields_then_ports() -> None:
    label = NodeLabel(("dict", "'a|b'"), 2)

    assert layout.record_label(label) == "dict|'a\\|b'|<0>|<1>"


def test_record_escape_quotes_and_braces() -> None:
    assert layout.record_escape('{"x"}') == "\\{'x'\\}"


def test_to_dot_styles_records_and_name_nodes() -> None:
    xs = [1]
    snapshot = capture_snapshot([TrackedObject(Box(xs), "xs")])

    source = layout.to_dot(snapshot.graph).source
    lines = [line.strip() for line in source.splitlines()]

    assert 'bgcolor="#00000000"' in source
    assert any(line.startswith('n0 [label="list|<0>"') for line in lines)
    assert any(line.startswith("r1 [") and "style=invis" in line for line in lines)
    (entry_edge,) = [line for line in lines if line.startswith("n0 -> n1")]
    (name_edge,) = [line for line in lines if line.startswith("r1 -> n0")]
    assert "tailport=0" in entry_edge
    assert "label=xs" in name_edge
    assert "tailport" not in name_edge


def test_parse_layout_reads_operations_in_document_order() -> None:
    result = layout.parse_layout(SAMPLE_JSON, sample_entries())

    owners = [draw.owner for draw in result.operations]
    assert owners[:3] == [None, None, None]
    assert owners[3:8] == [0, 0, 0, 0, 0]
    assert set(owners[8:]) == {-1}
    assert result.size == Rect(0.0, 0.0, 200.0, 100.0)
    assert result.operations[2].op == Polygon(
        ((0.0, 100.0), (0.0, 0.0), (200.0, 0.0), (200.0, 100.0)), filled=True,
    )


def test_parse_layout_flips_text_and_splines() -> None:
    result = layout.parse_layout(SAMPLE_JSON)

    ops = [d.op for d in result.operations]
    texts = [op for op in ops if isinstance(op, Text)]
    splines = [op for op in ops if isinstance(op, BSpline)]
    fonts = [op for op in ops if isinstance(op, Font)]
    assert texts[0] == Text((40.0, 28.0), "center", 40.0, "list")
    assert texts[1].text == "xs"
    assert splines[0].points[0] == (150.0, 10.0)
    assert fonts[0] == Font(24.0, "Sans")
    assert Color("#000000", filled=True) in ops


def test_parse_layout_node_rects_and_hit() -> None:
    result = layout.parse_layout(SAMPLE_JSON, sample_entries())

    rect = result.rects[0]
    assert rect.x == pytest.approx(10.0, abs=0.01)
    assert rect.y == pytest.approx(4.0)
    assert rect.width == pytest.approx(100.0, abs=0.01)
    assert rect.height == pytest.approx(36.0)
    assert -1 not in result.rects
    assert result.hit((60.0, 22.0)) == 0
    assert result.hit((180.0, 50.0)) is None


def test_parse_layout_without_entries_is_not_clickable() -> None:
    result = layout.parse_layout(SAMPLE_JSON)

    assert result.hit((60.0, 22.0)) is None


def test_parse_layout_rejects_bad_output() -> None:
    without_bb = {k: v for k, v in SAMPLE_LAYOUT.items() if k != "bb"}

    with pytest.raises(layout.XDotError):
        layout.parse_layout(json.dumps(without_bb))
    with pytest.raises(layout.XDotError):
        layout.parse_layout("digraph g { a; }")


def test_xdot_layout_runs_engine(engine: DummyEngine) -> None:
    xs: list[object] = []
    snapshot = capture_snapshot([TrackedObject(Box(xs), "xs")])

    result = layout.xdot_layout(snapshot, engine)

    assert len(engine.graphs) == 1
    assert result.boxes[0].get() is xs
    assert result.hit((60.0, 22.0)) == 0


def test_xdot_layout_skips_engine_for_empty_graph(engine: DummyEngine) -> None:
    result = layout.xdot_layout(Snapshot(), engine)

    assert engine.graphs == []
    assert result.operations == ()


def test_graphviz_engine_reports_missing_program(monkeypatch: pytest.MonkeyPatch) -> None:
    xs = [1]
    dot = layout.to_dot(capture_snapshot([TrackedObject(Box(xs), "xs")]).graph)
    monkeypatch.setenv("PATH", "")
    engine = layout.GraphvizEngine()

    assert not engine.available()
    with pytest.raises(layout.LayoutUnavailable):
        engine.render(dot)


@pytest.mark.skipif(shutil.which("dot") is None, reason="Graphviz is not installed")
def test_graphviz_engine_lays_out_a_snapshot() -> None:
    xs = [1, [2]]
    snapshot = capture_snapshot([TrackedObject(Box(xs), "xs")])

    result = layout.xdot_layout(snapshot, layout.GraphvizEngine())

    assert result.size.width > 0
    assert set(result.rects) == {0, 1, 2, 3}
    assert result.hit((result.rects[0].x + 1, result.rects[0].y + 1)) == 0
