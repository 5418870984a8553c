# pyright: reportUnknownMemberType=false, reportUnannotatedClassAttribute=false

import json

import graphviz
import pytest

BLACK = {"op": "c", "grad": "none", "color": "#000000"}

# What `dot -Tjson` prints for a single name node bound to an empty record.
SAMPLE_LAYOUT = {
    "name": "heap",
    "directed": True,
    "strict": False,
    "_draw_": [
        {"op": "c", "grad": "none", "color": "#00000000"},
        {"op": "C", "grad": "none", "color": "#00000000"},
        {"op": "P", "points": [[0.0, 0.0], [0.0, 100.0], [200.0, 100.0], [200.0, 0.0]]},
    ],
    "bb": "0,0,200,100",
    "xdotversion": "1.7",
    "_subgraph_cnt": 0,
    "objects": [
        {
            "_gvid": 0,
            "name": "n0",
            "_draw_": [
                BLACK,
                {"op": "p", "points": [[10.0, 60.0], [10.0, 96.0], [110.0, 96.0], [110.0, 60.0]]},
            ],
            "_ldraw_": [
                {"op": "F", "size": 24.0, "face": "Sans"},
                BLACK,
                {"op": "T", "pt": [40.0, 72.0], "align": "c", "width": 40.0, "text": "list"},
            ],
            "height": "0.5",
            "label": "list",
            "pos": "60,78",
            "shape": "record",
            "width": "1.3889",
        },
        {
            "_gvid": 1,
            "name": "r1",
            "height": "0.05",
            "pos": "150,90",
            "shape": "point",
            "style": "invis",
            "width": "0.05",
        },
    ],
    "edges": [
        {
            "_gvid": 0,
            "tail": 1,
            "head": 0,
            "_draw_": [
                BLACK,
                {"op": "b", "points": [[150.0, 90.0], [140.0, 90.0], [120.0, 85.0], [110.0, 80.0]]},
            ],
            "_hdraw_": [
                {"op": "S", "style": "solid"},
                BLACK,
                {"op": "C", "grad": "none", "color": "#000000"},
                {"op": "P", "points": [[112.0, 83.0], [105.0, 78.0], [109.0, 76.0]]},
            ],
            "_ldraw_": [
                {"op": "F", "size": 24.0, "face": "Sans"},
                BLACK,
                {"op": "T", "pt": [130.0, 95.0], "align": "c", "width": 20.0, "text": "xs"},
            ],
            "label": "xs",
        },
    ],
}
SAMPLE_JSON = json.dumps(SAMPLE_LAYOUT)


class DummyEngine:
    def __init__(self, text: str = SAMPLE_JSON, available: bool = True) -> None:
        self.text = text
        self.is_available = available
        self.graphs: list[graphviz.Digraph] = []

    def available(self) -> bool:
        return self.is_available

    def render(self, graph: graphviz.Digraph) -> str:
        self.graphs.append(graph)
        return self.text


@pytest.fixture
def engine() -> DummyEngine:
    return DummyEngine()


@pytest.fixture
def missing_engine() -> DummyEngine:
    return DummyEngine(available=False)
