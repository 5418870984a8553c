"""Watch live Python object graphs in a pannable, zoomable matplotlib canvas.

Typical use from a REPL::

    >>> import heap_viewer as hv
    >>> hv.vis()
    >>> xs = [1, 2, 3]
    >>> hv.view(xs, "xs")
    >>> hv.switch()
"""

from __future__ import annotations

from .api import (
    Visualizer,
    clear,
    evaluate,
    export,
    get_visualizer,
    move_history,
    switch,
    update,
    vis,
    view,
)

__all__ = [
    "Visualizer",
    "clear",
    "evaluate",
    "export",
    "get_visualizer",
    "move_history",
    "switch",
    "update",
    "vis",
    "view",
]
