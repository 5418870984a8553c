"""Core data types shared by the snapshot pipeline and the views."""

from __future__ import annotations

import enum
import itertools
import time
import weakref
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, TypeAlias

import networkx as nx

Point: TypeAlias = tuple[float, float]


class Box:
    """Identity handle on a live object.

    Objects whose type supports weak references are held weakly. CPython gives
    no weak handle for builtins such as ``list``, ``dict`` or ``int``; those are
    held directly for as long as the box is alive.
    """

    __slots__ = ("_ref", "_strong", "ident", "type_name")

    def __init__(self, obj: object) -> None:
        self.ident = id(obj)
        self.type_name = type(obj).__name__
        self._strong: object | None = None
        try:
            self._ref: weakref.ref[Any] | None = weakref.ref(obj)
        except TypeError:
            self._ref = None
            self._strong = obj

    @property
    def is_weak(self) -> bool:
        return self._ref is not None

    @property
    def alive(self) -> bool:
        return self._ref is None or self._ref() is not None

    def get(self) -> object | None:
        """Return the referenced object, or ``None`` once it has been collected."""
        if self._ref is not None:
            return self._ref()
        return self._strong

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Box):
            return NotImplemented
        if self.ident != other.ident:
            return False
        return self.get() is other.get()

    def __hash__(self) -> int:
        return hash(self.ident)

    def __repr__(self) -> str:
        state = "" if self.alive else " dead"
        return f"<Box {self.type_name} at 0x{self.ident:x}{state}>"


@dataclass(frozen=True)
class TrackedObject:
    """A user-bound ``(box, label)`` pair held by the registry."""

    box: Box
    label: str


@dataclass(frozen=True)
class Entry:
    """One decoded object of a raw heap snapshot."""

    ident: int
    box: Box
    fields: tuple[str, ...]
    pointers: tuple[int | None, ...]
    names: tuple[str, ...] = ()
    bytecode: tuple[tuple[int | None, ...], ...] | None = None


@dataclass(frozen=True)
class NodeLabel:
    fields: tuple[str, ...]
    port_count: int


@dataclass(frozen=True)
class EdgeLabel:
    name: str
    slot: int


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in canvas coordinates (y grows downward)."""

    x: float
    y: float
    width: float
    height: float

    def contains(self, point: Point) -> bool:
        px, py = point
        return (
            self.x <= px <= self.x + self.width
            and self.y <= py <= self.y + self.height
        )


def empty_graph() -> nx.MultiDiGraph:
    return nx.freeze(nx.MultiDiGraph())


_sequence = itertools.count()


@dataclass(frozen=True, eq=False)
class Snapshot:
    """Immutable capture of the tracked heap at one instant."""

    entries: Mapping[int, Entry] = field(default_factory=dict)
    tracked: tuple[TrackedObject, ...] = ()
    graph: nx.MultiDiGraph = field(default_factory=empty_graph)
    taken_at: float = field(default_factory=time.time)
    sequence: int = field(default_factory=lambda: next(_sequence))

    def __post_init__(self) -> None:
        if not isinstance(self.entries, MappingProxyType):
            object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))
        if not nx.is_frozen(self.graph):
            object.__setattr__(self, "graph", nx.freeze(self.graph))

    @property
    def boxes(self) -> list[Box]:
        """Boxes of every entry, including the ones pruned from ``graph``."""
        return [entry.box for entry in self.entries.values()]

    def same_structure(self, other: Snapshot) -> bool:
        """Return ``True`` when both graphs have identical node and edge sets."""
        mine = self.graph
        theirs = other.graph
        if dict(mine.nodes(data="label")) != dict(theirs.nodes(data="label")):
            return False
        return sorted(
            (u, v, lbl.name, lbl.slot) for u, v, lbl in mine.edges(data="label")
        ) == sorted(
            (u, v, lbl.name, lbl.slot) for u, v, lbl in theirs.edges(data="label")
        )


class ViewKind(enum.Enum):
    LIST = "list"
    GRAPH = "graph"

    def toggled(self) -> ViewKind:
        return ViewKind.GRAPH if self is ViewKind.LIST else ViewKind.LIST


@dataclass
class ViewState:
    """Pan/zoom/pointer state of the canvas.

    ``active_view`` is written only by the reactor thread; the remaining
    fields belong to the input thread.
    """

    active_view: ViewKind = ViewKind.LIST
    zoom_ratio: float = 1.0
    pan: Point = (0.0, 0.0)
    dragging: bool = False
    mouse_pos: Point = (0.0, 0.0)


# -------- Signals --------


@dataclass(frozen=True)
class NewObject:
    box: Box
    label: str


@dataclass(frozen=True)
class Clear:
    pass


@dataclass(frozen=True)
class Update:
    pass


@dataclass(frozen=True)
class SwitchView:
    pass


@dataclass(frozen=True)
class MoveHistory:
    delta: int


@dataclass(frozen=True)
class Export:
    writer: str
    path: str


Signal: TypeAlias = NewObject | Clear | Update | SwitchView | MoveHistory | Export
