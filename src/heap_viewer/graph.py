"""Turn heap snapshots into labeled reference graphs."""

from __future__ import annotations

import collections.abc as cabc
import logging

import networkx as nx

from .heap import BYTECODE_FIELD, DEFAULT_BOUND, build_heap_snapshot
from .model import EdgeLabel, Entry, NodeLabel, Snapshot, TrackedObject

logger = logging.getLogger(__name__)

NAME_LABEL = NodeLabel(fields=("",), port_count=0)


def node_label(entry: Entry) -> NodeLabel:
    """Return the record label for ``entry``."""
    if entry.bytecode is not None:
        slots = sum(len(group) for group in entry.bytecode)
        return NodeLabel(fields=(BYTECODE_FIELD,), port_count=slots)
    return NodeLabel(fields=entry.fields, port_count=len(entry.pointers))


def entry_slots(entry: Entry) -> tuple[int | None, ...]:
    """Return the outgoing slots of ``entry`` in port order."""
    if entry.bytecode is not None:
        return tuple(slot for group in entry.bytecode for slot in group)
    return entry.pointers


def build_graph(
    entries: cabc.Mapping[int, Entry],
    tracked: cabc.Sequence[TrackedObject],
) -> nx.MultiDiGraph:
    """Build the reference multigraph of a snapshot, including name nodes.

    Entry nodes keep their (non-negative) snapshot ids. Each tracked object
    adds a name node with a negative id; ids are handed out in reverse
    registration order so the most recent registration gets ``-1``.
    """
    graph = nx.MultiDiGraph()
    for ident, entry in entries.items():
        graph.add_node(ident, label=node_label(entry))

    for ident, entry in entries.items():
        for slot, target in enumerate(entry_slots(entry)):
            if target is None:
                continue
            graph.add_edge(ident, target, label=EdgeLabel("", slot))

    by_box = {entry.box: ident for ident, entry in entries.items()}
    for name_id, item in zip(range(-1, -len(tracked) - 1, -1), reversed(tracked)):
        target = by_box.get(item.box)
        if target is None:
            logger.debug("No entry for tracked object %r", item.label)
            continue
        graph.add_node(name_id, label=NAME_LABEL)
        graph.add_edge(name_id, target, label=EdgeLabel(item.label, 0))
    return graph


def name_nodes(graph: nx.MultiDiGraph) -> list[int]:
    return sorted((n for n in graph.nodes if n < 0), reverse=True)


def reachable_subgraph(
    graph: nx.MultiDiGraph,
    roots: cabc.Iterable[int] | None = None,
    keep_roots: bool = True,
) -> nx.MultiDiGraph:
    """Restrict ``graph`` to what the roots (name nodes by default) can reach.

    The kept set is the union of every root's transitive successors. With
    ``keep_roots`` the roots themselves are kept too, so a name bound to an
    object without pointers still shows its label edge.
    """
    root_ids = name_nodes(graph) if roots is None else list(roots)
    reachable: set[int] = set()
    for root in root_ids:
        if root not in graph:
            continue
        reachable |= nx.descendants(graph, root)
        if keep_roots:
            reachable.add(root)

    pruned = nx.MultiDiGraph(graph)
    garbage = [n for n in graph.nodes if n not in reachable]
    pruned.remove_nodes_from(garbage)
    if garbage:
        logger.debug("Pruned %d unreachable nodes", len(garbage))
    return pruned


def capture_snapshot(
    tracked: cabc.Sequence[TrackedObject],
    bound: int = DEFAULT_BOUND,
    keep_roots: bool = True,
) -> Snapshot:
    """Take a heap snapshot of ``tracked`` and build its pruned graph."""
    entries = build_heap_snapshot(tracked, bound)
    graph = reachable_subgraph(build_graph(entries, tracked), keep_roots=keep_roots)
    return Snapshot(entries=entries, tracked=tuple(tracked), graph=graph)
