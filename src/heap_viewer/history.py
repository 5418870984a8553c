"""Newest-first history of snapshots with a movable cursor."""

from __future__ import annotations

import collections.abc as cabc
import logging

from .model import Snapshot

logger = logging.getLogger(__name__)


def clamp(v: int, lo: int, hi: int) -> int:
    """Clamp ``v`` to the inclusive ``[lo, hi]`` range."""
    return lo if v < lo else hi if v > hi else v


class History:
    """Snapshots ordered newest first; ``cursor`` selects the displayed one.

    The history is never empty. Index 0 is the latest snapshot and a cursor
    of 0 follows it as new snapshots arrive. A cursor looking further back
    keeps pointing at the same snapshot when a newer one is pushed.
    """

    def __init__(self) -> None:
        self._snapshots: list[Snapshot] = [Snapshot()]
        self.cursor = 0

    def __len__(self) -> int:
        return len(self._snapshots)

    def __getitem__(self, index: int) -> Snapshot:
        return self._snapshots[index]

    @property
    def latest(self) -> Snapshot:
        return self._snapshots[0]

    @property
    def current(self) -> Snapshot:
        """The snapshot under the cursor."""
        return self._snapshots[self.cursor]

    def push(self, snapshot: Snapshot, reset_cursor: bool = False) -> None:
        self._snapshots.insert(0, snapshot)
        if reset_cursor:
            self.cursor = 0
        elif self.cursor > 0:
            self.cursor += 1

    def move_cursor(self, f: cabc.Callable[[int], int]) -> int:
        """Set ``cursor = clamp(f(cursor), 0, len - 1)`` and return it."""
        self.cursor = clamp(f(self.cursor), 0, len(self._snapshots) - 1)
        logger.debug("History cursor at %d of %d", self.cursor, len(self._snapshots))
        return self.cursor

    def clear(self) -> None:
        self._snapshots = [Snapshot()]
        self.cursor = 0
