import heap_viewer.history as history
from heap_viewer.model import Snapshot


def filled(count: int) -> tuple[history.History, list[Snapshot]]:
    hist = history.History()
    snapshots = [Snapshot() for _ in range(count)]
    for snapshot in snapshots:
        hist.push(snapshot)
    return hist, snapshots


def test_clamp_bounds() -> None:
    assert history.clamp(-5, 0, 3) == 0
    assert history.clamp(2, 0, 3) == 2
    assert history.clamp(99, 0, 3) == 3


def test_new_history_holds_one_empty_snapshot() -> None:
    hist = history.History()

    assert len(hist) == 1
    assert hist.cursor == 0
    assert hist.current.tracked == ()
    assert hist.current.graph.number_of_nodes() == 0


def test_push_keeps_newest_first() -> None:
    hist, snapshots = filled(3)

    assert len(hist) == 4
    assert hist.latest is snapshots[-1]
    assert hist[1] is snapshots[1]
    assert hist.current is snapshots[-1]


def test_move_cursor_clamps_extreme_deltas() -> None:
    hist, _ = filled(3)

    assert hist.move_cursor(lambda c: c + 10**9) == 3
    assert hist.move_cursor(lambda c: c - 10**9) == 0
    assert hist.move_cursor(lambda c: c + 1) == 1
    assert 0 <= hist.cursor < len(hist)


def test_push_while_looking_back_keeps_the_displayed_snapshot() -> None:
    hist, _ = filled(3)
    hist.move_cursor(lambda c: c + 2)
    shown = hist.current

    hist.push(Snapshot())

    assert hist.cursor == 3
    assert hist.current is shown


def test_push_can_reset_the_cursor() -> None:
    hist, _ = filled(2)
    hist.move_cursor(lambda c: c + 1)
    newest = Snapshot()

    hist.push(newest, reset_cursor=True)

    assert hist.cursor == 0
    assert hist.current is newest


def test_clear_restores_the_initial_state() -> None:
    hist, _ = filled(5)
    hist.move_cursor(lambda c: c + 3)

    hist.clear()

    assert len(hist) == 1
    assert hist.cursor == 0
    assert hist.current.tracked == ()
