import pytest

from conftest import InMemoryRecordStore, make_order, order_row
from database.managers.order_manager import OrderManager
from utils.order_board import (
    ACTION_NOT_ALLOWED, ORDER_NOT_FOUND, ChangeState, OrderBoard, apply_staff_action,
)
from utils.staff_actions import StaffAction
from utils.statuses import S_PENDING, S_ACCEPTED, S_READY, S_DELIVERED, S_REJECTED


def test_board_keeps_orders_newest_first():
    old = make_order("a", minutes=0)
    new = make_order("b", minutes=5)
    board = OrderBoard([old, new])
    assert [o.id for o in board.orders] == ["b", "a"]


def test_tentative_change_then_confirm():
    board = OrderBoard([make_order("a")])
    change = board.apply_tentative("a", S_ACCEPTED)

    assert board.get("a").status == S_ACCEPTED
    assert board.pending == [change]

    board.confirm(change)
    assert change.state is ChangeState.CONFIRMED
    assert board.pending == []
    assert board.get("a").status == S_ACCEPTED


def test_roll_back_restores_previous_status():
    board = OrderBoard([make_order("a", status=S_ACCEPTED)])
    change = board.apply_tentative("a", S_READY)
    board.roll_back(change)

    assert change.state is ChangeState.ROLLED_BACK
    assert board.get("a").status == S_ACCEPTED
    assert board.pending == []


def test_stale_roll_back_does_not_undo_newer_change():
    board = OrderBoard([make_order("a")])
    first = board.apply_tentative("a", S_ACCEPTED)
    second = board.apply_tentative("a", S_READY)

    board.roll_back(first)
    assert board.get("a").status == S_READY
    assert board.pending == [second]


def test_replace_drops_pending_changes():
    board = OrderBoard([make_order("a")])
    board.apply_tentative("a", S_ACCEPTED)
    board.replace([make_order("a"), make_order("b", minutes=1)])

    assert board.pending == []
    assert board.get("a").status == S_PENDING
    assert len(board.orders) == 2


def test_tentative_change_on_missing_order():
    with pytest.raises(KeyError):
        OrderBoard().apply_tentative("nope", S_ACCEPTED)


def _setup(*orders):
    store = InMemoryRecordStore([order_row(o) for o in orders])
    return store, OrderManager(store), OrderBoard(orders)


async def test_accept_pending_order():
    store, manager, board = _setup(make_order("a"))
    seen = []

    async def on_tentative(b):
        seen.append(b.get("a").status)

    outcome = await apply_staff_action(board, manager, "a", StaffAction.ACCEPT, on_tentative=on_tentative)

    assert outcome.ok
    assert outcome.order.status == S_ACCEPTED
    assert seen == [S_ACCEPTED]
    assert store.rows["a"]["status"] == S_ACCEPTED
    assert board.pending == []


async def test_full_happy_path():
    store, manager, board = _setup(make_order("a"))
    for action, status in (
            (StaffAction.ACCEPT, S_ACCEPTED),
            (StaffAction.CALL_RIDER, S_READY),
            (StaffAction.MARK_DELIVERED, S_DELIVERED),
    ):
        outcome = await apply_staff_action(board, manager, "a", action)
        assert outcome.ok
        assert store.rows["a"]["status"] == status


async def test_reject_from_ready():
    store, manager, board = _setup(make_order("a", status=S_READY))
    outcome = await apply_staff_action(board, manager, "a", StaffAction.REJECT)
    assert outcome.ok
    assert store.rows["a"]["status"] == S_REJECTED


async def test_disallowed_action_never_reaches_the_store():
    store, manager, board = _setup(make_order("a", status=S_DELIVERED))
    outcome = await apply_staff_action(board, manager, "a", StaffAction.REJECT)

    assert not outcome.ok
    assert outcome.error == ACTION_NOT_ALLOWED
    assert not [c for c in store.calls if c[0] == "update"]
    assert board.get("a").status == S_DELIVERED


async def test_unknown_order():
    _, manager, board = _setup(make_order("a"))
    outcome = await apply_staff_action(board, manager, "zzz", StaffAction.ACCEPT)
    assert not outcome.ok
    assert outcome.error == ORDER_NOT_FOUND


async def test_failed_write_reverts_after_reload():
    store, manager, board = _setup(make_order("a"), make_order("b", minutes=1))
    store.fail_update = True
    shown = []

    async def on_tentative(b):
        shown.append(b.get("a").status)

    outcome = await apply_staff_action(board, manager, "a", StaffAction.ACCEPT, on_tentative=on_tentative)

    assert not outcome.ok
    assert outcome.error == "permission denied"
    # The tentative status was shown, then the board went back to what the store holds
    assert shown == [S_ACCEPTED]
    assert board.get("a").status == S_PENDING
    assert board.pending == []
    assert [c[0] for c in store.calls] == ["update", "list"]


async def test_failed_write_picks_up_other_changes_from_reload():
    store, manager, board = _setup(make_order("a"))
    # Someone else changed the order meanwhile
    store.rows["a"]["status"] = S_REJECTED
    store.fail_update = True

    outcome = await apply_staff_action(board, manager, "a", StaffAction.ACCEPT)

    assert not outcome.ok
    assert outcome.order.status == S_REJECTED


async def test_failed_redraw_undoes_tentative_change_and_skips_write():
    store, manager, board = _setup(make_order("a"))

    async def broken_redraw(_board):
        raise RuntimeError("telegram unreachable")

    with pytest.raises(RuntimeError):
        await apply_staff_action(board, manager, "a", StaffAction.ACCEPT, on_tentative=broken_redraw)

    assert board.get("a").status == S_PENDING
    assert board.pending == []
    assert store.rows["a"]["status"] == S_PENDING
    assert not [c for c in store.calls if c[0] == "update"]
