# utils/order_board.py
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

from database.managers.order_manager import OrderManager
from database.models.order import Order
from utils.logger import get_logger
from utils.staff_actions import StaffAction, available_actions, target_status

log = get_logger("[OrderBoard]")

ORDER_NOT_FOUND = "Ordine non trovato"
ACTION_NOT_ALLOWED = "Azione non consentita per questo stato"


def newest_first(orders: Iterable[Order]) -> list[Order]:
    return sorted(orders, key=lambda o: o.created_at, reverse=True)


class ChangeState(str, Enum):
    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class PendingStatusChange:
    order_id: str
    previous_status: str
    new_status: str
    state: ChangeState = ChangeState.TENTATIVE


class OrderBoard:
    """
    The orders currently shown by one screen.

    Status changes go through two phases: `apply_tentative` patches the local
    copy right away, then the change is either `confirm`ed or `roll_back`ed
    once the store has answered.
    """

    def __init__(self, orders: Iterable[Order] = ()):
        self._orders: list[Order] = newest_first(orders)
        self._pending: dict[str, PendingStatusChange] = {}
        # Bumped on every local change, lets a fetch tell it raced one
        self.version = 0

    @property
    def orders(self) -> list[Order]:
        return list(self._orders)

    @property
    def pending(self) -> list[PendingStatusChange]:
        return list(self._pending.values())

    def get(self, order_id: str) -> Optional[Order]:
        return next((o for o in self._orders if o.id == order_id), None)

    def replace(self, orders: Iterable[Order]) -> None:
        """Authoritative reload: drops every local patch."""
        self._orders = newest_first(orders)
        self._pending.clear()
        self.version += 1

    def _set_status(self, order_id: str, status: str) -> None:
        self._orders = [replace(o, status=status) if o.id == order_id else o for o in self._orders]
        self.version += 1

    def apply_tentative(self, order_id: str, new_status: str) -> PendingStatusChange:
        order = self.get(order_id)
        if order is None:
            raise KeyError(order_id)

        change = PendingStatusChange(order_id, order.status, new_status)
        self._set_status(order_id, new_status)
        self._pending[order_id] = change
        return change

    def confirm(self, change: PendingStatusChange) -> None:
        change.state = ChangeState.CONFIRMED
        self._pending.pop(change.order_id, None)
        self.version += 1

    def roll_back(self, change: PendingStatusChange) -> None:
        # Only undo if nothing newer was applied on top of this change
        if self._pending.get(change.order_id) is change:
            self._set_status(change.order_id, change.previous_status)
            self._pending.pop(change.order_id)
        change.state = ChangeState.ROLLED_BACK


@dataclass
class ActionOutcome:
    ok: bool
    order: Optional[Order] = None
    error: Optional[str] = None


async def apply_staff_action(
        board: OrderBoard,
        order_manager: OrderManager,
        order_id: str,
        action: StaffAction,
        on_tentative: Optional[Callable[[OrderBoard], Awaitable[None]]] = None,
) -> ActionOutcome:
    """
    Runs a staff action against one order of `board`.

    The new status is shown immediately (`on_tentative` re-renders the
    screen), then written to the store. If the write fails the tentative
    value is discarded and the whole board is reloaded from the store.
    A failing `on_tentative` undoes the tentative change and propagates,
    the store is not touched.
    """
    order = board.get(order_id)
    if order is None:
        return ActionOutcome(False, error=ORDER_NOT_FOUND)

    if action not in available_actions(order.status):
        log.warning(f"Action {action.value} not allowed for order {order_id} in status {order.status}")
        return ActionOutcome(False, order=order, error=ACTION_NOT_ALLOWED)

    change = board.apply_tentative(order_id, target_status(action))
    if on_tentative:
        try:
            await on_tentative(board)
        except Exception:
            # Nothing was written yet, the board must not keep the tentative status
            board.roll_back(change)
            raise

    ok, error = await order_manager.set_status(order_id, change.new_status)
    if not ok:
        log.error(f"Status update for order {order_id} failed, reloading: {error}")
        board.roll_back(change)
        orders, reload_error = await order_manager.list_all()
        if reload_error:
            log.error(f"Reload after failed update failed too: {reload_error}")
        else:
            board.replace(orders)
        return ActionOutcome(False, order=board.get(order_id), error=error or "Aggiornamento non riuscito")

    board.confirm(change)
    return ActionOutcome(True, order=board.get(order_id))
