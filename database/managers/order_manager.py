from typing import Optional

from database.models.order import Order
from database.record_store import RecordStore
from utils.statuses import S_PENDING
from utils.logger import get_logger

log = get_logger("[OrderManager]")

ORDERS = "orders"
NEWEST_FIRST = ("created_at", False)

DEFAULT_NOTES = "Ricetta caricata via App"
DEFAULT_DELIVERY_ADDRESS = "Indirizzo da profilo"


class OrderManager:
    def __init__(self, store: RecordStore):
        self.store = store

    async def list_all(self) -> tuple[list[Order], Optional[str]]:
        """Staff view: every order, newest first."""
        rows, error = await self.store.list(ORDERS, order_by=NEWEST_FIRST)
        if error:
            return [], error
        return [Order.from_record(r) for r in rows], None

    async def list_for_owner(self, owner_id: str) -> tuple[list[Order], Optional[str]]:
        """Customer view: only the orders created by `owner_id`, newest first."""
        rows, error = await self.store.list(ORDERS, filters={"user_id": owner_id}, order_by=NEWEST_FIRST)
        if error:
            return [], error
        orders = [Order.from_record(r) for r in rows]
        # A customer must never see someone else's order, whatever the store returned
        return [o for o in orders if o.user_id == str(owner_id)], None

    async def get_order(self, order_id: str) -> Optional[Order]:
        row, error = await self.store.get(ORDERS, order_id)
        if error:
            return None
        return Order.from_record(row)

    async def create_order(
            self,
            owner_id: str,
            prescription_url: Optional[str],
            notes: str = DEFAULT_NOTES,
            delivery_address: str = DEFAULT_DELIVERY_ADDRESS,
    ) -> tuple[Optional[Order], Optional[str]]:
        """
        Inserts a new order in status 'pending'.
        Returns (order, error_message).
        """
        row, error = await self.store.insert(ORDERS, {
            "user_id": owner_id,
            "status": S_PENDING,
            "prescription_url": prescription_url,
            "notes": notes,
            "delivery_address": delivery_address,
        })
        if error:
            return None, error

        order = Order.from_record(row)
        log.info(f"Order #{order.short_id} created for user {owner_id}")
        return order, None

    async def set_status(self, order_id: str, status: str) -> tuple[bool, Optional[str]]:
        """
        Writes the new status. Last write wins: the store does not check the
        previous value, transition rules are enforced by the caller.
        """
        ok, error = await self.store.update(ORDERS, order_id, {"status": status})
        if ok:
            log.info(f"Order {order_id} -> {status}")
        return ok, error
