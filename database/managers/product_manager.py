from database.models.product import Product
from database.record_store import RecordStore
from utils.logger import get_logger

log = get_logger("[ProductManager]")


class ProductManager:
    def __init__(self, store: RecordStore):
        self.store = store

    async def list_products(self) -> list[Product]:
        """Read-only catalog. A failed read degrades to an empty catalog."""
        rows, error = await self.store.list("products", order_by=("name", True))
        if error:
            log.warning(f"Catalog fetch failed, showing an empty list: {error}")
            return []
        return [Product.from_record(r) for r in rows]
