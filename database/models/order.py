# database/models/order.py

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional, Any


@dataclass(frozen=True)
class Order:
    id: str
    created_at: datetime
    status: str
    user_id: str

    prescription_url: Optional[str] = None
    notes: Optional[str] = None
    delivery_address: Optional[str] = None

    @property
    def short_id(self) -> str:
        return self.id[:6]

    @property
    def has_prescription(self) -> bool:
        return bool(self.prescription_url)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Optional["Order"]:
        """
        Builds an order from a row of the `orders` collection.
        uuid columns come back from asyncpg as UUID objects, they are kept as strings.
        """
        if not record:
            return None

        return cls(
            id=str(record["id"]),
            created_at=record["created_at"],
            status=record["status"],
            user_id=str(record["user_id"]),
            prescription_url=record.get("prescription_url"),
            notes=record.get("notes"),
            delivery_address=record.get("delivery_address"),
        )
