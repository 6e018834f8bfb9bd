from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional, Any


@dataclass
class Product:
    id: str
    name: str
    price: Decimal
    description: Optional[str] = None
    image_url: Optional[str] = None
    requires_prescription: bool = False

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Product":
        return cls(
            id=str(record["id"]),
            name=record["name"],
            price=Decimal(str(record.get("price") or 0)),
            description=record.get("description"),
            image_url=record.get("image_url"),
            requires_prescription=bool(record.get("requires_prescription")),
        )
