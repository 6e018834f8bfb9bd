from dataclasses import dataclass
from typing import Mapping, Optional, Any


@dataclass
class UserInfo:
    id: int
    tg_user_id: int
    auth_user_id: Optional[str]
    email: Optional[str]

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "UserInfo":
        auth_user_id = record.get("auth_user_id")
        return cls(
            id=record["id"],
            tg_user_id=record["tg_user_id"],
            auth_user_id=str(auth_user_id) if auth_user_id is not None else None,
            email=record.get("email"),
        )
