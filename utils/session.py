# utils/session.py
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from utils.logger import get_logger

log = get_logger("[Session]")


@dataclass(frozen=True)
class Session:
    user_id: str
    email: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Session":
        """Builds a session from a GoTrue token response."""
        user = payload.get("user") or {}
        expires_at = payload.get("expires_at")
        return cls(
            user_id=str(user["id"]),
            email=user.get("email") or "",
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc) if expires_at else None,
        )


class SessionState(str, Enum):
    SIGNED_OUT = "signed_out"
    SIGNED_IN = "signed_in"


class SessionRegistry:
    """
    Application context shared by every handler: who is signed in from which
    Telegram account. Injected per update by SessionMiddleware.
    """

    def __init__(self):
        self._sessions: dict[int, Session] = {}
        # Last position shared by the user, used as delivery address of the next order
        self._locations: dict[int, str] = {}

    def state(self, tg_user_id: int) -> SessionState:
        return SessionState.SIGNED_IN if tg_user_id in self._sessions else SessionState.SIGNED_OUT

    def current(self, tg_user_id: int) -> Optional[Session]:
        return self._sessions.get(tg_user_id)

    def sign_in(self, tg_user_id: int, session: Session) -> None:
        self._sessions[tg_user_id] = session
        log.info(f"User {tg_user_id} signed in as {session.email}")

    def sign_out(self, tg_user_id: int) -> Optional[Session]:
        session = self._sessions.pop(tg_user_id, None)
        self._locations.pop(tg_user_id, None)
        if session:
            log.info(f"User {tg_user_id} signed out ({session.email})")
        return session

    def remember_location(self, tg_user_id: int, location: str) -> None:
        self._locations[tg_user_id] = location

    def location(self, tg_user_id: int) -> Optional[str]:
        return self._locations.get(tg_user_id)

    def __len__(self) -> int:
        return len(self._sessions)
