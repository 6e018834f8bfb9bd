from aiogram import BaseMiddleware
from aiogram.types import User

from utils.session import SessionRegistry


class SessionMiddleware(BaseMiddleware):
    """
    Resolves the session of the user behind the update and passes it on as
    `session` (None when signed out).
    """

    def __init__(self, sessions: SessionRegistry):
        super().__init__()
        self.sessions = sessions

    async def __call__(self, handler, event, data):
        user: User | None = data.get("event_from_user")
        data["session"] = self.sessions.current(user.id) if user else None
        return await handler(event, data)
