from database.async_db import AsyncDatabase
from database.models.user_info import UserInfo


class UserInfoManager:
    """Links Telegram accounts to the auth users that signed in from them."""

    def __init__(self, db: AsyncDatabase):
        self.db = db

    async def link_user(self, tg_user_id: int, auth_user_id: str, email: str) -> UserInfo:
        sql = """
              INSERT INTO user_info (tg_user_id, auth_user_id, email)
              VALUES ($1, $2, $3)
              ON CONFLICT (tg_user_id) DO UPDATE
                  SET auth_user_id = EXCLUDED.auth_user_id,
                      email        = EXCLUDED.email
              RETURNING id, tg_user_id, auth_user_id, email;
              """
        rec = await self.db.fetchrow(sql, tg_user_id, auth_user_id, email)
        return UserInfo.from_record(rec)

    async def list_tg_ids_by_auth_user(self, auth_user_id: str) -> list[int]:
        sql = "SELECT tg_user_id FROM user_info WHERE auth_user_id = $1 ORDER BY id"
        rows = await self.db.fetch(sql, auth_user_id)
        return [int(r["tg_user_id"]) for r in rows]
