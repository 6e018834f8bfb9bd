# utils/notifications.py
import logging
from typing import Optional

import asyncpg
from aiogram import Bot, html
from aiogram.exceptions import TelegramAPIError
from aiogram.types import InlineKeyboardMarkup

from database.managers.user_info_manager import UserInfoManager
from database.models.order import Order
from utils.constants import project_status, to_local
from utils.secrets import get_staff_ids

log = logging.getLogger("[Notifications]")


async def notify_staff(bot: Bot, text: str, reply_markup: Optional[InlineKeyboardMarkup] = None):
    staff_ids = get_staff_ids()
    if not staff_ids:
        log.warning("STAFF_IDS is empty, nobody to notify.")
        return

    for staff_id in staff_ids:
        try:
            await bot.send_message(
                chat_id=staff_id,
                text=text,
                parse_mode="HTML",
                reply_markup=reply_markup
            )
        except TelegramAPIError as e:
            # Blocked bot, wrong id and so on: the others still get the message
            log.error(f"Could not notify staff member {staff_id}: {e}")


async def notify_customer(bot: Bot, user_info_manager: UserInfoManager, order: Order) -> int:
    """
    Tells the owner of `order` about its new status on every Telegram
    account they signed in from. Returns how many messages went out.
    """
    try:
        tg_ids = await user_info_manager.list_tg_ids_by_auth_user(order.user_id)
    except (asyncpg.PostgresError, OSError) as e:
        # The status change is already stored, only the message is lost
        log.error(f"Could not look up Telegram accounts of order #{order.short_id}: {e}")
        return 0
    if not tg_ids:
        log.info(f"Owner of order #{order.short_id} has no linked Telegram account")
        return 0

    text = f"Il tuo ordine #{order.short_id} è ora: {html.bold(html.quote(str(project_status(order.status))))}"
    sent = 0
    for tg_id in tg_ids:
        try:
            await bot.send_message(chat_id=tg_id, text=text, parse_mode="HTML")
            sent += 1
        except TelegramAPIError as e:
            log.warning(f"Could not notify customer {tg_id}: {e}")
    return sent


def format_new_order_for_staff(order: Order, email: Optional[str]) -> str:
    lines = [
        f"🆕 {html.bold('Nuovo ordine')} #{order.short_id}",
        f"👤 {html.quote(email or order.user_id)}",
        f"📅 {to_local(order.created_at):%d/%m/%Y %H:%M}",
        f"📍 {html.quote(order.delivery_address or '-')}",
    ]
    if order.notes:
        lines.append(f"📝 {html.quote(order.notes)}")
    lines.append("📄 Ricetta allegata" if order.has_prescription else "⚠️ Nessuna ricetta")
    return "\n".join(lines)
