from math import ceil

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from database.models.order import Order
from utils.constants import project_status, to_local
from utils.staff_actions import ACTION_ORDER, StaffAction, available_actions

ACTION_BUTTONS = {
    StaffAction.REJECT: "❌ Rifiuta",
    StaffAction.ACCEPT: "🕒 Accetta",
    StaffAction.CALL_RIDER: "🛵 Chiama Rider",
    StaffAction.MARK_DELIVERED: "✅ Consegnato",
}

DISABLED_PREFIX = "▫️"


def staff_dashboard_kb(
        orders: list[Order],
        page: int = 1,
        page_size: int = 20,
) -> InlineKeyboardMarkup:
    total = len(orders)
    total_pages = max(1, ceil(total / page_size))
    page = max(1, min(page, total_pages))  # clamp

    start = (page - 1) * page_size
    end = start + page_size
    page_orders = orders[start:end]

    rows: list[list[InlineKeyboardButton]] = [
        [
            InlineKeyboardButton(
                text=f"{project_status(o.status).emoji} #{o.short_id} ({to_local(o.created_at):%d.%m %H:%M})",
                callback_data=f"staff-order:{o.id}",
            )
        ]
        for o in page_orders
    ]

    if total_pages > 1:
        prev_page = page - 1 if page > 1 else 1
        next_page = page + 1 if page < total_pages else total_pages
        rows.append([
            InlineKeyboardButton(text="«", callback_data="staff:page:1" if page > 1 else "noop"),
            InlineKeyboardButton(text="‹", callback_data=f"staff:page:{prev_page}" if page > 1 else "noop"),
            InlineKeyboardButton(text=f"{page}/{total_pages}", callback_data="noop"),
            InlineKeyboardButton(text="›",
                                 callback_data=f"staff:page:{next_page}" if page < total_pages else "noop"),
            InlineKeyboardButton(text="»",
                                 callback_data=f"staff:page:{total_pages}" if page < total_pages else "noop"),
        ])

    rows.append([InlineKeyboardButton(text="🔄 Aggiorna lista", callback_data="staff:refresh")])
    rows.append([InlineKeyboardButton(text="⬅️ Indietro", callback_data="back-main")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def staff_order_kb(order: Order) -> InlineKeyboardMarkup:
    """
    Order card. All four actions are always drawn; the ones the current
    status does not allow are greyed out and do nothing.
    """
    builder = InlineKeyboardBuilder()

    if order.has_prescription:
        builder.button(text="📄 Vedi ricetta", callback_data=f"staff-rx:{order.id}")

    allowed = available_actions(order.status)
    for action in ACTION_ORDER:
        text = ACTION_BUTTONS[action]
        if action in allowed:
            builder.button(text=text, callback_data=f"staff-act:{action.value}:{order.id}")
        else:
            builder.button(text=f"{DISABLED_PREFIX} {text}", callback_data="noop")

    builder.button(text="🔄 Aggiorna", callback_data="staff:refresh")
    builder.button(text="⬅️ Torna alla lista", callback_data="staff:dashboard")

    sizes = ([1] if order.has_prescription else []) + [2, 2, 1, 1]
    builder.adjust(*sizes)
    return builder.as_markup()


def staff_manage_kb(staff: list[dict]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()

    for member in staff:
        builder.button(
            text=f"❌ Rimuovi {member['full_name']} ({member['id']})",
            callback_data=f"staff:manage:delete:{member['id']}"
        )

    builder.button(text="➕ Aggiungi membro dello staff", callback_data="staff:manage:add")
    builder.button(text="⬅️ Indietro", callback_data="back-main")

    builder.adjust(1)
    return builder.as_markup()


def staff_confirm_delete_kb(user_id: int) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.button(text="✅ Sì, rimuovi", callback_data=f"staff:manage:delete-yes:{user_id}")
    builder.button(text="⬅️ No, indietro", callback_data="staff:manage")
    builder.adjust(1)
    return builder.as_markup()


def staff_manage_back_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.button(text="⬅️ Indietro", callback_data="staff:manage")
    return builder.as_markup()


def prescription_link_kb(url: str, ttl_seconds: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=f"🔗 Apri ricetta ({ttl_seconds} s)", url=url)]
    ])
