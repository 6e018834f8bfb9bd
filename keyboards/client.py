from aiogram.types import (
    InlineKeyboardButton, InlineKeyboardMarkup, KeyboardButton, ReplyKeyboardMarkup
)
from aiogram.utils.keyboard import InlineKeyboardBuilder


def get_main_inline_keyboard(is_staff: bool, signed_in: bool = False) -> InlineKeyboardMarkup:
    if is_staff:
        buttons = [
            [InlineKeyboardButton(text="📦 Dashboard ordini", callback_data="staff:dashboard")],
            [InlineKeyboardButton(text="👥 Gestione staff", callback_data="staff:manage")],
        ]
    elif signed_in:
        buttons = [
            [InlineKeyboardButton(text="📷 Carica ricetta", callback_data="upload")],
            [InlineKeyboardButton(text="📦 I tuoi ordini", callback_data="my-orders")],
            [InlineKeyboardButton(text="🔍 Cerca farmaci", callback_data="catalog")],
            [InlineKeyboardButton(text="📍 Usa mia posizione", callback_data="location")],
            [InlineKeyboardButton(text="🚪 Esci", callback_data="auth:logout")],
        ]
    else:
        buttons = [
            [InlineKeyboardButton(text="🔑 Accedi", callback_data="auth:login")],
            [InlineKeyboardButton(text="📝 Registrati", callback_data="auth:signup")],
            [InlineKeyboardButton(text="🔍 Cerca farmaci", callback_data="catalog")],
        ]
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def back_main_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="⬅️ Indietro", callback_data="back-main")]
    ])


def auth_cancel_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="❌ Annulla", callback_data="auth:cancel")]
    ])


def auth_failed_kb(retry_callback: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔁 Riprova", callback_data=retry_callback)],
        [InlineKeyboardButton(text="⬅️ Indietro", callback_data="back-main")],
    ])


def customer_orders_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔄 Aggiorna", callback_data="orders:refresh")],
        [InlineKeyboardButton(text="⬅️ Indietro", callback_data="back-main")],
    ])


def upload_prompt_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="❌ Annulla", callback_data="upload:cancel")]
    ])


def upload_confirm_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.button(text="📤 Invia alla Farmacia", callback_data="upload:send")
    builder.button(text="🔁 Cambia foto", callback_data="upload")
    builder.button(text="❌ Annulla", callback_data="upload:cancel")
    builder.adjust(1)
    return builder.as_markup()


def location_request_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text="📍 Invia posizione", request_location=True)],
            [KeyboardButton(text="Annulla")],
        ],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
