from functools import partial
from typing import Optional

from aiogram import Router, F, Bot, html
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import StatesGroup, State
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, ReplyKeyboardRemove

from api.supabase_backend import SupabaseStorageClient
from database.managers.order_manager import OrderManager
from database.managers.product_manager import ProductManager
from database.models.product import Product
from keyboards.client import (
    get_main_inline_keyboard,
    back_main_kb,
    customer_orders_kb,
    upload_prompt_kb,
    upload_confirm_kb,
    location_request_kb,
)
from utils.constants import project_status, to_local
from utils.decorators import fit_alert, handle_telegram_error, login_required
from utils.live_views import LiveViewRegistry, open_order_view
from utils.logger import get_logger
from utils.notifications import notify_staff, format_new_order_for_staff
from utils.order_board import OrderBoard
from utils.prescriptions import DEFAULT_PHOTO_NAME, is_allowed_file, submit_prescription
from utils.secrets import is_staff
from utils.session import Session, SessionRegistry

log = get_logger("[Bot.Client]")

client_router = Router()

# Keeps the customer's list well below Telegram's 4096 characters
MAX_LISTED_ORDERS = 25


class Upload(StatesGroup):
    waiting_file = State()  # Step 1: photo or PDF
    confirm = State()  # Step 2: send, change or cancel


def render_main_menu(tg_user_id: int, session: Optional[Session]) -> tuple[str, InlineKeyboardMarkup]:
    staff = is_staff(tg_user_id)
    if staff:
        text = "💊 <b>Pannello Farmacia</b>\nScegli un'azione:"
    elif session:
        text = f"💊 Ciao {html.quote(session.email)}!\nScegli un'azione:"
    else:
        text = (
            "💊 Benvenuto nella Farmacia a domicilio!\n"
            "Accedi o registrati per inviare una ricetta e seguire i tuoi ordini."
        )
    return text, get_main_inline_keyboard(staff, session is not None)


def render_customer_orders(board: OrderBoard) -> tuple[str, InlineKeyboardMarkup]:
    orders = board.orders
    lines = ["📦 <b>I tuoi ordini</b>", ""]

    if not orders:
        lines.append("Non hai ancora fatto ordini.")
    for order in orders[:MAX_LISTED_ORDERS]:
        lines.append(f"{project_status(order.status)} · {to_local(order.created_at):%d/%m/%Y}")
        if order.notes:
            lines.append(f"<i>{html.quote(order.notes)}</i>")
        lines.append("")
    if len(orders) > MAX_LISTED_ORDERS:
        lines.append(f"… e altri {len(orders) - MAX_LISTED_ORDERS} ordini")

    return "\n".join(lines).strip(), customer_orders_kb()


def format_catalog(products: list[Product]) -> str:
    if not products:
        return "🔍 <b>Catalogo</b>\n\nNessun prodotto disponibile al momento."

    lines = ["🔍 <b>Catalogo</b>", ""]
    for p in products:
        lines.append(f"<b>{html.quote(p.name)}</b> · € {p.price:.2f}")
        if p.description:
            lines.append(html.quote(p.description))
        if p.requires_prescription:
            lines.append("📄 Serve la ricetta")
        lines.append("")
    return "\n".join(lines).strip()


@client_router.message(CommandStart())
async def client_start(message: Message, state: FSMContext, session: Optional[Session],
                       live_views: LiveViewRegistry):
    log.info(f"[Bot.Client] /start from user {message.from_user.id}")
    await state.clear()
    live_views.close(message.chat.id)

    text, kb = render_main_menu(message.from_user.id, session)
    await message.answer(text, parse_mode="HTML", reply_markup=kb)


@client_router.callback_query(F.data == "back-main")
async def back_main(call: CallbackQuery, state: FSMContext, session: Optional[Session],
                    live_views: LiveViewRegistry):
    await state.clear()
    live_views.close(call.message.chat.id)

    text, kb = render_main_menu(call.from_user.id, session)
    try:
        await call.message.edit_text(text, parse_mode="HTML", reply_markup=kb)
        await call.answer()
    except TelegramBadRequest as e:
        log.error(f"[Bot.Client] Could not edit message: {e}")
        await handle_telegram_error(e, call=call, state=state, signed_in=session is not None)


@client_router.callback_query(F.data == "noop")
async def noop(call: CallbackQuery):
    await call.answer()


# --- ORDERS ---

@client_router.callback_query(F.data == "my-orders")
@login_required
async def my_orders(call: CallbackQuery, bot: Bot, session: Optional[Session],
                    order_manager: OrderManager, live_views: LiveViewRegistry):
    view, error = await open_order_view(
        live_views, bot, call.message.chat.id, call.message.message_id,
        loader=partial(order_manager.list_for_owner, session.user_id),
        renderer=render_customer_orders,
    )
    if error:
        log.error(f"[Bot.Client] Orders of {session.user_id} could not be loaded: {error}")
        await call.answer("Impossibile caricare gli ordini, riprova più tardi.", show_alert=True)
        return
    await call.answer()


@client_router.callback_query(F.data == "orders:refresh")
@login_required
async def my_orders_refresh(call: CallbackQuery, bot: Bot, session: Optional[Session],
                            order_manager: OrderManager, live_views: LiveViewRegistry):
    if live_views.get(call.message.chat.id) is None:
        # The view was torn down (restart, logout on another screen): open it again
        return await my_orders(call, bot=bot, session=session, order_manager=order_manager,
                               live_views=live_views)

    await live_views.refresh(call.message.chat.id)
    await call.answer("Lista aggiornata")


# --- CATALOG ---

@client_router.callback_query(F.data == "catalog")
async def catalog(call: CallbackQuery, state: FSMContext, session: Optional[Session],
                  product_manager: ProductManager):
    products = await product_manager.list_products()
    try:
        await call.message.edit_text(format_catalog(products), parse_mode="HTML", reply_markup=back_main_kb())
        await call.answer()
    except TelegramBadRequest as e:
        log.error(f"[Bot.Client] Could not edit message: {e}")
        await handle_telegram_error(e, call=call, state=state, signed_in=session is not None)


# --- PRESCRIPTION UPLOAD ---

@client_router.callback_query(F.data == "upload")
@login_required
async def upload_start(call: CallbackQuery, state: FSMContext, session: Optional[Session],
                       live_views: LiveViewRegistry):
    live_views.close(call.message.chat.id)
    await state.set_state(Upload.waiting_file)
    try:
        await call.message.edit_text(
            "📷 Scatta una foto alla ricetta o carica il PDF del medico.",
            reply_markup=upload_prompt_kb(),
        )
        await call.answer()
    except TelegramBadRequest as e:
        log.error(f"[Bot.Client] Could not edit message: {e}")
        await handle_telegram_error(e, call=call, state=state, signed_in=True)


@client_router.message(Upload.waiting_file, F.photo)
async def upload_got_photo(message: Message, state: FSMContext):
    photo = message.photo[-1]  # largest size
    await state.update_data(file_id=photo.file_id, file_name=DEFAULT_PHOTO_NAME, mime="image/jpeg")
    await state.set_state(Upload.confirm)
    await message.answer(f"📄 {DEFAULT_PHOTO_NAME}", reply_markup=upload_confirm_kb())


@client_router.message(Upload.waiting_file, F.document)
async def upload_got_document(message: Message, state: FSMContext):
    doc = message.document
    if not is_allowed_file(doc.file_name, doc.mime_type):
        await message.answer("Formato non supportato: invia una foto o un PDF.", reply_markup=upload_prompt_kb())
        return

    file_name = doc.file_name or DEFAULT_PHOTO_NAME
    await state.update_data(file_id=doc.file_id, file_name=file_name, mime=doc.mime_type)
    await state.set_state(Upload.confirm)
    await message.answer(f"📄 {html.quote(file_name)}", parse_mode="HTML", reply_markup=upload_confirm_kb())


@client_router.message(Upload.waiting_file)
async def upload_wrong_content(message: Message):
    await message.answer("Invia una foto o un PDF della ricetta.", reply_markup=upload_prompt_kb())


@client_router.callback_query(Upload.confirm, F.data == "upload:send")
@login_required
async def upload_send(call: CallbackQuery, state: FSMContext, bot: Bot, session: Optional[Session],
                      sessions: SessionRegistry, storage_client: SupabaseStorageClient,
                      order_manager: OrderManager):
    data = await state.get_data()
    if not data.get("file_id"):
        await call.answer("Seleziona prima una foto!", show_alert=True)
        return

    buffer = await bot.download(data["file_id"])
    order, error = await submit_prescription(
        storage_client, order_manager,
        owner_id=session.user_id,
        file_name=data["file_name"],
        data=buffer.getvalue(),
        mime=data.get("mime"),
        delivery_address=sessions.location(call.from_user.id),
    )
    if error:
        # The file stays selected, the customer can try again
        await call.answer(fit_alert(error), show_alert=True)
        return

    await state.clear()
    await call.answer("Ricetta inviata!")
    text, kb = render_main_menu(call.from_user.id, session)
    try:
        await call.message.edit_text(
            "✅ Ricetta inviata con successo! La farmacia la valuterà.\n\n" + text,
            parse_mode="HTML", reply_markup=kb,
        )
    except TelegramBadRequest as e:
        await handle_telegram_error(e, call=call, signed_in=True)

    await notify_staff(bot, format_new_order_for_staff(order, session.email))


@client_router.callback_query(F.data == "upload:cancel")
async def upload_cancel(call: CallbackQuery, state: FSMContext, session: Optional[Session]):
    await state.clear()
    text, kb = render_main_menu(call.from_user.id, session)
    try:
        await call.message.edit_text(text, parse_mode="HTML", reply_markup=kb)
        await call.answer("Invio annullato")
    except TelegramBadRequest as e:
        await handle_telegram_error(e, call=call, signed_in=session is not None)


# --- LOCATION ---

@client_router.callback_query(F.data == "location")
@login_required
async def location_request(call: CallbackQuery, session: Optional[Session]):
    await call.message.answer(
        "📍 Condividi la tua posizione: la useremo come indirizzo di consegna del prossimo ordine.",
        reply_markup=location_request_kb(),
    )
    await call.answer()


@client_router.message(F.location)
async def location_received(message: Message, session: Optional[Session], sessions: SessionRegistry):
    if session is None:
        await message.answer("Devi essere loggato!", reply_markup=ReplyKeyboardRemove())
        return

    loc = message.location
    sessions.remember_location(message.from_user.id, f"{loc.latitude:.5f}, {loc.longitude:.5f}")
    log.info(f"[Bot.Client] Location stored for user {message.from_user.id}")

    await message.answer("📍 Posizione acquisita!", reply_markup=ReplyKeyboardRemove())
    text, kb = render_main_menu(message.from_user.id, session)
    await message.answer(text, parse_mode="HTML", reply_markup=kb)


@client_router.message(F.text == "Annulla")
async def location_cancel(message: Message, session: Optional[Session]):
    await message.answer("Ok, nessuna posizione condivisa.", reply_markup=ReplyKeyboardRemove())
    text, kb = render_main_menu(message.from_user.id, session)
    await message.answer(text, parse_mode="HTML", reply_markup=kb)
