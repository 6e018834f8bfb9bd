from functools import partial
from math import ceil

from aiogram import Router, F, Bot, html
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import StatesGroup, State
from aiogram.types import CallbackQuery, Message, InlineKeyboardMarkup

from api.supabase_backend import SupabaseStorageClient
from database.managers.order_manager import OrderManager
from database.managers.user_info_manager import UserInfoManager
from keyboards.staff import (
    staff_dashboard_kb,
    staff_order_kb,
    staff_manage_kb,
    staff_confirm_delete_kb,
    staff_manage_back_kb,
    prescription_link_kb,
)
from utils.config import SIGNED_URL_TTL_SECONDS
from utils.constants import project_status, to_local
from utils.decorators import fit_alert, staff_only, handle_telegram_error
from utils.live_views import LiveViewRegistry, LiveOrderView, open_order_view
from utils.logger import get_logger
from utils.notifications import notify_customer
from utils.order_board import OrderBoard, apply_staff_action, ORDER_NOT_FOUND, ACTION_NOT_ALLOWED
from utils.prescriptions import prescription_link
from utils.secrets import get_staff_ids, add_staff_id, remove_staff_id
from utils.staff_actions import StaffAction
from utils.statuses import ACTIVE_STATUSES

log = get_logger("[Bot.Staff]")

staff_router = Router()

PAGE_SIZE = 20


class StaffManagement(StatesGroup):
    waiting_for_user_id = State()


def render_dashboard(board: OrderBoard, page: int = 1) -> tuple[str, InlineKeyboardMarkup]:
    orders = board.orders
    active = sum(1 for o in orders if o.status in ACTIVE_STATUSES)
    total_pages = max(1, ceil(len(orders) / PAGE_SIZE))

    lines = [
        "📋 <b>Dashboard Farmacia</b>",
        "",
        f"Ordini attivi: <b>{active}</b>",
        f"Ordini totali: <b>{len(orders)}</b>",
    ]
    if not orders:
        lines += ["", "Nessun ordine in arrivo."]
    elif total_pages > 1:
        lines += ["", f"Pagina {min(max(page, 1), total_pages)}/{total_pages}"]

    return "\n".join(lines), staff_dashboard_kb(orders, page=page, page_size=PAGE_SIZE)


def render_order_card(board: OrderBoard, order_id: str) -> tuple[str, InlineKeyboardMarkup]:
    order = board.get(order_id)
    if order is None:
        # Gone after a reload, only the way back is offered
        text, kb = render_dashboard(board)
        return text + "\n\n⚠️ Ordine non più disponibile.", kb

    pending = any(c.order_id == order_id for c in board.pending)
    lines = [
        f"<b>Ordine #{order.short_id}</b>",
        f"Stato: {project_status(order.status)}" + (" ⏳" if pending else ""),
        f"📅 {to_local(order.created_at):%d/%m/%Y %H:%M}",
    ]
    if order.notes:
        lines.append(f"📝 {html.quote(order.notes)}")
    if order.delivery_address:
        lines.append(f"📍 {html.quote(order.delivery_address)}")
    lines.append("📄 Ricetta allegata" if order.has_prescription else "Nessuna ricetta")

    return "\n".join(lines), staff_order_kb(order)


async def _open_dashboard(call: CallbackQuery, bot: Bot, order_manager: OrderManager,
                          live_views: LiveViewRegistry, page: int = 1, board: OrderBoard = None):
    view, error = await open_order_view(
        live_views, bot, call.message.chat.id, call.message.message_id,
        loader=order_manager.list_all,
        renderer=partial(render_dashboard, page=page),
        board=board,
    )
    if error:
        log.error(f"[Bot.Staff] Orders could not be loaded: {error}")
        await call.answer("Impossibile caricare gli ordini, riprova più tardi.", show_alert=True)
        return None
    return view


async def _open_card(call: CallbackQuery, bot: Bot, order_manager: OrderManager,
                     live_views: LiveViewRegistry, order_id: str) -> LiveOrderView | None:
    current = live_views.get(call.message.chat.id)
    view, error = await open_order_view(
        live_views, bot, call.message.chat.id, call.message.message_id,
        loader=order_manager.list_all,
        renderer=partial(render_order_card, order_id=order_id),
        board=current.board if current else None,
    )
    if error:
        log.error(f"[Bot.Staff] Order {order_id} could not be loaded: {error}")
        await call.answer("Impossibile caricare l'ordine, riprova più tardi.", show_alert=True)
        return None
    return view


# --- DASHBOARD ---

@staff_router.callback_query(F.data == "staff:dashboard")
@staff_only
async def staff_dashboard(call: CallbackQuery, bot: Bot, order_manager: OrderManager,
                          live_views: LiveViewRegistry):
    current = live_views.get(call.message.chat.id)
    view = await _open_dashboard(call, bot, order_manager, live_views,
                                 board=current.board if current else None)
    if view:
        await call.answer()


@staff_router.callback_query(F.data.startswith("staff:page:"))
@staff_only
async def staff_dashboard_page(call: CallbackQuery, bot: Bot, order_manager: OrderManager,
                               live_views: LiveViewRegistry):
    try:
        page = int(call.data.rsplit(":", 1)[1])
    except ValueError:
        await call.answer()
        return

    view = live_views.get(call.message.chat.id)
    if view is None:
        view = await _open_dashboard(call, bot, order_manager, live_views, page=page)
        if view is None:
            return
    else:
        view.renderer = partial(render_dashboard, page=page)
        await view.render()
    await call.answer()


@staff_router.callback_query(F.data == "staff:refresh")
@staff_only
async def staff_refresh(call: CallbackQuery, bot: Bot, order_manager: OrderManager,
                        live_views: LiveViewRegistry):
    if live_views.get(call.message.chat.id) is None:
        if await _open_dashboard(call, bot, order_manager, live_views) is None:
            return
    else:
        await live_views.refresh(call.message.chat.id)
    await call.answer("Lista aggiornata")


@staff_router.callback_query(F.data.startswith("staff-order:"))
@staff_only
async def staff_order_detail(call: CallbackQuery, bot: Bot, order_manager: OrderManager,
                             live_views: LiveViewRegistry):
    order_id = call.data.split(":", 1)[1]
    if await _open_card(call, bot, order_manager, live_views, order_id):
        await call.answer()


# --- ORDER ACTIONS ---

@staff_router.callback_query(F.data.startswith("staff-act:"))
@staff_only
async def staff_order_action(call: CallbackQuery, bot: Bot, order_manager: OrderManager,
                             user_info_manager: UserInfoManager, live_views: LiveViewRegistry):
    try:
        _, action_value, order_id = call.data.split(":", 2)
        action = StaffAction(action_value)
    except ValueError:
        log.warning(f"[Bot.Staff] Malformed action callback: {call.data}")
        await call.answer()
        return

    view = live_views.get(call.message.chat.id)
    if view is None or view.board.get(order_id) is None:
        view = await _open_card(call, bot, order_manager, live_views, order_id)
        if view is None:
            return
    else:
        view.renderer = partial(render_order_card, order_id=order_id)

    async def redraw(_board: OrderBoard):
        await view.render()

    outcome = await apply_staff_action(view.board, order_manager, order_id, action, on_tentative=redraw)
    await view.render()

    if not outcome.ok:
        if outcome.error in (ACTION_NOT_ALLOWED, ORDER_NOT_FOUND):
            await call.answer(fit_alert(outcome.error), show_alert=True)
        else:
            await call.answer(fit_alert(f"Errore Database: {outcome.error}"), show_alert=True)
        return

    log.info(f"[Bot.Staff] User {call.from_user.id} moved order {order_id} to {outcome.order.status}")
    await call.answer(f"Stato aggiornato: {project_status(outcome.order.status)}")
    await notify_customer(bot, user_info_manager, outcome.order)


@staff_router.callback_query(F.data.startswith("staff-rx:"))
@staff_only
async def staff_open_prescription(call: CallbackQuery, order_manager: OrderManager,
                                  storage_client: SupabaseStorageClient):
    order_id = call.data.split(":", 1)[1]
    order = await order_manager.get_order(order_id)
    if order is None or not order.has_prescription:
        await call.answer("Nessun file associato", show_alert=True)
        return

    url, error = await prescription_link(storage_client, order, SIGNED_URL_TTL_SECONDS)
    if error or not url:
        log.error(f"[Bot.Staff] Signed link for order {order_id} failed: {error}")
        await call.answer("Impossibile aprire il file", show_alert=True)
        return

    await call.message.answer(
        f"📄 Ricetta dell'ordine #{order.short_id}\nIl link scade tra {SIGNED_URL_TTL_SECONDS} secondi.",
        reply_markup=prescription_link_kb(url, SIGNED_URL_TTL_SECONDS),
    )
    await call.answer()


# --- STAFF MANAGEMENT ---

async def get_staff_list_text_and_data(bot: Bot) -> tuple[str, list[dict]]:
    staff_ids = get_staff_ids()
    staff_data = []
    text_lines = ["<b>Staff della farmacia:</b>"]

    if not staff_ids:
        text_lines.append("\n<i>Lista vuota.</i>")
    for staff_id in staff_ids:
        try:
            chat = await bot.get_chat(staff_id)
            full_name = chat.full_name
            username = f"(@{chat.username})" if chat.username else ""
            text_lines.append(f"• {html.quote(full_name)} {username} - <code>ID: {staff_id}</code>")
            staff_data.append({"id": staff_id, "full_name": full_name})
        except TelegramBadRequest:
            # Deleted account or the user never started the bot
            text_lines.append(f"• Utente <code>ID: {staff_id}</code> (non disponibile)")
            staff_data.append({"id": staff_id, "full_name": f"ID {staff_id}"})

    text_lines.append("\nPuoi aggiungere un membro tramite il suo Telegram User ID o rimuoverne uno.")
    return "\n".join(text_lines), staff_data


async def _show_manage_menu(target: Message, bot: Bot, edit: bool = True):
    text, staff_data = await get_staff_list_text_and_data(bot)
    send = target.edit_text if edit else target.answer
    await send(text, parse_mode="HTML", reply_markup=staff_manage_kb(staff_data))


@staff_router.callback_query(F.data == "staff:manage")
@staff_only
async def staff_manage_menu(call: CallbackQuery, state: FSMContext, bot: Bot, live_views: LiveViewRegistry):
    await state.clear()
    live_views.close(call.message.chat.id)
    try:
        await _show_manage_menu(call.message, bot)
        await call.answer()
    except TelegramBadRequest as e:
        await handle_telegram_error(e, call=call, state=state)


@staff_router.callback_query(F.data == "staff:manage:add")
@staff_only
async def staff_manage_add_start(call: CallbackQuery, state: FSMContext):
    await state.set_state(StaffManagement.waiting_for_user_id)
    await call.message.edit_text(
        "Invia il <b>Telegram User ID</b> del nuovo membro dello staff.\n\n"
        "<i>Per conoscerlo, chiedigli di scrivere a @userinfobot.</i>",
        parse_mode="HTML",
        reply_markup=staff_manage_back_kb(),
    )
    await call.answer()


@staff_router.message(StaffManagement.waiting_for_user_id)
@staff_only
async def staff_manage_add_id(msg: Message, state: FSMContext, bot: Bot):
    try:
        new_id = int((msg.text or "").strip())
    except ValueError:
        await msg.answer("L'ID deve essere un numero. Riprova.", reply_markup=staff_manage_back_kb())
        return

    if add_staff_id(new_id):
        log.info(f"[Bot.Staff] User {msg.from_user.id} added staff member {new_id}")
        await msg.answer(f"✅ Membro con ID {new_id} aggiunto.")
    else:
        await msg.answer(f"⚠️ L'ID {new_id} era già nello staff.")

    await state.clear()
    await _show_manage_menu(msg, bot, edit=False)


@staff_router.callback_query(F.data.startswith("staff:manage:delete:"))
@staff_only
async def staff_manage_delete_confirm(call: CallbackQuery):
    user_id = int(call.data.rsplit(":", 1)[1])
    if user_id == call.from_user.id:
        await call.answer("Non puoi rimuovere te stesso.", show_alert=True)
        return

    await call.message.edit_text(
        f"Rimuovere dallo staff l'utente con ID {user_id}?",
        reply_markup=staff_confirm_delete_kb(user_id),
    )
    await call.answer()


@staff_router.callback_query(F.data.startswith("staff:manage:delete-yes:"))
@staff_only
async def staff_manage_delete_yes(call: CallbackQuery, bot: Bot):
    user_id = int(call.data.rsplit(":", 1)[1])
    if user_id == call.from_user.id:
        await call.answer("Non puoi rimuovere te stesso.", show_alert=True)
        return

    if remove_staff_id(user_id):
        log.info(f"[Bot.Staff] User {call.from_user.id} removed staff member {user_id}")
        await call.answer("Membro rimosso")
    else:
        await call.answer("Utente non trovato nello staff", show_alert=True)

    try:
        await _show_manage_menu(call.message, bot)
    except TelegramBadRequest as e:
        await handle_telegram_error(e, call=call)
