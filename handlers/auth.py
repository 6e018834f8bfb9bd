from contextlib import suppress
from typing import Optional

import asyncpg
from aiogram import Router, F, html
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import StatesGroup, State
from aiogram.types import Message, CallbackQuery

from api.supabase_backend import SupabaseAuthClient
from database.managers.user_info_manager import UserInfoManager
from handlers.client import render_main_menu
from keyboards.client import auth_cancel_kb, auth_failed_kb
from utils.decorators import handle_telegram_error
from utils.live_views import LiveViewRegistry
from utils.logger import get_logger
from utils.session import Session, SessionRegistry

log = get_logger("[Bot.Auth]")

auth_router = Router()


class Login(StatesGroup):
    email = State()
    password = State()


class SignUp(StatesGroup):
    email = State()
    password = State()


def looks_like_email(text: str) -> bool:
    name, _, domain = text.partition("@")
    return bool(name) and "." in domain


async def _ask(call: CallbackQuery, state: FSMContext, text: str):
    try:
        await call.message.edit_text(text, reply_markup=auth_cancel_kb())
        await call.answer()
    except TelegramBadRequest as e:
        log.error(f"[Bot.Auth] Could not edit message: {e}")
        await handle_telegram_error(e, call=call, state=state)


async def _take_password(message: Message) -> str:
    """Reads the password and removes it from the chat history."""
    password = (message.text or "").strip()
    with suppress(TelegramBadRequest):
        await message.delete()
    return password


@auth_router.callback_query(F.data == "auth:login")
async def login_start(call: CallbackQuery, state: FSMContext):
    await state.clear()
    await state.set_state(Login.email)
    await _ask(call, state, "🔑 Accedi\n\nInserisci la tua email:")


@auth_router.message(Login.email)
async def login_email(message: Message, state: FSMContext):
    email = (message.text or "").strip()
    if not looks_like_email(email):
        await message.answer("Email non valida, riprova (es. nome@esempio.com):", reply_markup=auth_cancel_kb())
        return

    await state.update_data(email=email)
    await state.set_state(Login.password)
    await message.answer("Inserisci la password:", reply_markup=auth_cancel_kb())


@auth_router.message(Login.password)
async def login_password(
        message: Message,
        state: FSMContext,
        auth_client: SupabaseAuthClient,
        sessions: SessionRegistry,
        user_info_manager: UserInfoManager,
):
    password = await _take_password(message)
    email = (await state.get_data()).get("email")
    if not email or not password:
        await message.answer("Per favore inserisci email e password!", reply_markup=auth_cancel_kb())
        return

    session, error = await auth_client.sign_in(email, password)
    await state.clear()
    if error:
        log.info(f"[Bot.Auth] Sign-in failed for {email}: {error}")
        await message.answer(
            f"❌ Accesso non riuscito: {html.quote(error)}",
            parse_mode="HTML",
            reply_markup=auth_failed_kb("auth:login"),
        )
        return

    sessions.sign_in(message.from_user.id, session)
    try:
        await user_info_manager.link_user(message.from_user.id, session.user_id, session.email)
    except (asyncpg.PostgresError, OSError) as e:
        # Only status notifications depend on the link, the session is valid anyway
        log.error(f"[Bot.Auth] Could not link Telegram user {message.from_user.id}: {e}")

    text, kb = render_main_menu(message.from_user.id, session)
    await message.answer("✅ Accesso effettuato!\n\n" + text, parse_mode="HTML", reply_markup=kb)


@auth_router.callback_query(F.data == "auth:signup")
async def signup_start(call: CallbackQuery, state: FSMContext):
    await state.clear()
    await state.set_state(SignUp.email)
    await _ask(call, state, "📝 Registrati\n\nInserisci la tua email:")


@auth_router.message(SignUp.email)
async def signup_email(message: Message, state: FSMContext):
    email = (message.text or "").strip()
    if not looks_like_email(email):
        await message.answer("Email non valida, riprova (es. nome@esempio.com):", reply_markup=auth_cancel_kb())
        return

    await state.update_data(email=email)
    await state.set_state(SignUp.password)
    await message.answer("Scegli una password:", reply_markup=auth_cancel_kb())


@auth_router.message(SignUp.password)
async def signup_password(message: Message, state: FSMContext, auth_client: SupabaseAuthClient):
    password = await _take_password(message)
    email = (await state.get_data()).get("email")
    if not email or not password:
        await message.answer("Per favore inserisci email e password!", reply_markup=auth_cancel_kb())
        return

    ok, error = await auth_client.sign_up(email, password)
    await state.clear()
    if not ok:
        log.info(f"[Bot.Auth] Sign-up failed for {email}: {error}")
        await message.answer(
            f"❌ Registrazione non riuscita: {html.quote(error or '')}",
            parse_mode="HTML",
            reply_markup=auth_failed_kb("auth:signup"),
        )
        return

    log.info(f"[Bot.Auth] New account {email} from Telegram user {message.from_user.id}")
    text, kb = render_main_menu(message.from_user.id, None)
    await message.answer("✅ Registrazione effettuata! Ora puoi fare il login.\n\n" + text,
                         parse_mode="HTML", reply_markup=kb)


@auth_router.callback_query(F.data == "auth:cancel")
async def auth_cancel(call: CallbackQuery, state: FSMContext, session: Optional[Session]):
    await state.clear()
    text, kb = render_main_menu(call.from_user.id, session)
    try:
        await call.message.edit_text(text, parse_mode="HTML", reply_markup=kb)
        await call.answer()
    except TelegramBadRequest as e:
        await handle_telegram_error(e, call=call, signed_in=session is not None)


@auth_router.callback_query(F.data == "auth:logout")
async def logout(
        call: CallbackQuery,
        state: FSMContext,
        session: Optional[Session],
        auth_client: SupabaseAuthClient,
        sessions: SessionRegistry,
        live_views: LiveViewRegistry,
):
    if session:
        error = await auth_client.sign_out(session)
        if error:
            # The token dies on its own, the local session goes anyway
            log.warning(f"[Bot.Auth] Remote sign-out failed for {session.email}: {error}")

    sessions.sign_out(call.from_user.id)
    live_views.close(call.message.chat.id)
    await state.clear()

    text, kb = render_main_menu(call.from_user.id, None)
    try:
        await call.message.edit_text("👋 Sei uscito.\n\n" + text, parse_mode="HTML", reply_markup=kb)
        await call.answer()
    except TelegramBadRequest as e:
        await handle_telegram_error(e, call=call)
