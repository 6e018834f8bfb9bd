from functools import wraps
import logging

from aiogram import types
from aiogram.fsm.context import FSMContext
from aiogram.exceptions import TelegramBadRequest

from utils.secrets import is_staff
from keyboards.client import get_main_inline_keyboard

log = logging.getLogger("[Bot.Decorator]")

# Telegram refuses longer callback answers
MAX_ALERT_LENGTH = 200


def fit_alert(text: str) -> str:
    if len(text) <= MAX_ALERT_LENGTH:
        return text
    return text[:MAX_ALERT_LENGTH - 1] + "…"


async def handle_telegram_error(
        e: TelegramBadRequest,
        message: types.Message = None,
        call: types.CallbackQuery = None,
        state: FSMContext = None,
        signed_in: bool = False,
) -> bool:
    """
    Deals with the usual edit/delete failures of Telegram.
    Returns True if the error was handled.
    """
    error_text = str(e).lower()

    if "message is not modified" in error_text:
        log.debug("[Bot.Decorator] Message is not modified")
        return True

    if (
            "message to delete not found" in error_text
            or "message can't be deleted" in error_text
            or "message to edit not found" in error_text
    ):
        if state:
            await state.clear()
            log.debug("[Bot.Decorator] FSM state cleared after a Telegram error")

        user = call.from_user if call else message.from_user if message else None
        staff = bool(user) and is_staff(user.id)

        target = call.message if call else message if message else None
        if target:
            await target.answer(
                text="Non è stato possibile aggiornare il messaggio precedente. Scegli un'azione:",
                reply_markup=get_main_inline_keyboard(staff, signed_in)
            )
            log.info(f"[Bot.Decorator] Telegram error handled for user {user.id if user else 'unknown'}")
        return True

    log.warning(f"[Bot.Decorator] [UNHANDLED TelegramBadRequest] {e}")
    return False


def _get_ctx(args, kwargs):
    message = next((a for a in args if isinstance(a, types.Message)), None)
    call = next((a for a in args if isinstance(a, types.CallbackQuery)), None)
    state = next((a for a in args if isinstance(a, FSMContext)), None) \
            or next((v for v in kwargs.values() if isinstance(v, FSMContext)), None)
    return message, call, state


async def _clear_and_show(target, state, text, staff=False, signed_in=False):
    if isinstance(target, types.CallbackQuery):
        await target.answer(text, show_alert=True)
        send = target.message.answer
    else:
        send = target.answer
        await send(text)

    await send(
        "Scegli un'azione:",
        reply_markup=get_main_inline_keyboard(staff, signed_in)
    )

    if state:
        await state.clear()
        log.debug("[Bot.Decorator] FSM state cleared after showing the menu.")


def staff_only(handler):
    @wraps(handler)
    async def wrapper(*args, **kwargs):
        message, call, state = _get_ctx(args, kwargs)
        user_id = (message.from_user.id if message else call.from_user.id if call else None)

        if user_id is None or not is_staff(user_id):
            log.warning(f"[Bot.Decorator] User {user_id} tried {handler.__name__} without staff rights")
            await _clear_and_show(
                call or message, state, "Questa funzione è riservata alla farmacia.",
                signed_in=kwargs.get("session") is not None,
            )
            return
        return await handler(*args, **kwargs)

    return wrapper


def login_required(handler):
    """
    The wrapped handler must declare a `session` parameter,
    filled in by SessionMiddleware.
    """

    @wraps(handler)
    async def wrapper(*args, **kwargs):
        if kwargs.get("session") is None:
            message, call, state = _get_ctx(args, kwargs)
            user_id = (message.from_user.id if message else call.from_user.id if call else None)
            log.info(f"[Bot.Decorator] User {user_id} is signed out, {handler.__name__} refused")
            await _clear_and_show(call or message, state, "Devi essere loggato!")
            return
        return await handler(*args, **kwargs)

    return wrapper
