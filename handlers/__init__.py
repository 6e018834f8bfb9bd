# handlers/__init__.py
from aiogram import Dispatcher

from .auth import auth_router
from .client import client_router
from .staff import staff_router


def register_handlers(dp: Dispatcher):
    """
    Registers every router on the main dispatcher.
    Order matters.
    """
    # FSM steps of sign-in and sign-up come first so they win over plain text handlers
    dp.include_router(auth_router)

    dp.include_router(staff_router)
    dp.include_router(client_router)
