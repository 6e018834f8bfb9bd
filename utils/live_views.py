# utils/live_views.py
from functools import partial
from typing import Awaitable, Callable, Optional

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import InlineKeyboardMarkup

from database.models.order import Order
from utils.logger import get_logger
from utils.order_board import OrderBoard
from utils.revalidation import Revalidator
from utils.scheduler_jobs import revalidate_view

log = get_logger("[LiveViews]")

Loader = Callable[[], Awaitable[tuple[list[Order], Optional[str]]]]
Renderer = Callable[[OrderBoard], tuple[str, InlineKeyboardMarkup]]


class LiveOrderView:
    """
    A Telegram message that shows orders and keeps itself up to date.

    `loader` fetches the orders (all of them for staff, the owner's for a
    customer), `renderer` turns the board into text and keyboard.
    """

    def __init__(
            self,
            bot: Bot,
            chat_id: int,
            message_id: int,
            loader: Loader,
            renderer: Renderer,
            board: Optional[OrderBoard] = None,
    ):
        self.bot = bot
        self.chat_id = chat_id
        self.message_id = message_id
        self.loader = loader
        self.renderer = renderer
        self.board = board or OrderBoard()
        self.closed = False
        self.on_close: Optional[Callable[["LiveOrderView"], None]] = None

    @property
    def key(self) -> str:
        return f"view:{self.chat_id}"

    async def refresh(self) -> bool:
        """
        Full re-fetch. A view closed while the fetch is in flight keeps its
        old board and its message is left alone. Rows fetched while a staff
        action was applied or still pending are dropped, the next tick
        reloads them.
        """
        if self.closed:
            return False

        version = self.board.version
        orders, error = await self.loader()
        if self.closed:
            log.debug(f"{self.key} closed during fetch, result dropped")
            return False
        if self.board.pending or self.board.version != version:
            log.debug(f"{self.key} board changed during fetch, result dropped")
            return False
        if error:
            log.warning(f"{self.key} fetch failed: {error}")
            return False

        self.board.replace(orders)
        return await self.render()

    async def render(self) -> bool:
        if self.closed:
            return False

        text, markup = self.renderer(self.board)
        try:
            await self.bot.edit_message_text(
                text=text,
                chat_id=self.chat_id,
                message_id=self.message_id,
                reply_markup=markup,
                parse_mode="HTML",
            )
        except TelegramBadRequest as e:
            error_text = str(e).lower()
            if "message is not modified" in error_text:
                return True
            if "message to edit not found" in error_text or "message can't be edited" in error_text:
                log.info(f"{self.key} message is gone, closing view")
                self.close()
                return False
            log.warning(f"{self.key} redraw failed: {e}")
            return False
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.on_close:
            self.on_close(self)


class LiveViewRegistry:
    """At most one live view per chat. Opening a new one tears the previous one down."""

    def __init__(self, revalidator: Revalidator):
        self.revalidator = revalidator
        self._views: dict[int, LiveOrderView] = {}

    def get(self, chat_id: int) -> Optional[LiveOrderView]:
        return self._views.get(chat_id)

    def open(self, view: LiveOrderView) -> LiveOrderView:
        self.close(view.chat_id)
        view.on_close = self._forget
        self._views[view.chat_id] = view
        self.revalidator.watch(view.key, partial(revalidate_view, view))
        log.debug(f"{view.key} opened on message {view.message_id}")
        return view

    def _forget(self, view: LiveOrderView) -> None:
        if self._views.get(view.chat_id) is view:
            del self._views[view.chat_id]
            self.revalidator.unwatch(view.key)

    def close(self, chat_id: int) -> None:
        view = self._views.get(chat_id)
        if view:
            view.close()

    def close_all(self) -> None:
        for view in list(self._views.values()):
            view.close()

    async def refresh(self, chat_id: int) -> bool:
        view = self._views.get(chat_id)
        if view is None:
            return False
        return await self.revalidator.trigger(view.key)

    def __len__(self) -> int:
        return len(self._views)


async def open_order_view(
        registry: LiveViewRegistry,
        bot: Bot,
        chat_id: int,
        message_id: int,
        loader: Loader,
        renderer: Renderer,
        board: Optional[OrderBoard] = None,
) -> tuple[Optional[LiveOrderView], Optional[str]]:
    """
    Shows `renderer` in an existing message and keeps it fresh.
    Without a ready `board` the orders are fetched first; a failed fetch
    opens nothing and returns the error.
    """
    if board is None:
        orders, error = await loader()
        if error:
            return None, error
        board = OrderBoard(orders)

    view = registry.open(LiveOrderView(bot, chat_id, message_id, loader, renderer, board=board))
    await view.render()
    return view, None
