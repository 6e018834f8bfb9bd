from aiogram import BaseMiddleware, Bot

from api.supabase_backend import SupabaseAuthClient, SupabaseStorageClient
from database.managers.order_manager import OrderManager
from database.managers.product_manager import ProductManager
from database.managers.user_info_manager import UserInfoManager
from utils.live_views import LiveViewRegistry
from utils.session import SessionRegistry


class ManagerMiddleware(BaseMiddleware):
    """Hands the shared services to every handler through aiogram's data dict."""

    def __init__(
            self,
            order_manager: OrderManager,
            product_manager: ProductManager,
            user_info_manager: UserInfoManager,
            auth_client: SupabaseAuthClient,
            storage_client: SupabaseStorageClient,
            sessions: SessionRegistry,
            live_views: LiveViewRegistry,
            bot: Bot,
    ):
        super().__init__()
        self.order_manager = order_manager
        self.product_manager = product_manager
        self.user_info_manager = user_info_manager
        self.auth_client = auth_client
        self.storage_client = storage_client
        self.sessions = sessions
        self.live_views = live_views
        self.bot = bot

    async def __call__(self, handler, event, data):
        data["order_manager"] = self.order_manager
        data["product_manager"] = self.product_manager
        data["user_info_manager"] = self.user_info_manager
        data["auth_client"] = self.auth_client
        data["storage_client"] = self.storage_client
        data["sessions"] = self.sessions
        data["live_views"] = self.live_views
        data["bot"] = self.bot

        return await handler(event, data)
