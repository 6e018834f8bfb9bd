import sys
import signal
import asyncio
import logging
from contextlib import suppress

from aiogram import Bot, Dispatcher
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from api.supabase_backend import SupabaseAuthClient, SupabaseStorageClient
from database.async_db import AsyncDatabase
from database.managers.order_manager import OrderManager
from database.managers.product_manager import ProductManager
from database.managers.user_info_manager import UserInfoManager
from database.record_store import RecordStore
from utils.logger import get_logger, setup_logging
from utils.config import (
    BOT_TOKEN, DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD,
    DB_MIN_POOL_SIZE, DB_MAX_POOL_SIZE,
    SUPABASE_URL, SUPABASE_ANON_KEY, SUPABASE_SERVICE_KEY,
    REFRESH_INTERVAL_SECONDS, TIMEZONE,
)
from utils.live_views import LiveViewRegistry
from utils.revalidation import IntervalRevalidator
from utils.session import SessionRegistry

from middleware.manager_middleware import ManagerMiddleware
from middleware.session_middleware import SessionMiddleware
from handlers import register_handlers

setup_logging(level=logging.DEBUG, log_to_file=True)
log = get_logger("[Bot]")


async def shutdown(bot: Bot, dp: Dispatcher):
    log.info("[Bot] Shutting down bot and dispatcher")

    live_views = dp.get("live_views")
    if live_views:
        live_views.close_all()
        log.debug("[Bot] Live views closed [✓]")

    scheduler = dp.get("scheduler")
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        log.debug("[Scheduler] Scheduler stopped [✓]")

    for name in ("auth_client", "storage_client"):
        client = dp.get(name)
        if client:
            with suppress(Exception):
                await client.close()
                log.debug(f"[Bot] {name} session closed [✓]")

    db = dp.get("db")
    if db:
        with suppress(Exception):
            await db.close()

    with suppress(Exception):
        await dp.storage.close()
        log.debug("[Bot] Dispatcher storage closed [✓]")

    with suppress(Exception):
        await bot.session.close()
        log.debug("[Bot] Bot session closed [✓]")

    log.info("[Bot] Shutdown complete [✓]")
    log.info("-" * 80)


async def main():
    log.info("[Bot] Starting main process")
    bot = Bot(token=BOT_TOKEN)
    dp = Dispatcher()

    db = AsyncDatabase(
        db_name=DB_NAME, user=DB_USER, password=DB_PASSWORD, host=DB_HOST, port=DB_PORT,
        min_size=DB_MIN_POOL_SIZE, max_size=DB_MAX_POOL_SIZE,
    )
    await db.connect()
    log.info("[Bot] Database connection established [✓]")

    store = RecordStore(db)
    order_manager = OrderManager(store)
    product_manager = ProductManager(store)
    user_info_manager = UserInfoManager(db)

    # Auth runs with the public key, storage with the service key (private bucket)
    auth_client = SupabaseAuthClient(SUPABASE_URL, SUPABASE_ANON_KEY)
    storage_client = SupabaseStorageClient(SUPABASE_URL, SUPABASE_SERVICE_KEY or SUPABASE_ANON_KEY)

    scheduler = AsyncIOScheduler(timezone=TIMEZONE)
    revalidator = IntervalRevalidator(scheduler, interval_seconds=REFRESH_INTERVAL_SECONDS)
    live_views = LiveViewRegistry(revalidator)
    sessions = SessionRegistry()

    dp.update.middleware(
        ManagerMiddleware(
            order_manager=order_manager, product_manager=product_manager,
            user_info_manager=user_info_manager, auth_client=auth_client,
            storage_client=storage_client, sessions=sessions, live_views=live_views,
            bot=bot,
        )
    )
    dp.update.middleware(SessionMiddleware(sessions))
    log.info("[Bot] Middleware configured [✓]")

    register_handlers(dp)
    log.info("[Bot] Handlers registered [✓]")

    dp["scheduler"] = scheduler
    dp["live_views"] = live_views
    dp["auth_client"] = auth_client
    dp["storage_client"] = storage_client
    dp["db"] = db

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda: loop.create_task(shutdown(bot, dp)))

    try:
        log.info("[Bot] Bot started. Press Ctrl+C to stop")
        scheduler.start()
        log.info("[Scheduler] Scheduler started [✓]")
        await dp.start_polling(bot)
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        log.warning("[Bot] Shutdown signal received")
    finally:
        await shutdown(bot, dp)


if __name__ == "__main__":
    log.info("-" * 80)
    log.info("[Bot] Starting application")
    asyncio.run(main())
