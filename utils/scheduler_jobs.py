# utils/scheduler_jobs.py
from typing import TYPE_CHECKING

from aiogram.exceptions import TelegramAPIError

from utils.logger import get_logger

if TYPE_CHECKING:
    from utils.live_views import LiveOrderView

log = get_logger("[SchedulerJobs]")


async def revalidate_view(view: "LiveOrderView") -> None:
    """
    Periodic job: re-fetches the orders behind an open screen and redraws it.
    Errors are logged so one broken screen never stops the scheduler.
    """
    if view.closed:
        log.debug(f"Skipping closed view {view.key}")
        return

    try:
        updated = await view.refresh()
        log.debug(f"View {view.key} revalidated (updated={updated})")
    except TelegramAPIError as e:
        log.warning(f"Telegram refused to redraw {view.key}: {e}")
    except Exception as e:
        log.exception(f"Revalidation of {view.key} failed: {e}")
