# utils/revalidation.py
from abc import ABC, abstractmethod
from contextlib import suppress
from typing import Awaitable, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from utils.logger import get_logger

log = get_logger("[Revalidator]")

Callback = Callable[[], Awaitable[object]]


class Revalidator(ABC):
    """
    Decides when open screens re-fetch their data.
    Consumers only register a callback under a key; whether it fires on a
    timer or on a push notification is up to the implementation.
    """

    def __init__(self):
        self._callbacks: dict[str, Callback] = {}

    def watch(self, key: str, callback: Callback) -> None:
        self._callbacks[key] = callback
        self._on_watch(key, callback)

    def unwatch(self, key: str) -> None:
        if self._callbacks.pop(key, None) is not None:
            self._on_unwatch(key)

    async def trigger(self, key: str) -> bool:
        """Revalidates `key` right now. Returns False if nothing is registered."""
        callback = self._callbacks.get(key)
        if callback is None:
            return False
        await callback()
        return True

    @abstractmethod
    def _on_watch(self, key: str, callback: Callback) -> None:
        ...

    @abstractmethod
    def _on_unwatch(self, key: str) -> None:
        ...


class IntervalRevalidator(Revalidator):
    """Periodic full re-fetch, one APScheduler interval job per key."""

    def __init__(self, scheduler: BaseScheduler, interval_seconds: int = 10):
        super().__init__()
        self.scheduler = scheduler
        self.interval_seconds = interval_seconds

    def _on_watch(self, key: str, callback: Callback) -> None:
        self.scheduler.add_job(
            callback, trigger="interval", seconds=self.interval_seconds,
            id=key, replace_existing=True, max_instances=1, coalesce=True,
        )
        log.debug(f"Watching {key} every {self.interval_seconds}s")

    def _on_unwatch(self, key: str) -> None:
        with suppress(JobLookupError):
            self.scheduler.remove_job(key)
        log.debug(f"Stopped watching {key}")
