"""
Change Notification

Tells subscribers "the data may have changed, pull again". It carries no
payload: subscribers re-fetch through the gateway themselves.

DESIGN DECISION: Remote mode has no push channel, so change notification is
a fixed-interval poll. Demo mode has a single writer (this process), so it
gets a notifier that never fires.

TRADEOFFS:
- Polling costs one list request per interval per subscriber
- A refresh already running when the subscription is cancelled is left
  to finish; only future ticks stop
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

import structlog

from nexora.config import Settings, get_settings

ChangeCallback = Callable[[], Union[None, Awaitable[None]]]

logger = structlog.get_logger(__name__)


class Subscription:
    """Handle returned by subscribe(). Cancelling it twice is harmless."""

    def __init__(self, task: Optional["asyncio.Task[None]"] = None):
        self._task = task
        self._cancelled = task is None

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


class ChangeNotifier(ABC):
    """Source of "data may have changed" signals."""

    @abstractmethod
    def subscribe(self, callback: ChangeCallback) -> Subscription:
        """Invoke callback on every change signal until the subscription is cancelled."""


class PollingChangeNotifier(ChangeNotifier):
    """
    Fires every `interval` seconds.

    Must subscribe from inside a running event loop. Each subscription gets
    its own polling task; async callbacks run as separate tasks so a slow
    refresh never delays the next tick.
    """

    def __init__(self, interval: float):
        if interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {interval}")
        self.interval = interval
        self._in_flight: set[asyncio.Task[Any]] = set()

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        task = asyncio.get_running_loop().create_task(
            self._poll(callback),
            name="nexora-change-poll",
        )
        logger.debug("poll_subscribed", interval=self.interval)
        return Subscription(task)

    async def _poll(self, callback: ChangeCallback) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                result = callback()
            except Exception as e:
                logger.error("change_callback_failed", error=str(e))
                continue

            if inspect.isawaitable(result):
                refresh = asyncio.ensure_future(result)
                self._in_flight.add(refresh)
                refresh.add_done_callback(self._refresh_done)

    def _refresh_done(self, task: "asyncio.Future[Any]") -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("change_callback_failed", error=str(error))


class NullChangeNotifier(ChangeNotifier):
    """Never fires."""

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        return Subscription()


def create_notifier(
    settings: Optional[Settings] = None,
    demo_mode: Optional[bool] = None,
) -> ChangeNotifier:
    """
    Polling in remote mode, silence in demo mode.

    Pass demo_mode to follow an already built gateway instead of
    re-reading the API switch from settings.
    """
    settings = settings or get_settings()
    if demo_mode is None:
        demo_mode = settings.demo_mode
    if demo_mode:
        return NullChangeNotifier()
    return PollingChangeNotifier(settings.app.poll_interval_seconds)
