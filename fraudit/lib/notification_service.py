# fraudit/lib/notification_service.py

import inspect
import itertools
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from fraudit.lib.scheduler import ScheduledCall, Scheduler
from fraudit.lib.seen_set_store import SeenSetStore
from fraudit.models.alert import Alert
from fraudit.models.notification import Notification

FetchRecentAlerts = Callable[[int], Awaitable[Sequence[Alert]]]
NotificationListener = Callable[[List[Notification]], Union[None, Awaitable[Any]]]

DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_POLL_LIMIT = 5


class DeliveryState(str, Enum):
    STOPPED = "STOPPED"
    POLLING = "POLLING"


def dispatch_isolated(logger: logging.Logger, name: str, callback, *args):
    """Call ``callback``, logging instead of raising if it fails.

    Returns the awaitable produced by an async callback so the caller can
    await it through :func:`await_isolated`.
    """
    try:
        return callback(*args)
    except Exception as e:
        logger.error(f"{name} failed: {e}", exc_info=True)
        return None


async def await_isolated(logger: logging.Logger, name: str, result):
    if not inspect.isawaitable(result):
        return
    try:
        await result
    except Exception as e:
        logger.error(f"{name} failed: {e}", exc_info=True)


class NotificationService:
    """Turns the pull-only alert endpoint into pushed notification batches.

    While POLLING, one poll cycle runs as soon as polling starts and then
    every ``poll_interval`` seconds. A cycle fetches the ``poll_limit`` most
    recent alerts, keeps those the seen-set does not know yet, marks them
    seen and hands them to every listener as unread notifications.
    """

    def __init__(
        self,
        fetch_recent_alerts: FetchRecentAlerts,
        seen_set: SeenSetStore,
        scheduler: Scheduler,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_limit: int = DEFAULT_POLL_LIMIT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.fetch_recent_alerts = fetch_recent_alerts
        self.seen_set = seen_set
        self.scheduler = scheduler
        self.poll_interval = poll_interval
        self.poll_limit = poll_limit
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._state = DeliveryState.STOPPED
        self._timer: Optional[ScheduledCall] = None
        self._listeners: Dict[int, NotificationListener] = {}
        self._listener_ids = itertools.count()
        self.poll_count = 0
        self.last_poll_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.logger = logging.getLogger(__name__)
        self.logger.debug("NotificationService initialized")

    @property
    def state(self) -> DeliveryState:
        return self._state

    @property
    def is_polling(self) -> bool:
        return self._state is DeliveryState.POLLING

    def initialize(self, is_authenticated: bool) -> None:
        """Start or stop polling to follow the authentication state.

        Repeating the current state is a no-op.
        """
        if is_authenticated and self._state is DeliveryState.STOPPED:
            self._start()
        elif not is_authenticated and self._state is DeliveryState.POLLING:
            self._stop()

    def stop(self) -> None:
        self.initialize(False)

    def _start(self):
        self._state = DeliveryState.POLLING
        self._timer = self.scheduler.call_later(0, self._tick)
        self.logger.info(
            f"Notification polling started (every {self.poll_interval}s, limit {self.poll_limit})"
        )

    def _stop(self):
        self._state = DeliveryState.STOPPED
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.logger.info("Notification polling stopped")

    async def _tick(self):
        if self._state is not DeliveryState.POLLING:
            return
        self._timer = self.scheduler.call_later(self.poll_interval, self._tick)
        await self.poll()

    async def poll(self) -> List[Notification]:
        """Run one poll cycle and return the notifications it delivered."""
        self.poll_count += 1
        self.last_poll_at = self.clock()
        try:
            alerts = await self.fetch_recent_alerts(self.poll_limit)
        except Exception as e:
            self.last_error = str(e)
            self.logger.error(f"Error polling recent alerts: {e}")
            return []
        self.last_error = None

        # Check and mark happen with no await in between.
        new_alerts: List[Alert] = []
        batch_ids = set()
        for alert in alerts or []:
            if alert.id in batch_ids or self.seen_set.has(alert.id):
                continue
            batch_ids.add(alert.id)
            new_alerts.append(alert)
        if not new_alerts:
            return []
        self.seen_set.mark_seen([alert.id for alert in new_alerts])

        notifications = [
            Notification.from_alert(alert, read=False, clock=self.clock)
            for alert in new_alerts
        ]
        notifications.sort(key=lambda n: n.timestamp, reverse=True)
        self.logger.debug(
            f"Delivering {len(notifications)} new notifications: {[n.id for n in notifications]}"
        )

        await self.seen_set.persist()
        await self._notify_listeners(notifications)
        return notifications

    def add_listener(self, listener: NotificationListener) -> Callable[[], None]:
        """Register ``listener`` and return a function that unregisters it."""
        listener_id = next(self._listener_ids)
        self._listeners[listener_id] = listener

        def remove_listener():
            self._listeners.pop(listener_id, None)

        return remove_listener

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def _notify_listeners(self, notifications: List[Notification]):
        for listener_id, listener in list(self._listeners.items()):
            if listener_id not in self._listeners:
                continue
            batch = list(notifications)
            result = dispatch_isolated(self.logger, "Notification listener", listener, batch)
            await await_isolated(self.logger, "Notification listener", result)
