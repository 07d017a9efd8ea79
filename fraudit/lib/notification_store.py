# fraudit/lib/notification_store.py

import itertools
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Hashable, Iterable, List, Optional

from fraudit.lib.notification_service import FetchRecentAlerts, dispatch_isolated
from fraudit.models.notification import Notification, NotificationType, notification_type_for

DEFAULT_INITIAL_LIMIT = 10
FETCH_ERROR_MESSAGE = "Failed to load notifications"


@dataclass
class StoreChange:
    """Describes one mutation of the notification ledger."""

    action: str
    unread_count: int
    total: int
    notification_ids: List[Hashable] = field(default_factory=list)


StoreObserver = Callable[[StoreChange], None]


class NotificationStore:
    """Single ledger of notifications visible to one user session.

    Entries are kept most recent first. ``read`` is only changed through
    ``mark_read``, ``mark_all_read`` and the ledger replacement done by
    ``fetch_initial``; the unread counter always equals the number of
    entries with ``read=False``.

    Observers registered with ``subscribe`` are called synchronously after
    every mutation with a :class:`StoreChange`.
    """

    def __init__(
        self,
        fetch_recent_alerts: FetchRecentAlerts,
        initial_limit: int = DEFAULT_INITIAL_LIMIT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.fetch_recent_alerts = fetch_recent_alerts
        self.initial_limit = initial_limit
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._ledger: List[Notification] = []
        self._unread_count = 0
        self._resolved_ids = set()
        self._observers: Dict[int, StoreObserver] = {}
        self._observer_ids = itertools.count()
        self._closed = False
        self.loading = False
        self.error: Optional[str] = None
        self.logger = logging.getLogger(__name__)

    @property
    def notifications(self) -> List[Notification]:
        return [notification.model_copy() for notification in self._ledger]

    @property
    def unread_count(self) -> int:
        return self._unread_count

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, notification_id: Hashable) -> Optional[Notification]:
        for notification in self._ledger:
            if notification.id == notification_id:
                return notification.model_copy()
        return None

    def unread(self) -> List[Notification]:
        return [n.model_copy() for n in self._ledger if not n.read]

    async def fetch_initial(self) -> List[Notification]:
        """Replace the ledger with the most recent alerts from the backend.

        Alerts that are already resolved come in as read. Entries ingested
        while the request was in flight are kept in front of the fresh batch.
        On failure the current ledger is left untouched and ``error`` is set.
        """
        if self._closed:
            return self.notifications
        ids_before = {n.id for n in self._ledger}
        self.loading = True
        self.error = None
        try:
            alerts = await self.fetch_recent_alerts(self.initial_limit)
        except Exception as e:
            self.logger.error(f"Error fetching notifications: {e}")
            self.error = FETCH_ERROR_MESSAGE
            return self.notifications
        finally:
            self.loading = False

        if self._closed:
            return []

        fresh: List[Notification] = []
        fresh_ids = set()
        for alert in alerts or []:
            if alert.id in fresh_ids:
                continue
            fresh_ids.add(alert.id)
            read = alert.is_resolved or alert.id in self._resolved_ids
            fresh.append(Notification.from_alert(alert, read=read, clock=self.clock))
        fresh.sort(key=lambda n: n.timestamp, reverse=True)

        arrived_meanwhile = [
            n for n in self._ledger if n.id not in ids_before and n.id not in fresh_ids
        ]
        self._ledger = arrived_meanwhile + fresh
        self._unread_count = sum(1 for n in self._ledger if not n.read)
        self.logger.debug(
            f"Fetched {len(fresh)} notifications, {self._unread_count} unread"
        )
        self._emit("fetched", [n.id for n in self._ledger])
        return self.notifications

    def ingest(self, notifications: Iterable[Notification]) -> int:
        """Prepend new notifications as unread and return how many were added.

        An id that is already in the ledger is skipped.
        """
        if self._closed:
            return 0
        existing = {n.id for n in self._ledger}
        added: List[Notification] = []
        for notification in notifications:
            if notification.id in existing:
                continue
            existing.add(notification.id)
            added.append(notification.model_copy(update={"read": False}))
        if not added:
            return 0

        self._ledger = added + self._ledger
        self._unread_count += len(added)
        self._emit("ingested", [n.id for n in added])
        return len(added)

    def add_notification(
        self,
        message: str,
        notification_type: Optional[NotificationType] = None,
        severity=None,
        notification_id: Optional[Hashable] = None,
        timestamp: Optional[datetime] = None,
        company_name: Optional[str] = None,
        link: Optional[str] = None,
    ) -> Optional[Notification]:
        """Add one synthetic notification, for events that are not alerts."""
        notification = Notification(
            id=notification_id if notification_id is not None else f"local-{uuid.uuid4().hex}",
            type=notification_type or notification_type_for(severity),
            severity=severity,
            message=message,
            company_name=company_name,
            timestamp=timestamp or self.clock(),
            read=False,
            link=link,
        )
        if not self.ingest([notification]):
            return None
        return notification.model_copy()

    def mark_read(self, notification_id: Hashable) -> bool:
        """Mark one entry read. Returns False when nothing changed."""
        for index, notification in enumerate(self._ledger):
            if notification.id != notification_id:
                continue
            if notification.read:
                return False
            self._ledger[index] = notification.model_copy(update={"read": True})
            self._unread_count = max(0, self._unread_count - 1)
            self._emit("read", [notification_id])
            return True
        return False

    def mark_resolved(self, alert_id: Hashable) -> None:
        """Record an alert resolved in this session and mark its entry read.

        Later refetches keep treating it as read.
        """
        self._resolved_ids.add(alert_id)
        self.mark_read(alert_id)

    def mark_all_read(self) -> None:
        changed = [n.id for n in self._ledger if not n.read]
        self._ledger = [
            n if n.read else n.model_copy(update={"read": True}) for n in self._ledger
        ]
        self._unread_count = 0
        if changed:
            self._emit("read_all", changed)

    def clear(self) -> None:
        removed = [n.id for n in self._ledger]
        self._ledger = []
        self._unread_count = 0
        self._emit("cleared", removed)

    def subscribe(self, observer: StoreObserver) -> Callable[[], None]:
        observer_id = next(self._observer_ids)
        self._observers[observer_id] = observer

        def unsubscribe():
            self._observers.pop(observer_id, None)

        return unsubscribe

    def close(self) -> None:
        """Tear the store down at the end of a session."""
        self.clear()
        self._observers.clear()
        self._closed = True

    def _emit(self, action: str, notification_ids: List[Hashable]):
        change = StoreChange(
            action=action,
            unread_count=self._unread_count,
            total=len(self._ledger),
            notification_ids=notification_ids,
        )
        for observer_id, observer in list(self._observers.items()):
            if observer_id not in self._observers:
                continue
            dispatch_isolated(self.logger, "Notification store observer", observer, change)
