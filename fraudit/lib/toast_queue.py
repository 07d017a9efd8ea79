# fraudit/lib/toast_queue.py

import itertools
import logging
import uuid
from typing import Callable, Dict, Hashable, List, Optional

from fraudit.lib.notification_service import dispatch_isolated
from fraudit.lib.notification_store import NotificationStore, StoreChange
from fraudit.lib.scheduler import ScheduledCall, Scheduler
from fraudit.models.notification import Notification, Toast

DEFAULT_MAX_VISIBLE = 3
DEFAULT_DURATION = 5.0

ToastFilter = Callable[[Notification], bool]
ToastEventListener = Callable[[str, Toast], None]


class ToastQueue:
    """Transient toasts for unread notifications of a store.

    At most ``max_visible`` toasts are active at once. Unread entries beyond
    that stay in the store and get a toast once an active one is dismissed.
    Dismissing a toast, by hand or when its timer fires, marks the
    notification read.
    """

    def __init__(
        self,
        store: NotificationStore,
        scheduler: Scheduler,
        max_visible: int = DEFAULT_MAX_VISIBLE,
        duration: float = DEFAULT_DURATION,
        auto_close: bool = True,
        toast_filter: Optional[ToastFilter] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.max_visible = max_visible
        self.duration = duration
        self.auto_close = auto_close
        self.toast_filter = toast_filter
        self._toasts: List[Toast] = []
        self._timers: Dict[str, ScheduledCall] = {}
        self._listeners: Dict[int, ToastEventListener] = {}
        self._listener_ids = itertools.count()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.logger = logging.getLogger(__name__)

    @property
    def mounted(self) -> bool:
        return self._unsubscribe is not None

    def mount(self) -> None:
        if self.mounted:
            return
        self._unsubscribe = self.store.subscribe(self._on_store_change)
        self.sync()

    def unmount(self) -> None:
        """Detach from the store and drop every toast without marking it read."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._toasts = []

    def visible(self) -> List[Toast]:
        return [toast.model_copy() for toast in self._toasts]

    def add_listener(self, listener: ToastEventListener) -> Callable[[], None]:
        """Listen for ``shown`` and ``dismissed`` toast events."""
        listener_id = next(self._listener_ids)
        self._listeners[listener_id] = listener

        def remove_listener():
            self._listeners.pop(listener_id, None)

        return remove_listener

    def _on_store_change(self, change: StoreChange):
        self.sync()

    def _eligible(self, notification: Notification) -> bool:
        if self.toast_filter is None:
            return True
        try:
            return bool(self.toast_filter(notification))
        except Exception as e:
            self.logger.error(f"Toast filter failed for {notification.id}: {e}")
            return True

    def sync(self) -> None:
        """Bring the active toasts in line with the store's unread entries."""
        if not self.mounted:
            return

        unread = {n.id: n for n in self.store.unread()}
        for toast in list(self._toasts):
            if toast.id not in unread:
                self._remove(toast.toast_id, "dismissed")

        shown = {toast.id for toast in self._toasts}
        for notification in unread.values():
            if len(self._toasts) >= self.max_visible:
                break
            if notification.id in shown or not self._eligible(notification):
                continue
            self._show(notification)
            shown.add(notification.id)

    def _show(self, notification: Notification):
        toast = Toast.for_notification(
            notification, toast_id=f"toast-{notification.id}-{uuid.uuid4().hex}"
        )
        self._toasts.append(toast)
        if self.auto_close:
            self._timers[toast.toast_id] = self.scheduler.call_later(
                self.duration, lambda: self.dismiss(toast.toast_id)
            )
        self.logger.debug(f"Showing toast {toast.toast_id}")
        self._emit("shown", toast)

    def dismiss(self, toast_id: str) -> bool:
        """Dismiss a toast and mark its notification read.

        Returns False for a toast that is not active anymore.
        """
        toast = self._remove(toast_id, "dismissed")
        if toast is None:
            return False
        # mark_read notifies the store observers, which re-syncs this queue.
        if not self.store.mark_read(toast.id):
            self.sync()
        return True

    def dismiss_notification(self, notification_id: Hashable) -> bool:
        for toast in self._toasts:
            if toast.id == notification_id:
                return self.dismiss(toast.toast_id)
        return False

    def _remove(self, toast_id: str, event: str) -> Optional[Toast]:
        timer = self._timers.pop(toast_id, None)
        if timer is not None:
            timer.cancel()
        for index, toast in enumerate(self._toasts):
            if toast.toast_id == toast_id:
                del self._toasts[index]
                self._emit(event, toast)
                return toast
        return None

    def _emit(self, event: str, toast: Toast):
        for listener_id, listener in list(self._listeners.items()):
            if listener_id not in self._listeners:
                continue
            dispatch_isolated(self.logger, "Toast listener", listener, event, toast.model_copy())
