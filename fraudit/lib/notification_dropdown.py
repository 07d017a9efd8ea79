# fraudit/lib/notification_dropdown.py

from typing import Hashable, List, Optional

from fraudit.lib.notification_store import NotificationStore
from fraudit.models.notification import Notification


def unread_badge(unread_count: int) -> Optional[str]:
    if unread_count <= 0:
        return None
    return "9+" if unread_count > 9 else str(unread_count)


class NotificationDropdown:
    """Persistent list view over a notification store."""

    def __init__(self, store: NotificationStore):
        self.store = store
        self.is_open = False

    async def open(self) -> List[Notification]:
        # Refetch on every open, not only the first one.
        self.is_open = True
        await self.store.fetch_initial()
        return self.items()

    def close(self) -> None:
        self.is_open = False

    async def toggle(self) -> List[Notification]:
        if self.is_open:
            self.close()
            return self.items()
        return await self.open()

    def items(self) -> List[Notification]:
        return sorted(self.store.notifications, key=lambda n: n.timestamp, reverse=True)

    def unread_badge(self) -> Optional[str]:
        return unread_badge(self.store.unread_count)

    def click(self, notification_id: Hashable) -> Optional[str]:
        """Mark the entry read and return the link to navigate to."""
        notification = self.store.get(notification_id)
        if notification is None:
            return None
        self.store.mark_read(notification_id)
        return notification.link or "#"

    def mark_all_read(self) -> None:
        self.store.mark_all_read()
