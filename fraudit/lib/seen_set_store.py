# fraudit/lib/seen_set_store.py

import json
import logging
from typing import Hashable, Iterable, List

from fraudit.lib.storage import KeyValueStorage

SEEN_SET_KEY = "seen_alert_ids"
DEFAULT_CAPACITY = 100


class SeenSetStore:
    """Alert ids already surfaced to the user.

    The set lives in memory and is mirrored to durable storage as a JSON
    array. ``has`` and ``mark_seen`` never await, so a check followed by a
    mark cannot interleave with another poll cycle. Only the most recently
    seen ``capacity`` ids are kept, oldest evicted first.

    Storage problems never raise: an unreadable or corrupt value loads as an
    empty set and a failed write is only logged.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        capacity: int = DEFAULT_CAPACITY,
        key: str = SEEN_SET_KEY,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.storage = storage
        self.capacity = capacity
        self.key = key
        # dict keeps insertion order
        self._ids: dict = {}
        self.logger = logging.getLogger(__name__)

    async def load(self) -> None:
        try:
            raw = await self.storage.get(self.key)
        except Exception as e:
            self.logger.error(f"Error loading seen alerts, starting empty: {e}")
            self._ids = {}
            return

        self._ids = {}
        if not raw:
            return
        try:
            stored = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            self.logger.warning(f"Corrupt seen alerts value, starting empty: {e}")
            return
        if not isinstance(stored, list):
            self.logger.warning("Seen alerts value is not a list, starting empty")
            return

        for alert_id in stored:
            if isinstance(alert_id, (int, str)) and not isinstance(alert_id, bool):
                self._ids[alert_id] = None
        self._truncate()
        self.logger.debug(f"Loaded {len(self._ids)} seen alert ids")

    def has(self, alert_id: Hashable) -> bool:
        return alert_id in self._ids

    def filter_unseen(self, alert_ids: Iterable[Hashable]) -> List[Hashable]:
        return [alert_id for alert_id in alert_ids if alert_id not in self._ids]

    def mark_seen(self, alert_ids: Iterable[Hashable]) -> None:
        for alert_id in alert_ids:
            if alert_id not in self._ids:
                self._ids[alert_id] = None
        self._truncate()

    def _truncate(self):
        overflow = len(self._ids) - self.capacity
        if overflow > 0:
            for alert_id in list(self._ids)[:overflow]:
                del self._ids[alert_id]

    def snapshot(self) -> List[Hashable]:
        return list(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    async def persist(self) -> None:
        try:
            await self.storage.set(self.key, json.dumps(self.snapshot()))
        except Exception as e:
            self.logger.error(f"Error persisting seen alerts: {e}")

    async def clear(self) -> None:
        self._ids = {}
        try:
            await self.storage.remove(self.key)
        except Exception as e:
            self.logger.error(f"Error clearing seen alerts: {e}")
