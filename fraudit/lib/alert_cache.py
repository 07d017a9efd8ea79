# fraudit/lib/alert_cache.py

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fraudit.lib.storage import KeyValueStorage
from fraudit.models.alert import Alert, AlertPage

DEFAULT_TTL = 300
LIST_INDEX_KEY = "alerts:list:keys"


def _list_key(params: Optional[Dict[str, Any]]) -> str:
    if not params:
        return "alerts:list"
    encoded = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] is not None)
    return f"alerts:list:{encoded}"


def _detail_key(alert_id: int) -> str:
    return f"alerts:detail:{alert_id}"


class AlertCache:
    """Read-through cache for alert lists and alert details.

    Entries are JSON in the user's storage namespace with a TTL. A storage
    problem is treated as a cache miss; the backend is always the fallback.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        fetch_alerts: Callable[[Optional[Dict[str, Any]]], Awaitable[AlertPage]],
        fetch_alert: Callable[[int], Awaitable[Alert]],
        ttl: int = DEFAULT_TTL,
    ):
        self.storage = storage
        self.fetch_alerts = fetch_alerts
        self.fetch_alert = fetch_alert
        self.ttl = ttl
        self.logger = logging.getLogger(__name__)

    async def _read(self, key: str) -> Optional[str]:
        try:
            return await self.storage.get(key)
        except Exception as e:
            self.logger.warning(f"Alert cache read failed for {key}: {e}")
            return None

    async def _write(self, key: str, value: str):
        try:
            await self.storage.set(key, value, ttl=self.ttl)
        except Exception as e:
            self.logger.warning(f"Alert cache write failed for {key}: {e}")

    async def _remove(self, key: str):
        try:
            await self.storage.remove(key)
        except Exception as e:
            self.logger.warning(f"Alert cache removal failed for {key}: {e}")

    async def get_alerts(self, params: Optional[Dict[str, Any]] = None) -> AlertPage:
        key = _list_key(params)
        cached = await self._read(key)
        if cached:
            try:
                return AlertPage.model_validate_json(cached)
            except ValueError as e:
                self.logger.warning(f"Discarding unreadable cache entry {key}: {e}")

        page = await self.fetch_alerts(params)
        await self._write(key, page.model_dump_json(by_alias=True))
        await self._remember_list_key(key)
        return page

    async def get_alert(self, alert_id: int) -> Alert:
        key = _detail_key(alert_id)
        cached = await self._read(key)
        if cached:
            try:
                return Alert.model_validate_json(cached)
            except ValueError as e:
                self.logger.warning(f"Discarding unreadable cache entry {key}: {e}")

        alert = await self.fetch_alert(alert_id)
        await self._write(key, alert.model_dump_json(by_alias=True))
        return alert

    async def _list_keys(self) -> List[str]:
        try:
            return sorted(await self.storage.members(LIST_INDEX_KEY))
        except Exception as e:
            self.logger.warning(f"Alert cache index read failed: {e}")
            return []

    async def _remember_list_key(self, key: str):
        # atomic set add in storage
        try:
            await self.storage.add_member(LIST_INDEX_KEY, key)
        except Exception as e:
            self.logger.warning(f"Alert cache index update failed for {key}: {e}")

    async def invalidate_list(self):
        for key in await self._list_keys():
            await self._remove(key)
        await self._remove(LIST_INDEX_KEY)
        self.logger.debug("Invalidated cached alert lists")

    async def invalidate_alert(self, alert_id: int):
        await self._remove(_detail_key(alert_id))
        self.logger.debug(f"Invalidated cached alert {alert_id}")
