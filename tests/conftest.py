import asyncio
import inspect
import itertools
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

import pytest

from fraudit.clients.risk_api_client import RiskApiError
from fraudit.lib.scheduler import ScheduledCall, Scheduler
from fraudit.lib.seen_set_store import SeenSetStore
from fraudit.lib.storage import KeyValueStorage
from fraudit.models.alert import Alert, AlertPage

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_alert(
    alert_id: int,
    severity: Optional[str] = "HIGH",
    minutes_ago: int = 0,
    is_resolved: bool = False,
    company_name: str = "Acme Corp",
    message: Optional[str] = None,
) -> Alert:
    return Alert(
        id=alert_id,
        severity=severity,
        message=message or f"Alert {alert_id} raised",
        company_name=company_name,
        created_at=BASE_TIME - timedelta(minutes=minutes_ago),
        is_resolved=is_resolved,
    )


class InMemoryStorage(KeyValueStorage):
    def __init__(self):
        self.data: Dict[str, str] = {}
        self.sets: Dict[str, Set[str]] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.interleave = False

    async def _pause(self):
        # lets other coroutines run mid-operation, like a network round trip
        if self.interleave:
            await asyncio.sleep(0)

    async def get(self, key):
        await self._pause()
        if self.fail_reads:
            raise ConnectionError("storage unavailable")
        return self.data.get(key)

    async def set(self, key, value, ttl=None):
        await self._pause()
        if self.fail_writes:
            raise ConnectionError("storage unavailable")
        self.data[key] = value
        self.ttls[key] = ttl

    async def remove(self, key):
        await self._pause()
        if self.fail_writes:
            raise ConnectionError("storage unavailable")
        self.data.pop(key, None)
        self.sets.pop(key, None)
        self.ttls.pop(key, None)

    async def add_member(self, key, member):
        await self._pause()
        if self.fail_writes:
            raise ConnectionError("storage unavailable")
        self.sets.setdefault(key, set()).add(member)

    async def members(self, key):
        await self._pause()
        if self.fail_reads:
            raise ConnectionError("storage unavailable")
        return set(self.sets.get(key, ()))


class FakeCall(ScheduledCall):
    def __init__(self, due: float, order: int, callback):
        self.due = due
        self.order = order
        self.callback = callback
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self):
        return self._cancelled


class FakeScheduler(Scheduler):
    """Virtual clock. Nothing fires until the test advances time."""

    def __init__(self):
        self.now = 0.0
        self._calls: List[FakeCall] = []
        self._order = itertools.count()

    def call_later(self, delay, callback):
        call = FakeCall(self.now + delay, next(self._order), callback)
        self._calls.append(call)
        return call

    @property
    def pending(self) -> List[FakeCall]:
        return [call for call in self._calls if not call.cancelled]

    async def advance(self, seconds: float = 0.0):
        target = self.now + seconds
        while True:
            due = [c for c in self._calls if not c.cancelled and c.due <= target]
            if not due:
                break
            call = min(due, key=lambda c: (c.due, c.order))
            self._calls.remove(call)
            self.now = call.due
            result = call.callback()
            if inspect.isawaitable(result):
                await result
        self.now = target
        self._calls = [c for c in self._calls if not c.cancelled]


class FakeRiskApi:
    """Stands in for RiskApiClient with an in-memory alert table."""

    def __init__(self, alerts: Optional[List[Alert]] = None, access_token: str = "token-1"):
        self.alerts: Dict[int, Alert] = {a.id: a for a in alerts or []}
        self.recent: Optional[List[Alert]] = None
        self.access_token = access_token
        self.fail_recent: Optional[Exception] = None
        self.fail_resolve: Optional[Exception] = None
        self.recent_calls: List[int] = []
        self.resolve_calls: List[tuple] = []
        self.list_calls = 0
        self.detail_calls = 0
        self.closed = False

    def set_recent(self, alerts: List[Alert]):
        self.recent = list(alerts)
        for alert in alerts:
            self.alerts.setdefault(alert.id, alert)

    async def fetch_recent_alerts(self, limit=5):
        self.recent_calls.append(limit)
        if self.fail_recent is not None:
            raise self.fail_recent
        source = self.recent if self.recent is not None else list(self.alerts.values())
        ordered = sorted(source, key=lambda a: a.created_at, reverse=True)
        return ordered[:limit]

    async def resolve_alert(self, alert_id, resolution_notes):
        self.resolve_calls.append((alert_id, resolution_notes))
        if self.fail_resolve is not None:
            raise self.fail_resolve
        if alert_id not in self.alerts:
            raise RiskApiError(message=f"Alert {alert_id} not found", status_code=404)
        resolved = self.alerts[alert_id].model_copy(
            update={"is_resolved": True, "resolution_notes": resolution_notes}
        )
        self.alerts[alert_id] = resolved
        return resolved

    async def get_alerts(self, params=None):
        self.list_calls += 1
        content = list(self.alerts.values())
        return AlertPage(content=content, size=len(content), total_elements=len(content), total_pages=1)

    async def get_alert(self, alert_id):
        self.detail_calls += 1
        if alert_id not in self.alerts:
            raise RiskApiError(message=f"Alert {alert_id} not found", status_code=404)
        return self.alerts[alert_id]

    async def set_access_token(self, access_token):
        self.access_token = access_token

    async def close_client(self):
        self.closed = True


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def seen_set(storage):
    return SeenSetStore(storage)


@pytest.fixture
def risk_api():
    return FakeRiskApi()


@pytest.fixture
def clock():
    return lambda: BASE_TIME
