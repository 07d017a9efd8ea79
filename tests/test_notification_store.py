import asyncio

import pytest

from fraudit.lib.notification_store import FETCH_ERROR_MESSAGE, NotificationStore
from fraudit.models.alert import Severity
from fraudit.models.notification import Notification, NotificationType
from tests.conftest import BASE_TIME, make_alert


@pytest.fixture
def store(risk_api, clock):
    return NotificationStore(risk_api.fetch_recent_alerts, clock=clock)


@pytest.fixture
def changes(store):
    recorded = []
    store.subscribe(recorded.append)
    return recorded


def unread_entries(store):
    return sum(1 for n in store.notifications if not n.read)


def notification(notification_id, minutes_ago=0, read=False):
    return Notification.from_alert(make_alert(notification_id, minutes_ago=minutes_ago), read=read)


async def test_fetch_initial_projects_resolved_alerts_as_read(store, risk_api, changes):
    risk_api.set_recent(
        [
            make_alert(1, "VERY_HIGH", 0),
            make_alert(2, "MEDIUM", 5, is_resolved=True),
            make_alert(3, "LOW", 10),
        ]
    )

    notifications = await store.fetch_initial()

    assert risk_api.recent_calls == [10]
    assert [n.id for n in notifications] == [1, 2, 3]
    assert [n.read for n in notifications] == [False, True, False]
    assert store.unread_count == 2
    assert store.loading is False
    assert store.error is None
    assert changes[-1].action == "fetched"


async def test_fetch_initial_failure_keeps_ledger(store, risk_api):
    store.ingest([notification(1)])
    risk_api.fail_recent = ConnectionError("backend down")

    await store.fetch_initial()

    assert store.error == FETCH_ERROR_MESSAGE
    assert store.loading is False
    assert [n.id for n in store.notifications] == [1]
    assert store.unread_count == 1


async def test_loading_flag_set_while_fetching(clock):
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_fetch(limit):
        started.set()
        await release.wait()
        return [make_alert(1)]

    store = NotificationStore(slow_fetch, clock=clock)
    task = asyncio.create_task(store.fetch_initial())
    await started.wait()
    assert store.loading is True

    release.set()
    await task
    assert store.loading is False


async def test_entries_ingested_during_fetch_are_kept(clock):
    release = asyncio.Event()
    started = asyncio.Event()

    async def slow_fetch(limit):
        started.set()
        await release.wait()
        return [make_alert(1, minutes_ago=5)]

    store = NotificationStore(slow_fetch, clock=clock)
    task = asyncio.create_task(store.fetch_initial())
    await started.wait()
    store.ingest([notification(2)])
    release.set()
    await task

    assert [n.id for n in store.notifications] == [2, 1]
    assert store.unread_count == 2


async def test_ingest_prepends_unread(store, changes):
    store.ingest([notification(1, minutes_ago=5)])
    added = store.ingest([notification(2, read=True), notification(1)])

    assert added == 1
    assert [n.id for n in store.notifications] == [2, 1]
    assert store.get(2).read is False
    assert store.unread_count == 2
    assert [c.action for c in changes] == ["ingested", "ingested"]
    assert changes[-1].notification_ids == [2]


async def test_mark_read_twice_decrements_once(store, changes):
    store.ingest([notification(1), notification(2)])

    assert store.mark_read(1) is True
    assert store.mark_read(1) is False
    assert store.mark_read(99) is False

    assert store.unread_count == 1
    assert store.get(1).read is True
    assert [c.action for c in changes].count("read") == 1


async def test_mark_all_read(store, changes):
    store.ingest([notification(1), notification(2)])
    store.mark_all_read()
    store.mark_all_read()

    assert store.unread_count == 0
    assert all(n.read for n in store.notifications)
    assert [c.action for c in changes].count("read_all") == 1


async def test_unread_count_matches_entries(store, risk_api):
    risk_api.set_recent([make_alert(i, minutes_ago=i, is_resolved=i % 2 == 0) for i in range(1, 7)])
    await store.fetch_initial()
    assert store.unread_count == unread_entries(store)

    store.ingest([notification(10)])
    store.mark_read(1)
    store.mark_read(1)
    assert store.unread_count == unread_entries(store)

    store.clear()
    assert store.unread_count == 0
    assert store.notifications == []


async def test_resolved_alert_stays_read_after_refetch(store, risk_api):
    risk_api.set_recent([make_alert(5)])
    await store.fetch_initial()
    store.mark_resolved(5)

    # backend still reports the alert as open
    await store.fetch_initial()
    assert store.get(5).read is True
    assert store.unread_count == 0


async def test_add_notification_creates_synthetic_entry(store):
    created = store.add_notification("Export finished", notification_type=NotificationType.SUCCESS)

    assert isinstance(created.id, str)
    assert created.id.startswith("local-")
    assert created.timestamp == BASE_TIME
    assert store.unread_count == 1


async def test_add_notification_derives_type_from_severity(store):
    created = store.add_notification("Score dropped", severity=Severity.HIGH)
    assert created.type is NotificationType.DANGER


async def test_failing_observer_is_isolated(store):
    seen = []

    def broken(change):
        raise RuntimeError("observer exploded")

    store.subscribe(broken)
    store.subscribe(seen.append)
    store.ingest([notification(1)])

    assert [c.action for c in seen] == ["ingested"]


async def test_unsubscribe_and_close(store, changes):
    other = []
    unsubscribe = store.subscribe(other.append)
    unsubscribe()
    store.ingest([notification(1)])
    assert other == []

    store.close()
    assert store.closed
    assert store.ingest([notification(2)]) == 0
    assert store.notifications == []
    assert changes[-1].action == "cleared"
