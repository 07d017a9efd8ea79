import pytest

from fraudit.lib.notification_dropdown import NotificationDropdown, unread_badge
from fraudit.lib.notification_store import NotificationStore
from fraudit.models.notification import Notification
from tests.conftest import make_alert


@pytest.fixture
def store(risk_api, clock):
    return NotificationStore(risk_api.fetch_recent_alerts, clock=clock)


@pytest.fixture
def dropdown(store):
    return NotificationDropdown(store)


@pytest.mark.parametrize(
    "count,badge",
    [(0, None), (1, "1"), (9, "9"), (10, "9+"), (42, "9+")],
)
def test_unread_badge(count, badge):
    assert unread_badge(count) == badge


async def test_every_open_refetches(dropdown, risk_api):
    risk_api.set_recent([make_alert(1)])

    await dropdown.open()
    dropdown.close()
    await dropdown.toggle()

    assert len(risk_api.recent_calls) == 2
    assert dropdown.is_open


async def test_toggle_closes_without_fetching(dropdown, risk_api):
    await dropdown.toggle()
    await dropdown.toggle()

    assert not dropdown.is_open
    assert len(risk_api.recent_calls) == 1


async def test_items_sorted_newest_first(dropdown, store):
    store.ingest([Notification.from_alert(make_alert(1, minutes_ago=10))])
    store.ingest([Notification.from_alert(make_alert(2, minutes_ago=30))])

    assert [n.id for n in dropdown.items()] == [1, 2]


async def test_click_marks_read_and_returns_link(dropdown, store):
    store.ingest([Notification.from_alert(make_alert(5))])
    store.add_notification("No link here", notification_id="local-1")

    assert dropdown.click(5) == "/risk/alerts/5"
    assert dropdown.click("local-1") == "#"
    assert dropdown.click(404) is None
    assert store.unread_count == 0


async def test_badge_follows_store(dropdown, store):
    store.ingest([Notification.from_alert(make_alert(i)) for i in range(12)])
    assert dropdown.unread_badge() == "9+"

    dropdown.mark_all_read()
    assert dropdown.unread_badge() is None
