import json

import pytest

from fraudit.lib.notification_preferences import (
    PREFERENCES_KEY,
    NotificationsDisabledError,
    create_demo_notification,
    load_preferences,
    save_preferences,
    toast_filter,
)
from fraudit.lib.notification_store import NotificationStore
from fraudit.models.alert import Severity
from fraudit.models.notification import Notification, NotificationType
from fraudit.models.preferences import NotificationPreferences, SeverityLevels
from tests.conftest import BASE_TIME


def notification(severity):
    return Notification(id=1, severity=severity, message="m", timestamp=BASE_TIME)


async def test_defaults_when_nothing_saved(storage):
    preferences = await load_preferences(storage)
    assert preferences == NotificationPreferences()
    assert preferences.enabled and preferences.show_toasts


async def test_save_and_load_round_trip_uses_camel_case(storage):
    saved = NotificationPreferences(
        show_toasts=False, severity_levels=SeverityLevels(low=False)
    )
    await save_preferences(storage, saved)

    raw = json.loads(storage.data[PREFERENCES_KEY])
    assert raw["showToasts"] is False
    assert raw["severityLevels"]["low"] is False
    assert await load_preferences(storage) == saved


async def test_invalid_or_unreadable_preferences_fall_back(storage):
    storage.data[PREFERENCES_KEY] = '{"enabled": "sometimes"}'
    assert await load_preferences(storage) == NotificationPreferences()

    storage.fail_reads = True
    assert await load_preferences(storage) == NotificationPreferences()


def test_high_priority_only_filter():
    allow = toast_filter(NotificationPreferences(high_priority_only=True))

    assert allow(notification(Severity.VERY_HIGH))
    assert allow(notification(Severity.HIGH))
    assert not allow(notification(Severity.MEDIUM))
    assert not allow(notification(Severity.LOW))
    assert allow(notification(None))


def test_severity_levels_filter():
    allow = toast_filter(
        NotificationPreferences(severity_levels=SeverityLevels(medium=False, low=False))
    )
    assert allow(notification(Severity.HIGH))
    assert not allow(notification(Severity.MEDIUM))


def test_demo_notification_uses_highest_enabled_severity(risk_api, clock):
    store = NotificationStore(risk_api.fetch_recent_alerts, clock=clock)
    preferences = NotificationPreferences(
        severity_levels=SeverityLevels(very_high=False, high=False)
    )

    created = create_demo_notification(store, preferences)

    assert created.severity is Severity.MEDIUM
    assert created.type is NotificationType.WARNING
    assert created.message == "This is a test medium severity notification."
    assert created.company_name == "Demo Company"
    assert store.unread_count == 1


def test_demo_notification_rejected_when_disabled(risk_api):
    store = NotificationStore(risk_api.fetch_recent_alerts)
    with pytest.raises(NotificationsDisabledError):
        create_demo_notification(store, NotificationPreferences(enabled=False))
    assert store.unread_count == 0
