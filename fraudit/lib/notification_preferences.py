# fraudit/lib/notification_preferences.py

import logging
from typing import Callable, Optional

from pydantic import ValidationError

from fraudit.lib.notification_store import NotificationStore
from fraudit.lib.storage import KeyValueStorage
from fraudit.models.alert import Severity
from fraudit.models.notification import Notification
from fraudit.models.preferences import NotificationPreferences

PREFERENCES_KEY = "notification_preferences"
HIGH_PRIORITY = {Severity.HIGH, Severity.VERY_HIGH}

logger = logging.getLogger(__name__)


class NotificationsDisabledError(Exception):
    pass


async def load_preferences(storage: KeyValueStorage) -> NotificationPreferences:
    """Read saved preferences, falling back to the defaults."""
    try:
        raw = await storage.get(PREFERENCES_KEY)
    except Exception as e:
        logger.error(f"Error loading notification preferences: {e}")
        return NotificationPreferences()
    if not raw:
        return NotificationPreferences()
    try:
        return NotificationPreferences.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Invalid notification preferences, using defaults: {e}")
        return NotificationPreferences()


async def save_preferences(
    storage: KeyValueStorage, preferences: NotificationPreferences
) -> None:
    await storage.set(PREFERENCES_KEY, preferences.model_dump_json(by_alias=True))
    logger.debug("Notification preferences saved")


def toast_filter(preferences: NotificationPreferences) -> Callable[[Notification], bool]:
    """Build the predicate deciding which notifications may pop up as toasts.

    Synthetic notifications without a severity are always eligible.
    """

    def allow(notification: Notification) -> bool:
        if notification.severity is None:
            return True
        if preferences.high_priority_only and notification.severity not in HIGH_PRIORITY:
            return False
        return preferences.severity_levels.allows(notification.severity)

    return allow


def demo_severity(preferences: NotificationPreferences) -> Severity:
    levels = preferences.severity_levels
    if levels.very_high or levels.high:
        return Severity.HIGH
    if levels.medium:
        return Severity.MEDIUM
    if levels.low:
        return Severity.LOW
    return Severity.MEDIUM


def create_demo_notification(
    store: NotificationStore, preferences: NotificationPreferences
) -> Optional[Notification]:
    """Add a test notification at the highest severity the user receives."""
    if not preferences.enabled:
        raise NotificationsDisabledError("Enable notifications to test them")
    severity = demo_severity(preferences)
    return store.add_notification(
        message=f"This is a test {severity.value.replace('_', ' ').lower()} severity notification.",
        severity=severity,
        company_name="Demo Company",
    )
