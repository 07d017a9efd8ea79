# fraudit/models/notification.py

from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fraudit.models.alert import Alert, Severity


class NotificationType(str, Enum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    DANGER = "DANGER"


_SEVERITY_TYPES = {
    Severity.VERY_HIGH: NotificationType.DANGER,
    Severity.HIGH: NotificationType.DANGER,
    Severity.MEDIUM: NotificationType.WARNING,
    Severity.LOW: NotificationType.INFO,
}


def notification_type_for(severity: Severity | str | None) -> NotificationType:
    """Map an alert severity to the notification type shown to the user."""
    if severity is None:
        return NotificationType.INFO
    if not isinstance(severity, Severity):
        try:
            severity = Severity(str(severity).upper())
        except ValueError:
            return NotificationType.INFO
    return _SEVERITY_TYPES.get(severity, NotificationType.INFO)


def alert_link(alert_id: int | str) -> str:
    return f"/risk/alerts/{alert_id}"


class Notification(BaseModel):
    """
    Client-side projection of an alert (or of a synthetic event).

    ``read`` is the only field that changes after creation, and only the
    notification store changes it.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int | str
    type: NotificationType = NotificationType.INFO
    severity: Severity | None = None
    message: str = ""
    company_name: str | None = Field(default=None, alias="companyName")
    timestamp: datetime
    read: bool = False
    link: str | None = None

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_alert(
        cls,
        alert: Alert,
        notification_type: NotificationType | None = None,
        read: bool | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> "Notification":
        timestamp = alert.created_at
        if timestamp is None:
            timestamp = clock() if clock else datetime.now(timezone.utc)
        return cls(
            id=alert.id,
            type=notification_type or notification_type_for(alert.severity),
            severity=alert.severity,
            message=alert.message,
            company_name=alert.company_name,
            timestamp=timestamp,
            read=alert.is_resolved if read is None else read,
            link=alert_link(alert.id),
        )


class Toast(Notification):
    """A notification currently displayed as a toast."""

    toast_id: str = Field(..., alias="toastId")

    @classmethod
    def for_notification(cls, notification: Notification, toast_id: str) -> "Toast":
        return cls(
            toast_id=toast_id,
            **notification.model_dump(),
        )


class CreateNotificationRequest(BaseModel):
    """Payload for a synthetic notification created through the API."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    type: NotificationType | None = None
    severity: Severity | None = None
    company_name: str | None = Field(default=None, alias="companyName")
    link: str | None = None


class NotificationsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    notifications: list[Notification]
    unread_count: int = Field(..., alias="unreadCount")
    loading: bool = False
    error: str | None = None
