# fraudit/models/preferences.py

from pydantic import BaseModel, ConfigDict, Field

from fraudit.models.alert import Severity


class SeverityLevels(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    very_high: bool = Field(default=True, alias="veryHigh")
    high: bool = True
    medium: bool = True
    low: bool = True

    def allows(self, severity: Severity | None) -> bool:
        if severity is None:
            return True
        return {
            Severity.VERY_HIGH: self.very_high,
            Severity.HIGH: self.high,
            Severity.MEDIUM: self.medium,
            Severity.LOW: self.low,
        }[severity]


class NotificationPreferences(BaseModel):
    """
    Per-user notification settings.

    Attributes:
        enabled (bool): Whether background polling runs at all.
        show_toasts (bool): Whether new notifications pop up as toasts.
        high_priority_only (bool): Only toast HIGH and VERY_HIGH alerts.
        severity_levels (SeverityLevels): Severities eligible for a toast.
    """

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = True
    show_toasts: bool = Field(default=True, alias="showToasts")
    high_priority_only: bool = Field(default=False, alias="highPriorityOnly")
    severity_levels: SeverityLevels = Field(
        default_factory=SeverityLevels, alias="severityLevels"
    )
