# fraudit/models/alert.py

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


class Alert(BaseModel):
    """
    A fraud-risk alert raised by the backend risk engine.

    Alerts are server-owned. The only legal client-side transition is
    open -> resolved, performed through the resolution workflow.

    Attributes:
        id (int): Alert identifier (``alertId`` on the wire).
        company_id (int | None): Owning company identifier.
        company_name (str | None): Owning company display name.
        severity (Severity | None): Risk severity, ``None`` when the backend
            sends a value outside the known levels.
        alert_type (str | None): Backend tag such as ``M_SCORE_HIGH``.
        message (str): Human readable description.
        created_at (datetime | None): Creation time.
        is_resolved (bool): Whether the alert has been resolved.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(validation_alias=AliasChoices("alertId", "id"), serialization_alias="alertId")
    company_id: int | None = Field(default=None, alias="companyId")
    company_name: str | None = Field(default=None, alias="companyName")
    severity: Severity | None = None
    alert_type: str | None = Field(default=None, alias="alertType")
    message: str = ""
    created_at: datetime | None = Field(default=None, alias="createdAt")
    is_resolved: bool = Field(default=False, alias="isResolved")
    resolved_by: str | None = Field(default=None, alias="resolvedBy")
    resolved_at: datetime | None = Field(default=None, alias="resolvedAt")
    resolution_notes: str | None = Field(default=None, alias="resolutionNotes")
    assessment_id: int | None = Field(default=None, alias="assessmentId")

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, value):
        if value is None or isinstance(value, Severity):
            return value
        try:
            return Severity(str(value).upper())
        except ValueError:
            return None

    @field_validator("is_resolved", mode="before")
    @classmethod
    def default_unresolved(cls, value):
        return bool(value) if value is not None else False


class ResolveAlertRequest(BaseModel):
    resolution_notes: str = Field(..., alias="resolutionNotes")

    model_config = ConfigDict(populate_by_name=True)


class AlertPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: list[Alert] = Field(default_factory=list)
    page: int = 0
    size: int = 10
    total_elements: int = Field(default=0, alias="totalElements")
    total_pages: int = Field(default=0, alias="totalPages")
    first: bool = True
    last: bool = True
