# fraudit/models/websocket.py

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BaseWebSocketMessage(BaseModel):
    type: str


class AuthMessage(BaseWebSocketMessage):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    access_token: str = Field(..., alias="accessToken")


class MarkReadMessage(BaseWebSocketMessage):
    model_config = ConfigDict(populate_by_name=True)

    notification_id: int | str = Field(..., alias="notificationId")

    @field_validator("notification_id")
    @classmethod
    def alert_ids_are_integers(cls, value):
        # alert notifications are keyed by int, synthetic ones by str
        if isinstance(value, str) and value.isdigit():
            return int(value)
        return value


class DismissToastMessage(BaseWebSocketMessage):
    model_config = ConfigDict(populate_by_name=True)

    toast_id: str = Field(..., alias="toastId")
