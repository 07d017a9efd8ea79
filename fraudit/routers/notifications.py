# fraudit/routers/notifications.py

import logging
from typing import Union

from fastapi import APIRouter, Depends, HTTPException

from fraudit.lib.dependencies import get_notification_session
from fraudit.lib.notification_preferences import NotificationsDisabledError
from fraudit.lib.session_manager import NotificationSession
from fraudit.models.notification import CreateNotificationRequest, NotificationsResponse
from fraudit.models.preferences import NotificationPreferences

router = APIRouter(tags=["Notifications"])


def parse_notification_id(notification_id: str) -> Union[int, str]:
    """Alert notifications use integer ids, synthetic ones use strings."""
    try:
        return int(notification_id)
    except ValueError:
        return notification_id


def ledger_response(session: NotificationSession, message: str):
    store = session.store
    payload = NotificationsResponse(
        notifications=store.notifications,
        unread_count=store.unread_count,
        loading=store.loading,
        error=store.error,
    )
    return {
        "status": "success",
        "data": {
            **payload.model_dump(mode="json", by_alias=True),
            "badge": session.dropdown.unread_badge(),
        },
        "message": message,
    }


@router.get("/notifications")
async def get_notifications(
    session: NotificationSession = Depends(get_notification_session),
):
    return ledger_response(session, "Notifications retrieved successfully")


@router.post("/notifications/refresh")
async def refresh_notifications(
    session: NotificationSession = Depends(get_notification_session),
):
    """Refetch the latest batch, as the dropdown does each time it opens."""
    await session.dropdown.open()
    return ledger_response(session, "Notifications refreshed")


@router.put("/notifications/read-all")
async def mark_all_notifications_read(
    session: NotificationSession = Depends(get_notification_session),
):
    session.dropdown.mark_all_read()
    return ledger_response(session, "All notifications marked as read")


@router.put("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    session: NotificationSession = Depends(get_notification_session),
):
    key = parse_notification_id(notification_id)
    link = session.dropdown.click(key)
    if link is None:
        raise HTTPException(
            status_code=404,
            detail={
                "message": f"Notification {notification_id} not found",
                "data": "notification_not_found",
            },
        )
    response = ledger_response(session, "Notification marked as read")
    response["data"]["link"] = link
    return response


@router.delete("/notifications")
async def clear_notifications(
    session: NotificationSession = Depends(get_notification_session),
):
    session.store.clear()
    return ledger_response(session, "Notifications cleared")


@router.post("/notifications")
async def create_notification(
    request_body: CreateNotificationRequest,
    session: NotificationSession = Depends(get_notification_session),
):
    notification = session.store.add_notification(
        message=request_body.message,
        notification_type=request_body.type,
        severity=request_body.severity,
        company_name=request_body.company_name,
        link=request_body.link,
    )
    response = ledger_response(session, "Notification added")
    response["data"]["created"] = (
        notification.model_dump(mode="json", by_alias=True) if notification else None
    )
    return response


@router.post("/notifications/test")
async def create_test_notification(
    session: NotificationSession = Depends(get_notification_session),
):
    try:
        notification = session.create_demo_notification()
    except NotificationsDisabledError as e:
        logging.info(f"Test notification rejected for {session.user_id}: {e}")
        raise HTTPException(
            status_code=400,
            detail={"message": str(e), "data": "notifications_disabled"},
        )
    response = ledger_response(session, "Test notification created")
    response["data"]["created"] = (
        notification.model_dump(mode="json", by_alias=True) if notification else None
    )
    return response


@router.get("/notifications/preferences")
async def get_preferences(
    session: NotificationSession = Depends(get_notification_session),
):
    return {
        "status": "success",
        "data": session.preferences.model_dump(by_alias=True),
        "message": "Notification preferences retrieved",
    }


@router.put("/notifications/preferences")
async def update_preferences(
    preferences: NotificationPreferences,
    session: NotificationSession = Depends(get_notification_session),
):
    try:
        saved = await session.update_preferences(preferences)
    except Exception as e:
        logging.error(f"Error saving notification preferences: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail={
                "message": "Failed to save notification preferences",
                "data": "preferences_not_saved",
            },
        )
    return {
        "status": "success",
        "data": saved.model_dump(by_alias=True),
        "message": "Your notification preferences have been saved successfully.",
    }
