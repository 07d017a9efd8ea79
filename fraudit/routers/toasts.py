# fraudit/routers/toasts.py

from fastapi import APIRouter, Depends, HTTPException

from fraudit.lib.dependencies import get_notification_session
from fraudit.lib.session_manager import NotificationSession

router = APIRouter(tags=["Toasts"])


@router.get("/toasts")
async def get_toasts(session: NotificationSession = Depends(get_notification_session)):
    return {
        "status": "success",
        "data": {
            "toasts": [
                toast.model_dump(mode="json", by_alias=True)
                for toast in session.toasts.visible()
            ],
        },
        "message": "Visible toasts retrieved",
    }


@router.delete("/toasts/{toast_id}")
async def dismiss_toast(
    toast_id: str,
    session: NotificationSession = Depends(get_notification_session),
):
    if not session.toasts.dismiss(toast_id):
        raise HTTPException(
            status_code=404,
            detail={"message": f"Toast {toast_id} not found", "data": "toast_not_found"},
        )
    return {
        "status": "success",
        "data": {
            "toasts": [
                toast.model_dump(mode="json", by_alias=True)
                for toast in session.toasts.visible()
            ],
            "unreadCount": session.store.unread_count,
        },
        "message": "Toast dismissed",
    }
