# fraudit/routers/session.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from fraudit.lib.dependencies import get_http_session_manager
from fraudit.lib.session_manager import NotificationSessionManager

router = APIRouter(tags=["Session"])


@router.post("/session")
async def start_session(
    request: Request,
    session_manager: NotificationSessionManager = Depends(get_http_session_manager),
):
    """Start notification delivery for the logged-in user."""
    user_id = request.state.user_id
    try:
        session = await session_manager.start_session(
            user_id, request.state.access_token
        )
    except Exception as e:
        logging.error(f"Unexpected error starting session for {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")

    return {
        "status": "success",
        "data": {
            "userId": user_id,
            "polling": session.delivery.is_polling,
            "unreadCount": session.store.unread_count,
        },
        "message": "Notification session started",
    }


@router.delete("/session")
async def end_session(
    request: Request,
    session_manager: NotificationSessionManager = Depends(get_http_session_manager),
):
    """Stop notification delivery on logout."""
    ended = await session_manager.end_session(request.state.user_id)
    return {
        "status": "success",
        "data": {"ended": ended},
        "message": "Notification session ended" if ended else "No active session",
    }
