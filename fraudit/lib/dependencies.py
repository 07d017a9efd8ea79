from fastapi import Depends, HTTPException, Request, WebSocket

from fraudit.lib.session_manager import (
    NotificationSession,
    NotificationSessionManager,
    SessionNotFoundError,
)
from fraudit.lib.websocket_manager import WebSocketManager


def get_http_session_manager(request: Request) -> NotificationSessionManager:
    """Get the NotificationSessionManager from the FastAPI app state."""
    return request.app.state.session_manager


def get_websocket_manager(websocket: WebSocket) -> WebSocketManager:
    return websocket.app.state.websocket_manager


def get_notification_session(
    request: Request,
    session_manager: NotificationSessionManager = Depends(get_http_session_manager),
) -> NotificationSession:
    """Resolve the caller's running notification session.

    Raises:
        HTTPException: 404 when the user has not started a session.
    """
    try:
        return session_manager.get_session(request.state.user_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=404,
            detail={
                "message": "No active notification session",
                "data": "session_not_found",
            },
        )
