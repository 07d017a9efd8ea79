# fraudit/routers/websocket.py

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from fraudit.lib.dependencies import get_websocket_manager
from fraudit.lib.websocket_manager import WebSocketManager

router = APIRouter(tags=["Websocket"])

POLICY_VIOLATION = 1008


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    websocket_manager: WebSocketManager = Depends(get_websocket_manager),
):
    """Push channel for one dashboard tab.

    The first frame must be the auth message; after that the client may send
    ``mark_read``, ``mark_all_read`` and ``dismiss_toast``.
    """
    await websocket.accept()

    is_authenticated, user_id = await websocket_manager.authenticate_user(websocket)
    if not is_authenticated:
        await websocket.close(code=POLICY_VIOLATION, reason="Authentication failed")
        return

    client_id = await websocket_manager.connect(websocket, user_id)
    try:
        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict):
                continue
            await websocket_manager.handle_incoming_websocket_message(
                user_id, data.get("type"), data, client_id
            )
    except WebSocketDisconnect:
        logging.info(f"WebSocket closed by user {user_id} client {client_id}")
    except (RuntimeError, ValueError) as e:
        logging.error(f"WebSocket error for user {user_id} client {client_id}: {e}")
    finally:
        await websocket_manager.disconnect(user_id, client_id)
