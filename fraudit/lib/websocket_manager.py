# fraudit/lib/websocket_manager.py

import asyncio
import itertools
import json
import logging
import uuid
from typing import Any, Dict, Tuple

from fastapi import WebSocket
from pydantic import ValidationError

from fraudit.lib.session_manager import NotificationSessionManager, SessionNotFoundError
from fraudit.models.websocket import AuthMessage, DismissToastMessage, MarkReadMessage


class WebSocketManager:
    """Pushes notification events to the dashboard's open sockets.

    Connections are kept per user and per client id in this process. A
    socket that fails on send is dropped.
    """

    def __init__(self, session_manager: NotificationSessionManager):
        self.logger = logging.getLogger(__name__)
        self.session_manager = session_manager
        self.active_connections: Dict[str, Dict[str, WebSocket]] = {}
        self._sequence = itertools.count(1)
        self._lock = asyncio.Lock()
        self.logger.debug("WebSocketManager initialized")

    async def authenticate_user(self, websocket: WebSocket) -> Tuple[bool, str]:
        """Read the auth message and check the user has a running session."""
        try:
            auth_data = await websocket.receive_text()
            auth_message = AuthMessage.model_validate(json.loads(auth_data))
        except (json.JSONDecodeError, ValidationError) as e:
            self.logger.warning(f"Invalid websocket auth message: {e}")
            return False, ""
        except Exception as e:
            self.logger.error(f"Authentication error: {e}")
            return False, ""

        if auth_message.type != "auth":
            return False, ""

        try:
            session = self.session_manager.get_session(auth_message.user_id)
        except SessionNotFoundError:
            return False, ""
        if session.api_client.access_token != auth_message.access_token:
            return False, ""
        return True, auth_message.user_id

    async def connect(self, websocket: WebSocket, user_id: str) -> str:
        client_id = str(uuid.uuid4())
        async with self._lock:
            self.active_connections.setdefault(user_id, {})[client_id] = websocket
        self.logger.info(f"Connected user {user_id} client {client_id}")
        return client_id

    async def disconnect(self, user_id: str, client_id: str = None):
        async with self._lock:
            clients = self.active_connections.get(user_id)
            if not clients:
                return
            if client_id:
                clients.pop(client_id, None)
            else:
                clients.clear()
            if not clients:
                self.active_connections.pop(user_id, None)
        self.logger.info(f"Cleaned up connection for user {user_id} client {client_id}")

    def publisher_for(self, user_id: str):
        async def publish(message: Dict[str, Any]):
            await self.send_message(user_id, message)

        return publish

    async def send_message(self, user_id: str, message: Dict[str, Any]):
        clients = dict(self.active_connections.get(user_id, {}))
        if not clients:
            self.logger.debug(f"No active connections for user {user_id}")
            return
        message = {**message, "sequence": next(self._sequence)}
        for client_id, websocket in clients.items():
            try:
                await websocket.send_json(message)
            except Exception as e:
                self.logger.error(
                    f"Error sending to client {client_id} of user {user_id}: {e}"
                )
                await self.disconnect(user_id, client_id)

    async def handle_incoming_websocket_message(
        self, user_id: str, message_type: str, data: Dict[str, Any], client_id: str
    ):
        self.logger.debug(
            f"Handling message type: {message_type} for user: {user_id} client: {client_id}"
        )
        try:
            handler = getattr(
                self,
                f"handle_{message_type}",
                self.no_incoming_websocket_message_handler_found,
            )
            await handler(user_id, data, client_id)
        except Exception as e:
            self.logger.error(f"Error handling message: {e}")

    async def handle_mark_read(self, user_id: str, data: Dict[str, Any], client_id: str):
        message = MarkReadMessage.model_validate(data)
        session = self.session_manager.get_session(user_id)
        session.store.mark_read(message.notification_id)

    async def handle_mark_all_read(
        self, user_id: str, data: Dict[str, Any], client_id: str
    ):
        session = self.session_manager.get_session(user_id)
        session.store.mark_all_read()

    async def handle_dismiss_toast(
        self, user_id: str, data: Dict[str, Any], client_id: str
    ):
        message = DismissToastMessage.model_validate(data)
        session = self.session_manager.get_session(user_id)
        session.toasts.dismiss(message.toast_id)

    async def no_incoming_websocket_message_handler_found(
        self, user_id: str, data: Dict[str, Any], client_id: str
    ):
        self.logger.debug(f"No message handler found for message type: {data.get('type')}")
        await self.send_message(
            user_id,
            {
                "type": "no_user_message_handler_found",
                "status": "error",
                "message": "We could not process your message",
            },
        )
