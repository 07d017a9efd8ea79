# fraudit/lib/session_manager.py

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from fraudit.clients.risk_api_client import RiskApiClient
from fraudit.lib.alert_cache import AlertCache
from fraudit.lib.alert_resolution import AlertResolutionWorkflow, ResolutionResult
from fraudit.lib.notification_dropdown import NotificationDropdown
from fraudit.lib.notification_preferences import (
    create_demo_notification,
    load_preferences,
    save_preferences,
    toast_filter,
)
from fraudit.lib.notification_service import NotificationService
from fraudit.lib.notification_store import NotificationStore, StoreChange
from fraudit.lib.scheduler import Scheduler
from fraudit.lib.seen_set_store import SeenSetStore
from fraudit.lib.storage import KeyValueStorage, RedisStorage, user_namespace
from fraudit.lib.toast_queue import ToastQueue
from fraudit.models.alert import Alert, AlertPage
from fraudit.models.notification import Notification, NotificationType, Toast, alert_link
from fraudit.models.preferences import NotificationPreferences

Publisher = Callable[[Dict[str, Any]], Awaitable[None]]


class SessionNotFoundError(Exception):
    def __init__(self, user_id: str):
        super().__init__(f"No notification session for user {user_id}")
        self.user_id = user_id


class NotificationSession:
    """Notification pipeline for one authenticated user.

    Wires the seen-set, delivery service, store, toast queue, dropdown,
    alert cache and resolution workflow together. Everything here lives
    exactly as long as the user's session.
    """

    def __init__(
        self,
        user_id: str,
        api_client: RiskApiClient,
        storage: KeyValueStorage,
        scheduler: Scheduler,
        settings: Optional[Dict[str, Any]] = None,
        publisher: Optional[Publisher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        settings = settings or {}
        self.user_id = user_id
        self.api_client = api_client
        self.storage = storage
        self.scheduler = scheduler
        self.publisher = publisher
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.preferences = NotificationPreferences()

        self.seen_set = SeenSetStore(
            storage, capacity=int(settings.get("seen_set_capacity", 100))
        )
        self.delivery = NotificationService(
            api_client.fetch_recent_alerts,
            self.seen_set,
            scheduler,
            poll_interval=float(settings.get("poll_interval", 30)),
            poll_limit=int(settings.get("poll_limit", 5)),
            clock=self.clock,
        )
        self.store = NotificationStore(
            api_client.fetch_recent_alerts,
            initial_limit=int(settings.get("initial_limit", 10)),
            clock=self.clock,
        )
        self.toasts = ToastQueue(
            self.store,
            scheduler,
            max_visible=int(settings.get("toast_max_visible", 3)),
            duration=float(settings.get("toast_duration", 5)),
        )
        self.dropdown = NotificationDropdown(self.store)
        self.alert_cache = AlertCache(
            storage,
            api_client.get_alerts,
            api_client.get_alert,
            ttl=int(settings.get("alert_cache_ttl", 300)),
        )
        self.resolution = AlertResolutionWorkflow(api_client.resolve_alert, self.alert_cache)

        self._detach: List[Callable[[], None]] = []
        self._publish_tasks: Set[asyncio.Task] = set()
        self.started = False
        self.logger = logging.getLogger(__name__)

    @property
    def is_authenticated(self) -> bool:
        return self.started

    async def start(self) -> None:
        if self.started:
            return
        await self.seen_set.load()
        self.preferences = await load_preferences(self.storage)

        self._detach.append(self.delivery.add_listener(self._on_delivered))
        self._detach.append(self.resolution.on_resolved(self._on_alert_resolved))
        self._detach.append(self.store.subscribe(self._on_store_change))
        self._detach.append(self.toasts.add_listener(self._on_toast_event))

        self.started = True
        await self.store.fetch_initial()
        self._apply_preferences()
        self.logger.info(f"Notification session started for user {self.user_id}")

    async def stop(self) -> None:
        if not self.started:
            return
        await self.close()

    async def close(self) -> None:
        """Release everything the session holds, whether or not it started."""
        self.started = False
        self.delivery.initialize(False)
        self.toasts.unmount()
        for detach in self._detach:
            detach()
        self._detach = []
        self.store.close()
        if self._publish_tasks:
            await asyncio.gather(*list(self._publish_tasks), return_exceptions=True)
        await self.api_client.close_client()
        self.logger.info(f"Notification session stopped for user {self.user_id}")

    def _apply_preferences(self):
        self.toasts.toast_filter = toast_filter(self.preferences)
        if self.preferences.show_toasts:
            self.toasts.mount()
            self.toasts.sync()
        else:
            self.toasts.unmount()
        self.delivery.initialize(self.started and self.preferences.enabled)

    async def update_preferences(
        self, preferences: NotificationPreferences
    ) -> NotificationPreferences:
        await save_preferences(self.storage, preferences)
        self.preferences = preferences
        if self.started:
            self._apply_preferences()
        return preferences

    def create_demo_notification(self) -> Optional[Notification]:
        return create_demo_notification(self.store, self.preferences)

    async def get_alerts(self, params: Optional[Dict[str, Any]] = None) -> AlertPage:
        page = await self.alert_cache.get_alerts(params)
        return page.model_copy(
            update={"content": [self.resolution.overlay(a) for a in page.content]}
        )

    async def get_alert(self, alert_id: int) -> Alert:
        return self.resolution.overlay(await self.alert_cache.get_alert(alert_id))

    async def resolve_alert(self, alert_id: int, notes: Optional[str]) -> ResolutionResult:
        return await self.resolution.submit(alert_id, notes)

    def _on_delivered(self, notifications: List[Notification]):
        self.store.ingest(notifications)
        self._publish(
            {
                "type": "notifications",
                "data": [n.model_dump(mode="json", by_alias=True) for n in notifications],
            }
        )

    async def _on_alert_resolved(self, alert: Alert):
        self.seen_set.mark_seen([alert.id])
        self.store.mark_resolved(alert.id)
        self.store.add_notification(
            message=f"Alert #{alert.id} has been resolved.",
            notification_type=NotificationType.SUCCESS,
            company_name=alert.company_name,
            link=alert_link(alert.id),
        )
        await self.seen_set.persist()

    def _on_store_change(self, change: StoreChange):
        self._publish(
            {
                "type": "notifications_updated",
                "data": {
                    "action": change.action,
                    "unreadCount": change.unread_count,
                    "total": change.total,
                    "notificationIds": change.notification_ids,
                },
            }
        )

    def _on_toast_event(self, event: str, toast: Toast):
        self._publish(
            {"type": f"toast_{event}", "data": toast.model_dump(mode="json", by_alias=True)}
        )

    def _publish(self, message: Dict[str, Any]):
        if self.publisher is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._send(message))
        self._publish_tasks.add(task)
        task.add_done_callback(self._publish_tasks.discard)

    async def _send(self, message: Dict[str, Any]):
        try:
            await self.publisher(message)
        except Exception as e:
            self.logger.error(f"Error publishing {message.get('type')} to user {self.user_id}: {e}")


class NotificationSessionManager:
    """Creates and tears down notification sessions on login and logout."""

    def __init__(
        self,
        redis_client,
        scheduler: Scheduler,
        config: Optional[Dict[str, Any]] = None,
        client_factory: Optional[Callable[[str], RiskApiClient]] = None,
        storage_factory: Optional[Callable[[str], KeyValueStorage]] = None,
        publisher_factory: Optional[Callable[[str], Publisher]] = None,
    ):
        config = config or {}
        self.redis_client = redis_client
        self.scheduler = scheduler
        self.settings = config.get("notifications", {}) or {}
        risk_api = config.get("risk_api", {}) or {}
        self.client_factory = client_factory or (
            lambda token: RiskApiClient(
                risk_api.get("base_url", "http://localhost:5000/api"),
                access_token=token,
                timeout=float(risk_api.get("timeout", 30)),
            )
        )
        self.storage_factory = storage_factory or (
            lambda user_id: RedisStorage(self.redis_client, user_namespace(user_id))
        )
        self.publisher_factory = publisher_factory
        self._sessions: Dict[str, NotificationSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.logger = logging.getLogger(__name__)
        self.logger.info("NotificationSessionManager initialized")

    @asynccontextmanager
    async def _get_user_lock(self, user_id: str):
        # one lock per user for the life of the manager; waiters must share it
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        lock = self._locks[user_id]
        async with lock:
            yield

    async def start_session(self, user_id: str, access_token: str) -> NotificationSession:
        async with self._get_user_lock(user_id):
            session = self._sessions.get(user_id)
            if session is not None:
                await session.api_client.set_access_token(access_token)
                self.logger.debug(f"Session for user {user_id} already running")
                return session

            session = NotificationSession(
                user_id,
                self.client_factory(access_token),
                self.storage_factory(user_id),
                self.scheduler,
                settings=self.settings,
                publisher=self.publisher_factory(user_id) if self.publisher_factory else None,
            )
            try:
                await session.start()
            except Exception as e:
                self.logger.error(f"Error starting notification session for {user_id}: {e}")
                await session.close()
                raise
            self._sessions[user_id] = session
            return session

    async def end_session(self, user_id: str) -> bool:
        async with self._get_user_lock(user_id):
            session = self._sessions.pop(user_id, None)
            if session is None:
                return False
            await session.stop()
            return True

    def get_session(self, user_id: str) -> NotificationSession:
        session = self._sessions.get(user_id)
        if session is None:
            raise SessionNotFoundError(user_id)
        return session

    def has_session(self, user_id: str) -> bool:
        return user_id in self._sessions

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    async def close_all(self):
        errors = []
        for user_id in list(self._sessions):
            try:
                await self.end_session(user_id)
            except Exception as e:
                errors.append(f"{user_id}: {e}")
        if errors:
            self.logger.error(f"Errors while closing sessions: {'; '.join(errors)}")
