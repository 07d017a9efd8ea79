# fraudit/lib/alert_resolution.py

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from fraudit.lib.alert_cache import AlertCache
from fraudit.lib.notification_service import await_isolated, dispatch_isolated
from fraudit.models.alert import Alert

NOTES_REQUIRED_MESSAGE = "Resolution notes are required."
GENERIC_FAILURE_MESSAGE = "An error occurred while resolving the alert."
SUCCESS_MESSAGE = "Alert resolved successfully."
ALREADY_RESOLVED_MESSAGE = "Alert has already been resolved."

ResolveAlert = Callable[[int, str], Awaitable[Alert]]
ResolvedHook = Callable[[Alert], Union[None, Awaitable[Any]]]


@dataclass
class ResolutionResult:
    success: bool
    alert_id: int
    alert: Optional[Alert] = None
    message: Optional[str] = None
    error: Optional[str] = None
    already_resolved: bool = False
    status_code: Optional[int] = None


def error_message(error: Exception) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message.strip():
        return message
    return GENERIC_FAILURE_MESSAGE


class AlertResolutionWorkflow:
    """Moves an alert from open to resolved.

    Empty notes are rejected before any request. A successful resolution
    invalidates the cached alert list and the alert's cached detail, then
    runs the ``on_resolved`` hooks. A failure leaves everything as it was
    so the caller can retry.
    """

    def __init__(self, resolve_alert: ResolveAlert, alert_cache: Optional[AlertCache] = None):
        self.resolve_alert = resolve_alert
        self.alert_cache = alert_cache
        self.resolved_ids = set()
        self._hooks: Dict[int, ResolvedHook] = {}
        self._hook_ids = itertools.count()
        self.logger = logging.getLogger(__name__)

    def on_resolved(self, hook: ResolvedHook) -> Callable[[], None]:
        hook_id = next(self._hook_ids)
        self._hooks[hook_id] = hook

        def remove_hook():
            self._hooks.pop(hook_id, None)

        return remove_hook

    def overlay(self, alert: Alert) -> Alert:
        """Report alerts resolved in this session as resolved, even if a
        lagging backend response still says otherwise."""
        if alert.id in self.resolved_ids and not alert.is_resolved:
            return alert.model_copy(update={"is_resolved": True})
        return alert

    async def submit(
        self, alert_id: int, notes: Optional[str], current: Optional[Alert] = None
    ) -> ResolutionResult:
        already_resolved = alert_id in self.resolved_ids or (
            current is not None and current.is_resolved
        )
        if already_resolved:
            return ResolutionResult(
                success=False,
                alert_id=alert_id,
                alert=current,
                error=ALREADY_RESOLVED_MESSAGE,
                already_resolved=True,
            )

        if notes is None or not notes.strip():
            return ResolutionResult(
                success=False, alert_id=alert_id, error=NOTES_REQUIRED_MESSAGE
            )

        try:
            alert = await self.resolve_alert(alert_id, notes)
        except Exception as e:
            self.logger.error(f"Error resolving alert {alert_id}: {e}")
            return ResolutionResult(
                success=False,
                alert_id=alert_id,
                error=error_message(e),
                status_code=getattr(e, "status_code", None),
            )

        if not alert.is_resolved:
            alert = alert.model_copy(update={"is_resolved": True})
        self.resolved_ids.add(alert_id)

        if self.alert_cache is not None:
            await self.alert_cache.invalidate_alert(alert_id)
            await self.alert_cache.invalidate_list()

        self.logger.info(f"Alert {alert_id} resolved")
        for hook_id, hook in list(self._hooks.items()):
            if hook_id not in self._hooks:
                continue
            result = dispatch_isolated(self.logger, "Resolution hook", hook, alert)
            await await_isolated(self.logger, "Resolution hook", result)

        return ResolutionResult(
            success=True, alert_id=alert_id, alert=alert, message=SUCCESS_MESSAGE
        )
