# fraudit/lib/scheduler.py

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Set, Union

ScheduledCallback = Callable[[], Union[None, Awaitable[Any]]]


class ScheduledCall(ABC):
    """Handle for a callback registered with a :class:`Scheduler`."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. Safe to call more than once."""

    @property
    @abstractmethod
    def cancelled(self) -> bool: ...


class Scheduler(ABC):
    """Timer abstraction used for polling and toast auto-dismiss.

    Callbacks may be plain functions or coroutine functions.
    """

    @abstractmethod
    def call_later(self, delay: float, callback: ScheduledCallback) -> ScheduledCall: ...


class _AsyncioScheduledCall(ScheduledCall):
    def __init__(self):
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running event loop.

    Coroutine callbacks are spawned as tasks. Cancelling a scheduled call
    only prevents a callback that has not fired yet; a task that is already
    running is left to finish. ``aclose`` waits for those tasks.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._tasks: Set[asyncio.Task] = set()
        self.logger = logging.getLogger(__name__)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: ScheduledCallback) -> ScheduledCall:
        call = _AsyncioScheduledCall()
        call._handle = self._get_loop().call_later(delay, self._fire, call, callback)
        return call

    def _fire(self, call: _AsyncioScheduledCall, callback: ScheduledCallback):
        if call.cancelled:
            return
        try:
            result = callback()
        except Exception as e:
            self.logger.error(f"Scheduled callback failed: {e}", exc_info=True)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error(f"Scheduled task failed: {exc}")

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def aclose(self):
        """Wait for callbacks that are already running."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
