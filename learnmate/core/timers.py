"""Cancellable one-shot and repeating timers on the asyncio event loop.

The playback and assessment engines never sleep on their own: every delay
(re-entry retries, countdowns, player polling) goes through a `Timers`
object so that lesson switches and teardown can cancel pending callbacks,
and tests can substitute a manually advanced clock.

Callbacks may be plain functions or coroutine functions. Coroutines are
scheduled as tasks that are tracked until they finish.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import structlog


logger = structlog.get_logger(__name__)

TimerCallback = Callable[[], Awaitable[Any] | Any]


class TimerHandle(Protocol):
    """Handle returned by `Timers`; cancelling is idempotent."""

    def cancel(self) -> None: ...

    @property
    def cancelled(self) -> bool: ...


class Timers(Protocol):
    """Scheduling interface used by the engines."""

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle: ...

    def call_every(self, interval: float, callback: TimerCallback) -> TimerHandle: ...


class _LaterHandle:
    def __init__(self, handle: asyncio.TimerHandle) -> None:
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class _EveryHandle:
    def __init__(self) -> None:
        self.task: asyncio.Task[None] | None = None
        self.stopped = False

    def cancel(self) -> None:
        self.stopped = True
        # A callback cancelling its own timer lets the current tick finish
        if self.task is not None and self.task is not asyncio.current_task():
            self.task.cancel()

    @property
    def cancelled(self) -> bool:
        return self.stopped


class AsyncioTimers:
    """`Timers` backed by the running event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """Run `callback` once after `delay` seconds."""
        return _LaterHandle(self.loop.call_later(delay, self._invoke, callback))

    def call_every(self, interval: float, callback: TimerCallback) -> TimerHandle:
        """Run `callback` every `interval` seconds until cancelled."""
        handle = _EveryHandle()
        handle.task = self.loop.create_task(self._repeat(interval, callback, handle))
        self._track(handle.task)
        return handle

    async def aclose(self) -> None:
        """Cancel and await every task still owned by these timers."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _invoke(self, callback: TimerCallback) -> None:
        try:
            result = callback()
        except Exception:
            logger.exception("timer_callback_failed")
            return
        if inspect.isawaitable(result):
            self._track(asyncio.ensure_future(result, loop=self.loop))

    async def _repeat(
        self, interval: float, callback: TimerCallback, handle: _EveryHandle
    ) -> None:
        while not handle.stopped:
            await asyncio.sleep(interval)
            if handle.stopped:
                return
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                # Keep ticking; one failed tick must not stop a countdown
                logger.exception("timer_callback_failed")

    def _track(self, task: asyncio.Future[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "timer_task_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
