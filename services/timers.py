"""
Timer Service

Runs delayed and recurring async callbacks on the event loop. Every scheduled
callback gets a TimerHandle which its owner keeps and cancels.

Execution model:
    - Each handle is an asyncio task that sleeps until the callback is due
    - Callbacks run under a shared semaphore sized by SCHEDULER_WORKERS,
      so at most that many callbacks execute at once across all subscribers
    - A handle cancelled before its callback acquired a worker slot never
      runs the callback
    - A callback already running completes even if its handle is cancelled
    - Callback exceptions are logged; recurring handles keep ticking
"""

import asyncio
from typing import Awaitable, Callable, Optional, Set

from core.config import settings
from core.logging import get_logger

TimerCallback = Callable[[], Awaitable[None]]


class TimerHandle:
    """
    Ownership token for one scheduled callback.

    Attributes:
        name: Label used in logs and task names
        interval: Repeat interval in seconds, None for one-shots
        cancelled: True once cancel() has been called
    """

    def __init__(self, name: str, interval: Optional[float] = None) -> None:
        self.name = name
        self.interval = interval
        self.cancelled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def recurring(self) -> bool:
        return self.interval is not None

    @property
    def done(self) -> bool:
        """True once the handle will never invoke its callback again."""
        return self.cancelled or (self._task is not None and self._task.done())

    def cancel(self) -> None:
        """Cancel the handle. Safe to call more than once."""
        if self.cancelled:
            return
        self.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def __repr__(self) -> str:
        kind = f"every {self.interval:.0f}s" if self.recurring else "once"
        state = "cancelled" if self.cancelled else ("done" if self.done else "pending")
        return f"<TimerHandle({self.name}, {kind}, {state})>"


class TimerService:
    """
    Shared scheduler for all subscriber timers.

    Example:
        >>> timers = TimerService()
        >>> handle = timers.call_every(3600, refresh, first_delay=0, name="refresh")
        >>> handle.cancel()
        >>> await timers.shutdown()
    """

    def __init__(self, workers: Optional[int] = None) -> None:
        self._workers_count = workers or settings.scheduler_workers
        self._workers = asyncio.Semaphore(self._workers_count)
        self._handles: Set[TimerHandle] = set()
        self._inflight: Set[asyncio.Task] = set()
        self._logger = get_logger(__name__)

    # ============================================
    # Scheduling
    # ============================================

    def call_later(self, delay: float, callback: TimerCallback, name: str = "timer") -> TimerHandle:
        """
        Run `callback` once after `delay` seconds.

        Args:
            delay: Seconds to wait (negative values run immediately)
            callback: Zero-argument coroutine function
            name: Label for logs

        Returns:
            TimerHandle: Handle owning the scheduled callback
        """
        handle = TimerHandle(name)
        self._start(handle, callback, max(0.0, delay))
        return handle

    def call_every(
        self,
        interval: float,
        callback: TimerCallback,
        first_delay: float = 0.0,
        name: str = "timer",
    ) -> TimerHandle:
        """
        Run `callback` after `first_delay` seconds, then every `interval` seconds.

        Ticks are scheduled at a fixed rate measured from the first run. A tick
        whose predecessor overran is started as soon as the predecessor ends.
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        handle = TimerHandle(name, interval=interval)
        self._start(handle, callback, max(0.0, first_delay))
        return handle

    @property
    def pending_count(self) -> int:
        """Number of handles that may still invoke their callback."""
        return sum(1 for handle in self._handles if not handle.done)

    # ============================================
    # Lifecycle
    # ============================================

    async def shutdown(self) -> None:
        """Cancel every handle and every running callback."""
        handles = list(self._handles)
        for handle in handles:
            handle.cancel()

        tasks = [h._task for h in handles if h._task is not None] + list(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._handles.clear()
        self._inflight.clear()
        self._logger.info(f"Timer service stopped ({len(handles)} handle(s) cancelled)")

    # ============================================
    # Internals
    # ============================================

    def _start(self, handle: TimerHandle, callback: TimerCallback, delay: float) -> None:
        handle._task = asyncio.create_task(self._run(handle, callback, delay), name=f"timer_{handle.name}")
        self._handles.add(handle)
        handle._task.add_done_callback(lambda _: self._handles.discard(handle))

    async def _run(self, handle: TimerHandle, callback: TimerCallback, delay: float) -> None:
        loop = asyncio.get_running_loop()
        try:
            await asyncio.sleep(delay)
            next_due = loop.time()
            while not handle.cancelled:
                await self._dispatch(handle, callback)
                if not handle.recurring:
                    break
                next_due += handle.interval
                await asyncio.sleep(max(0.0, next_due - loop.time()))
        except asyncio.CancelledError:
            self._logger.debug(f"{handle!r} stopped")

    async def _dispatch(self, handle: TimerHandle, callback: TimerCallback) -> None:
        task = asyncio.create_task(self._invoke(handle, callback), name=f"timer_{handle.name}_run")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        # Cancelling the handle must not interrupt a callback that already started
        await asyncio.shield(task)

    async def _invoke(self, handle: TimerHandle, callback: TimerCallback) -> None:
        async with self._workers:
            if handle.cancelled:
                return
            try:
                await callback()
            except asyncio.CancelledError:
                raise
            except Exception:
                self._logger.exception(f"Timer callback {handle.name} failed")
