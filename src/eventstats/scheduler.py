"""Deferred one-shot task scheduling.

The invalidation coordinator only needs "run this once, N seconds from now"
and "is that job still waiting?". ``DeferredScheduler`` captures exactly
that, so tests can drive regeneration with a manual clock while production
code uses ``AsyncioScheduler`` on the running event loop.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from .logging_config import get_logger

logger = get_logger(__name__)

JobCallback = Callable[[], Awaitable[object]]


class DeferredScheduler(ABC):
    """One-shot named jobs that fire after a delay."""

    @abstractmethod
    def schedule_once(self, job_name: str, delay_seconds: float, callback: JobCallback) -> None:
        """Run ``callback`` once after ``delay_seconds``."""

    @abstractmethod
    def is_scheduled(self, job_name: str) -> bool:
        """Whether ``job_name`` is waiting to fire."""

    @abstractmethod
    def cancel(self, job_name: str) -> bool:
        """Cancel a waiting job. Returns False if nothing was waiting."""

    @abstractmethod
    def next_run_at(self, job_name: str) -> float | None:
        """Loop/clock time at which ``job_name`` fires, if scheduled."""


class AsyncioScheduler(DeferredScheduler):
    """Scheduler backed by ``loop.call_later``.

    Callbacks run as tasks on the loop; their exceptions are logged, never
    propagated into the loop's exception handler.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._running: set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule_once(self, job_name: str, delay_seconds: float, callback: JobCallback) -> None:
        if job_name in self._timers:
            self._timers.pop(job_name).cancel()

        def _fire() -> None:
            self._timers.pop(job_name, None)
            task = self.loop.create_task(self._run(job_name, callback))
            self._running.add(task)
            task.add_done_callback(self._running.discard)

        self._timers[job_name] = self.loop.call_later(delay_seconds, _fire)
        logger.debug("Scheduled %s in %.1fs", job_name, delay_seconds)

    def is_scheduled(self, job_name: str) -> bool:
        return job_name in self._timers

    def cancel(self, job_name: str) -> bool:
        timer = self._timers.pop(job_name, None)
        if timer is None:
            return False
        timer.cancel()
        logger.debug("Cancelled %s", job_name)
        return True

    def next_run_at(self, job_name: str) -> float | None:
        timer = self._timers.get(job_name)
        return timer.when() if timer else None

    async def drain(self) -> None:
        """Wait for callbacks that have already fired to finish."""
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def shutdown(self) -> None:
        """Cancel every waiting job."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    @staticmethod
    async def _run(job_name: str, callback: JobCallback) -> None:
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduled job %s failed", job_name)
