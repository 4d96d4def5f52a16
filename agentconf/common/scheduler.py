"""
Fixed-Interval Scheduler

Provides ScheduledLoop, which fires a callback once immediately and then
on fixed interval boundaries measured from the first run.

Unlike a plain `while True: await asyncio.sleep(interval)` loop, this
scheduler:
- Keeps a fixed cadence regardless of callback duration
- Never overlaps callbacks (the next tick is evaluated after the previous
  callback returns)
- Skips missed intervals instead of queueing them
- Stops when the callback asks it to

Usage:
    async def my_callback() -> bool:
        # Do work...
        return True  # keep going

    loop = ScheduledLoop(30.0, my_callback, name="refresh")
    await loop.run()
"""

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable

from .logging_setup import get_service_logger

logger = get_service_logger("scheduler")


class LoopPhase(str, Enum):
    """Lifecycle of a scheduled loop"""
    IDLE = "idle"
    RUNNING = "running"
    WAITING = "waiting"
    STOPPED = "stopped"


class ScheduledLoop:
    """
    Interval scheduler that runs its callback immediately, then every interval.

    The callback returns True to keep the loop going and False to stop it.
    Exceptions raised by the callback are logged and treated as "keep going".
    Cancellation of the task awaiting `run()` propagates out of `run()`.

    Attributes:
        interval: The interval in seconds between executions
        callback: Async function to call each interval
        phase: Current LoopPhase
    """

    def __init__(
        self,
        interval_seconds: float,
        callback: Callable[[], Awaitable[bool]],
        name: str = "unnamed",
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.interval = interval_seconds
        self.callback = callback
        self.name = name
        self.phase = LoopPhase.IDLE

        self._next_run: float = 0
        self._task: asyncio.Task | None = None

        # Observability metrics
        self._skipped_count: int = 0
        self._execution_count: int = 0
        self._last_execution_time: float = 0
        self._last_drift_ms: float = 0

    async def run(self) -> None:
        """
        Run the loop in the current task until the callback stops it.

        Raises:
            asyncio.CancelledError: when the awaiting task is cancelled
        """
        if self.phase != LoopPhase.IDLE:
            raise RuntimeError(f"Scheduler '{self.name}' already started")

        try:
            # Observe a cancellation that arrived before the first run
            await asyncio.sleep(0)

            self._next_run = time.monotonic()

            while True:
                sleep_duration = self._next_run - time.monotonic()
                if sleep_duration > 0:
                    self.phase = LoopPhase.WAITING
                    await asyncio.sleep(sleep_duration)

                self._last_drift_ms = max(0.0, time.monotonic() - self._next_run) * 1000

                self.phase = LoopPhase.RUNNING
                if not await self._execute():
                    logger.info(f"Scheduler '{self.name}' stopped by callback")
                    return

                # Skip missed intervals to catch up (don't queue up missed executions)
                now = time.monotonic()
                skipped = 0
                while self._next_run <= now:
                    self._next_run += self.interval
                    skipped += 1

                # First skip is expected (the one we just executed)
                if skipped > 1:
                    self._skipped_count += skipped - 1
                    logger.warning(
                        f"Scheduler '{self.name}' skipped {skipped - 1} intervals "
                        f"(execution took {self._last_execution_time:.3f}s)"
                    )
        finally:
            self.phase = LoopPhase.STOPPED

    async def _execute(self) -> bool:
        """Run the callback once, returning whether to continue"""
        start = time.monotonic()
        try:
            keep_going = await self.callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Scheduled callback '{self.name}' error: {e}", exc_info=True)
            keep_going = True
        finally:
            self._last_execution_time = time.monotonic() - start
            self._execution_count += 1
        return bool(keep_going)

    def start(self) -> asyncio.Task:
        """Start the loop in a background task."""
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"scheduler:{self.name}")
        return self._task

    def stop(self) -> None:
        """Stop the background task, if any."""
        if self._task:
            self._task.cancel()
            self._task = None

    @property
    def drift_ms(self) -> float:
        """Most recent lateness of a run in milliseconds."""
        return self._last_drift_ms

    @property
    def skipped_count(self) -> int:
        """Number of intervals skipped to catch up."""
        return self._skipped_count

    @property
    def execution_count(self) -> int:
        """Total number of callback executions."""
        return self._execution_count

    @property
    def last_execution_time(self) -> float:
        """Duration of last callback execution in seconds."""
        return self._last_execution_time

    def get_stats(self) -> dict:
        """Get scheduler statistics for observability."""
        return {
            "name": self.name,
            "phase": self.phase.value,
            "interval_s": self.interval,
            "execution_count": self._execution_count,
            "drift_last_ms": round(self._last_drift_ms, 1),
            "skipped_count": self._skipped_count,
            "last_execution_s": round(self._last_execution_time, 3),
        }
