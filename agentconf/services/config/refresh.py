"""
Cache Refresh

Background loop that rebuilds the agent config snapshot from Elasticsearch.
It is the only writer of the CacheStore and the ReadinessGate.
"""

import asyncio
import time
from datetime import datetime, timezone

from agentconf.common.exceptions import RefreshError
from agentconf.common.logging_setup import get_service_logger, log_refresh_cycle
from agentconf.common.scheduler import LoopPhase, ScheduledLoop

from .cache import CacheStore, ReadinessGate
from .models import Snapshot
from .sync import PageFetcher

logger = get_service_logger("config.refresh")


class RefreshScheduler:
    """
    Runs a refresh cycle at startup and then once per interval.

    - Success: publish the new snapshot and mark the gate ready
    - Recoverable failure: log it and wait for the next tick
    - Unrecoverable failure (401/403): mark the gate invalid and stop for good
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        store: CacheStore,
        gate: ReadinessGate,
        interval_s: float,
    ):
        self.fetcher = fetcher
        self.store = store
        self.gate = gate
        self._loop = ScheduledLoop(interval_s, self._refresh_cycle, name="refresh")

        self._cycles = 0
        self._failures = 0
        self._last_error: str | None = None
        self._last_success_at: str | None = None

    @property
    def phase(self) -> LoopPhase:
        return self._loop.phase

    @property
    def last_success_at(self) -> str | None:
        return self._last_success_at

    async def run(self) -> None:
        """
        Refresh until upstream access is permanently denied.

        Returns None when the loop stops itself; raises
        asyncio.CancelledError when the awaiting task is cancelled.
        """
        logger.info(f"Starting cache refresh every {self._loop.interval}s")
        await self._loop.run()

    def start(self) -> asyncio.Task:
        """Run in a background task"""
        return self._loop.start()

    def stop(self) -> None:
        self._loop.stop()

    async def _refresh_cycle(self) -> bool:
        """One refresh; returns False when the loop must stop"""
        self._cycles += 1
        start = time.monotonic()

        try:
            records = await self.fetcher.fetch(size_hint=self.store.size)
        except RefreshError as e:
            self._failures += 1
            self._last_error = str(e)
            log_refresh_cycle(logger, False, 0, time.monotonic() - start, error=str(e))

            if not e.recoverable:
                self.gate.mark_invalid()
                logger.warning(
                    "Stopping refresh cache background job: elasticsearch config is invalid",
                    extra={"status_code": e.status_code},
                )
                return False
            return True

        self.store.publish(Snapshot(records=tuple(records)))
        self.gate.mark_ready()
        self._last_success_at = datetime.now(timezone.utc).isoformat()
        log_refresh_cycle(logger, True, len(records), time.monotonic() - start)
        return True

    def get_stats(self) -> dict:
        """Get refresh statistics for observability."""
        return {
            "cycles": self._cycles,
            "failures": self._failures,
            "last_error": self._last_error,
            "last_success_at": self._last_success_at,
            "loop": self._loop.get_stats(),
        }
