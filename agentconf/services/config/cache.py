"""
Configuration Cache

In-memory snapshot holder and readiness gate shared between the refresh
loop (single writer) and query callers (many readers).
"""

import threading

from agentconf.common.exceptions import ConfigInvalidError, NotReadyError
from agentconf.common.logging_setup import get_service_logger

from .models import EMPTY_SNAPSHOT, ReadinessState, Snapshot

logger = get_service_logger("config.cache")


class CacheStore:
    """
    Holds the current immutable Snapshot.

    Publishing swaps one reference; readers take that reference and keep
    using it, so a reader sees either the old snapshot or the new one in
    full. The lock only covers the swap itself.
    """

    def __init__(self):
        self._snapshot: Snapshot = EMPTY_SNAPSHOT
        self._lock = threading.Lock()

    def read(self) -> Snapshot:
        """Get the current snapshot"""
        with self._lock:
            return self._snapshot

    def publish(self, snapshot: Snapshot) -> None:
        """Replace the current snapshot"""
        with self._lock:
            self._snapshot = snapshot

        logger.debug(
            f"Published snapshot with {len(snapshot)} records",
            extra={"record_count": len(snapshot)},
        )

    @property
    def size(self) -> int:
        """Record count of the current snapshot"""
        return len(self.read())


class ReadinessGate:
    """
    Tri-state readiness consulted on every query.

    NOT_READY -> READY on the first successful publish.
    NOT_READY -> PERMANENTLY_INVALID when upstream access is denied.
    READY is sticky: a later denial is recorded in `credentials_rejected`
    but the stale snapshot keeps being served.
    """

    def __init__(self):
        self._state = ReadinessState.NOT_READY
        self._credentials_rejected = False

    @property
    def state(self) -> ReadinessState:
        return self._state

    @property
    def credentials_rejected(self) -> bool:
        """True once upstream has denied access, whatever the state"""
        return self._credentials_rejected

    def mark_ready(self) -> None:
        if self._state == ReadinessState.NOT_READY:
            self._state = ReadinessState.READY
            logger.info("Agent config cache is ready")

    def mark_invalid(self) -> None:
        self._credentials_rejected = True
        if self._state == ReadinessState.NOT_READY:
            self._state = ReadinessState.PERMANENTLY_INVALID

    def check(self) -> None:
        """
        Raise unless queries can be served.

        Raises:
            ConfigInvalidError: upstream access denied before any snapshot
            NotReadyError: no snapshot published yet
        """
        state = self._state
        if state == ReadinessState.READY:
            return
        if state == ReadinessState.PERMANENTLY_INVALID:
            raise ConfigInvalidError()
        raise NotReadyError()
