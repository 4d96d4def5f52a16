"""
Query Dispatcher

Serves point lookups from the published snapshot. Never does network I/O.
"""

from .cache import CacheStore, ReadinessGate
from .matcher import Matcher
from .models import Query, Result


class QueryDispatcher:
    """Checks readiness, then hands one consistent snapshot to the matcher"""

    def __init__(self, store: CacheStore, gate: ReadinessGate, matcher: Matcher):
        self.store = store
        self.gate = gate
        self.matcher = matcher

    def fetch(self, query: Query) -> Result:
        """
        Find the agent config matching a query.

        Raises:
            NotReadyError: no refresh has succeeded yet
            ConfigInvalidError: upstream denied access before any refresh succeeded
        """
        self.gate.check()
        snapshot = self.store.read()
        return self.matcher(query, snapshot.records)
