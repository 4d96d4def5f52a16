"""
Config Service - Agent Configuration Cache

Responsibilities:
- Refresh the full agent config corpus from Elasticsearch on an interval
- Keep the latest complete snapshot in memory
- Gate lookups on readiness (not ready / ready / permanently invalid)
- Answer point lookups through a pluggable matcher
"""

from .cache import CacheStore, ReadinessGate
from .dispatcher import QueryDispatcher
from .matcher import Matcher, match_exact
from .models import ConfigRecord, Query, ReadinessState, Result, Snapshot
from .refresh import RefreshScheduler
from .service import ConfigService
from .sync import PageFetcher, build_client, is_permanent_status

__all__ = [
    "CacheStore",
    "ReadinessGate",
    "QueryDispatcher",
    "Matcher",
    "match_exact",
    "ConfigRecord",
    "Query",
    "ReadinessState",
    "Result",
    "Snapshot",
    "RefreshScheduler",
    "ConfigService",
    "PageFetcher",
    "build_client",
    "is_permanent_status",
]
