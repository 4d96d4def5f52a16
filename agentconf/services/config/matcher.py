"""
Config Matching

A matcher picks the Result for a Query out of a snapshot's records.
It must be deterministic and free of side effects.
"""

from typing import Protocol, Sequence

from .models import ConfigRecord, Query, Result


class Matcher(Protocol):
    def __call__(self, query: Query, records: Sequence[ConfigRecord]) -> Result: ...


def match_exact(query: Query, records: Sequence[ConfigRecord]) -> Result:
    """First record whose service name and environment both equal the query's"""
    for record in records:
        if (
            record.service_name == query.service_name
            and record.service_environment == query.service_environment
        ):
            return Result(
                settings=record.settings,
                etag=record.etag,
                agent_name=record.agent_name,
            )
    return Result.empty()
