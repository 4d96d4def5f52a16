"""
Agent Config Data Model

Immutable records and the snapshot that carries them from the refresh
loop to query callers.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class ReadinessState(str, Enum):
    """Whether point queries can be served from the cache"""
    NOT_READY = "not_ready"
    READY = "ready"
    PERMANENTLY_INVALID = "permanently_invalid"


def _frozen_settings(settings: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(settings or {}))


@dataclass(frozen=True)
class ConfigRecord:
    """One agent configuration document"""
    service_name: str
    service_environment: str = ""
    agent_name: str = ""
    etag: str = ""
    settings: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # Copy so a caller's dict can't mutate a published record
        object.__setattr__(self, "settings", _frozen_settings(self.settings))

    @classmethod
    def from_source(cls, source: dict[str, Any]) -> "ConfigRecord":
        """Build a record from an upstream `_source` document"""
        service = source.get("service") or {}
        return cls(
            service_name=service.get("name") or "",
            service_environment=service.get("environment") or "",
            agent_name=source.get("agent_name") or "",
            etag=source.get("etag") or "",
            settings={str(k): str(v) for k, v in (source.get("settings") or {}).items()},
        )


@dataclass(frozen=True)
class Snapshot:
    """Every known record, as gathered by one refresh cycle"""
    records: tuple[ConfigRecord, ...] = ()
    published_at: float = field(default_factory=time.monotonic)

    def __len__(self) -> int:
        return len(self.records)


EMPTY_SNAPSHOT = Snapshot(records=(), published_at=0.0)


@dataclass(frozen=True)
class Query:
    """Point lookup issued by an agent"""
    service_name: str
    service_environment: str = ""
    etag: str = ""


@dataclass(frozen=True)
class Result:
    """Matcher output handed back to the caller unchanged"""
    settings: Mapping[str, str] = field(default_factory=dict)
    etag: str = ""
    agent_name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "settings", _frozen_settings(self.settings))

    @classmethod
    def empty(cls) -> "Result":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "settings": dict(self.settings),
            "etag": self.etag,
            "agent_name": self.agent_name,
        }
