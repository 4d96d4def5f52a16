"""
Unit tests for agentconf/services/config/cache.py and models.py
"""

import threading

import pytest

from agentconf.common.exceptions import ConfigInvalidError, NotReadyError
from agentconf.services.config.cache import CacheStore, ReadinessGate
from agentconf.services.config.models import ConfigRecord, ReadinessState, Snapshot

from conftest import make_source


@pytest.mark.unit
class TestConfigRecord:
    """Test record construction and immutability."""

    def test_from_source(self):
        record = ConfigRecord.from_source(make_source("svc", "prod", etag="e1", log_level="debug"))

        assert record == ConfigRecord(
            service_name="svc",
            service_environment="prod",
            agent_name="java",
            etag="e1",
            settings={"log_level": "debug"},
        )

    def test_from_source_with_missing_fields(self):
        record = ConfigRecord.from_source({"service": {"name": "svc"}})

        assert record.service_environment == ""
        assert record.agent_name == ""
        assert record.etag == ""
        assert dict(record.settings) == {}

    def test_settings_are_read_only_copies(self):
        settings = {"a": "1"}
        record = ConfigRecord(service_name="svc", settings=settings)

        settings["a"] = "2"
        assert record.settings["a"] == "1"
        with pytest.raises(TypeError):
            record.settings["a"] = "3"

    def test_record_is_frozen(self):
        record = ConfigRecord(service_name="svc")
        with pytest.raises(AttributeError):
            record.service_name = "other"


@pytest.mark.unit
class TestCacheStore:
    """Test snapshot publish/read."""

    def test_empty_before_publish(self):
        store = CacheStore()
        assert store.read().records == ()
        assert store.size == 0

    def test_publish_replaces_snapshot(self):
        store = CacheStore()
        first = Snapshot(records=(ConfigRecord(service_name="a"),))
        second = Snapshot(records=(ConfigRecord(service_name="b"), ConfigRecord(service_name="c")))

        store.publish(first)
        assert store.read() is first

        store.publish(second)
        assert store.read() is second
        assert store.size == 2

    def test_concurrent_readers_see_whole_snapshots(self):
        """Readers racing a writer only ever see one complete snapshot."""
        store = CacheStore()
        snapshots = [
            Snapshot(records=tuple(ConfigRecord(service_name=f"gen{gen}-{i}") for i in range(50)))
            for gen in range(20)
        ]
        store.publish(snapshots[0])
        errors: list[str] = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                records = store.read().records
                generations = {r.service_name.split("-")[0] for r in records}
                if len(records) != 50 or len(generations) != 1:
                    errors.append(f"partial snapshot: {len(records)} records, {generations}")

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for snapshot in snapshots[1:]:
            store.publish(snapshot)
        stop.set()
        for thread in threads:
            thread.join()

        assert errors == []
        assert store.read() is snapshots[-1]


@pytest.mark.unit
class TestReadinessGate:
    """Test readiness transitions and the query-time decision table."""

    def test_not_ready_initially(self):
        gate = ReadinessGate()
        assert gate.state == ReadinessState.NOT_READY
        with pytest.raises(NotReadyError):
            gate.check()

    def test_invalid_before_ready(self):
        gate = ReadinessGate()
        gate.mark_invalid()

        assert gate.state == ReadinessState.PERMANENTLY_INVALID
        with pytest.raises(ConfigInvalidError):
            gate.check()

    def test_ready(self):
        gate = ReadinessGate()
        gate.mark_ready()

        assert gate.state == ReadinessState.READY
        gate.check()

    def test_ready_survives_invalid(self):
        gate = ReadinessGate()
        gate.mark_ready()
        gate.mark_invalid()

        assert gate.state == ReadinessState.READY
        assert gate.credentials_rejected
        gate.check()

    def test_invalid_is_terminal(self):
        gate = ReadinessGate()
        gate.mark_invalid()
        gate.mark_ready()

        assert gate.state == ReadinessState.PERMANENTLY_INVALID

    def test_error_recoverability(self):
        assert NotReadyError().recoverable is True
        assert ConfigInvalidError().recoverable is False
