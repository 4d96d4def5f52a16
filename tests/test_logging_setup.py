"""
Unit tests for agentconf/common/logging_setup.py
"""

import json
import logging

import pytest

from agentconf.common.logging_setup import (
    JsonFormatter,
    get_service_logger,
    log_refresh_cycle,
)


@pytest.mark.unit
class TestJsonFormatter:
    """Test structured log output."""

    def test_extra_fields_are_included(self):
        record = logging.LogRecord(
            "agentconf.test", logging.INFO, __file__, 1, "hello %s", ("world",), None
        )
        record.service = "config"
        record.record_count = 4

        data = json.loads(JsonFormatter().format(record))

        assert data["message"] == "hello world"
        assert data["service"] == "config"
        assert data["level"] == "INFO"
        assert data["record_count"] == 4


@pytest.mark.unit
class TestServiceLogger:
    """Test logger adapter and refresh cycle helper."""

    def test_service_name_attached(self, caplog, caplog_bridge):
        logger = get_service_logger("unit")
        logger.logger.addHandler(caplog_bridge)

        with caplog.at_level(logging.INFO, logger="agentconf.unit"):
            logger.info("started")

        assert caplog.records[-1].service == "unit"

    def test_log_refresh_cycle_failure(self, caplog, caplog_bridge):
        logger = get_service_logger("unit.refresh")
        logger.logger.addHandler(caplog_bridge)

        with caplog.at_level(logging.DEBUG, logger="agentconf.unit.refresh"):
            log_refresh_cycle(logger, True, 3, 0.01)
            log_refresh_cycle(logger, False, 0, 0.02, error="boom")

        success, failure = caplog.records[-2:]
        assert success.levelno == logging.DEBUG
        assert success.record_count == 3
        assert failure.levelno == logging.ERROR
        assert "boom" in failure.getMessage()

    def test_child_logger_writes_once(self, capsys, monkeypatch):
        """A record from a nested service logger is written by its own handler only."""
        monkeypatch.setenv("AGENTCONF_LOG_FORMAT", "json")
        monkeypatch.delenv("AGENTCONF_LOG_LEVEL", raising=False)
        get_service_logger("stdout")
        child = get_service_logger("stdout.sync")

        child.warning("Failed to clear scroll: boom")

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["message"] == "Failed to clear scroll: boom"
