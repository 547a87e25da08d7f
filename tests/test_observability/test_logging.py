"""Tests for structured logging setup."""

import json
import logging

import pytest
import structlog

from curator.observability.logging import (
    SERVICE_NAME,
    add_service_context,
    bind_context,
    clear_context,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    clear_context()
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestServiceContext:
    def test_adds_service_and_environment(self):
        event = add_service_context(None, "info", {"event": "Cycle completed"})

        assert event["service"] == SERVICE_NAME
        assert event["environment"] in {"development", "staging", "production"}

    def test_keeps_explicit_values(self):
        event = add_service_context(None, "info", {"event": "x", "service": "other"})

        assert event["service"] == "other"


class TestSetupLogging:
    def test_level_override(self):
        setup_logging(level="warning")

        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_debug_flag_level(self):
        setup_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_json_rendering_carries_bound_context(self, capsys):
        setup_logging(level="INFO", json_logs=True)
        bind_context(content_type="video", cycle=3)

        structlog.get_logger("curator.test").info("Cycle completed", stored=4)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "Cycle completed"
        assert event["content_type"] == "video"
        assert event["cycle"] == 3
        assert event["stored"] == 4
        assert event["service"] == SERVICE_NAME
        assert event["level"] == "info"
