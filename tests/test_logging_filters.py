"""Tests for log configuration and sensitive data filtering."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from datafeed.core.app_factory import create_app
from datafeed.core.config import LogSettings, settings
from datafeed.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    configure_logging,
    hash_identifier,
    set_request_id,
)


@pytest.fixture
def log_stream():
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def test_sensitive_filter_redacts_api_keys(log_stream):
    logger, stream = log_stream

    logger.info(
        "auth.failed",
        extra={
            "api_key": "sk-secret-123",
            "x-api-key": "another-secret",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_client_addresses(log_stream):
    """Raw client IPs never reach the log; the hash does."""
    logger, stream = log_stream

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "client_ip": "8.8.8.8",
            "identity_hash": hash_identifier("8.8.8.8"),
            "headers": {"X-Forwarded-For": "1.1.1.1", "user-agent": "pytest"},
        },
    )

    record = json.loads(stream.getvalue())
    assert "8.8.8.8" not in stream.getvalue()
    assert "1.1.1.1" not in stream.getvalue()
    assert record["identity_hash"] == hash_identifier("8.8.8.8")
    assert record["headers"]["user-agent"] == "pytest"


def test_safe_fields_pass_through(log_stream):
    logger, stream = log_stream

    logger.info(
        "data.fetched",
        extra={"total_records": 3, "force_refresh": False, "ttl_s": 3600},
    )

    record = json.loads(stream.getvalue())
    assert record["message"] == "data.fetched"
    assert record["level"] == "info"
    assert record["total_records"] == 3
    assert record["ttl_s"] == 3600
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_from_context_is_attached(log_stream):
    logger, stream = log_stream
    set_request_id("req-123")

    logger.info("cache.cleared", extra={"cleared": True})

    assert json.loads(stream.getvalue())["request_id"] == "req-123"


def test_hash_identifier_is_stable_and_short():
    assert hash_identifier("8.8.8.8") == hash_identifier("8.8.8.8")
    assert hash_identifier("8.8.8.8") != hash_identifier("1.1.1.1")
    assert len(hash_identifier("8.8.8.8")) == 16


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_debug_forces_debug_level(restore_root_logger):
    configure_logging(LogSettings(level="WARNING", format="plain"), debug=True)

    assert restore_root_logger.level == logging.DEBUG


def test_level_from_settings_without_debug(restore_root_logger):
    configure_logging(LogSettings(level="WARNING", format="plain"), debug=False)

    assert restore_root_logger.level == logging.WARNING


def test_app_debug_setting_reaches_root_logger(restore_root_logger, container, monkeypatch):
    monkeypatch.setattr(settings.app, "debug", True)

    create_app(container)

    assert restore_root_logger.level == logging.DEBUG
