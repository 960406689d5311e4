from __future__ import annotations

import logging
from datetime import UTC, datetime

import pytest

from custodian_portal.adapters.environment import csv_env, env_flag, float_env, int_env, str_env
from custodian_portal.adapters.observability import quiet_library_loggers
from custodian_portal.core.validation import parse_timestamp, sanitize_text


def test_env_readers_fall_back_and_clamp(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CUSTODIAN_TEST_INT", "5000")
    monkeypatch.setenv("CUSTODIAN_TEST_FLOAT", "abc")
    monkeypatch.setenv("CUSTODIAN_TEST_FLAG", " Yes ")
    monkeypatch.setenv("CUSTODIAN_TEST_CSV", "a@example.com, ,b@example.com")
    monkeypatch.setenv("CUSTODIAN_TEST_STR", "   ")

    assert int_env("CUSTODIAN_TEST_INT", 30, minimum=1, maximum=3650) == 3650
    assert float_env("CUSTODIAN_TEST_FLOAT", 10.0, minimum=1.0, maximum=60.0) == 10.0
    assert env_flag("CUSTODIAN_TEST_FLAG") is True
    assert env_flag("CUSTODIAN_TEST_MISSING") is False
    assert csv_env("CUSTODIAN_TEST_CSV") == ["a@example.com", "b@example.com"]
    assert str_env("CUSTODIAN_TEST_STR") is None


def test_sanitize_text_strips_script_blocks() -> None:
    assert sanitize_text("  hello <SCRIPT src=x>bad()</script> world ") == "hello  world"
    assert sanitize_text("<script>x</script>") == ""


def test_parse_timestamp_normalizes_to_utc() -> None:
    assert parse_timestamp("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=UTC)
    assert parse_timestamp("2024-01-01") == datetime(2024, 1, 1, tzinfo=UTC)
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_library_loggers_are_quieted(monkeypatch: pytest.MonkeyPatch) -> None:
    httpx_logger = logging.getLogger("httpx")
    access_logger = logging.getLogger("uvicorn.access")
    previous = (httpx_logger.level, access_logger.level)
    monkeypatch.setenv("CUSTODIAN_ACCESS_LOG_LEVEL", "info")
    try:
        quiet_library_loggers()
        assert httpx_logger.level == logging.WARNING
        assert access_logger.level == logging.INFO

        monkeypatch.setenv("CUSTODIAN_ACCESS_LOG_LEVEL", "chatty")
        quiet_library_loggers()
        assert access_logger.level == logging.WARNING
    finally:
        httpx_logger.setLevel(previous[0])
        access_logger.setLevel(previous[1])
