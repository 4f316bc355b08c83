"""
Unit tests for the logging subsystem: context propagation and formatters.
"""

import json
import logging
import sys

import pytest

from chorequest.core.logging.logger import (
    ColoredFormatter,
    ContextFilter,
    JSONFormatter,
    LogContext,
    clear_log_context,
    get_log_context,
    get_logging_health,
    set_log_context,
)


def make_record(name="chorequest.modules.recurring.expiration_service", **extra):
    record = logging.LogRecord(name, logging.INFO, __file__, 42, "expired %s", ("2",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_log_context()
    yield
    clear_log_context()


class TestLogContext:
    def test_context_is_scoped_to_block(self):
        with LogContext(job="expire", component="recurring_runner"):
            context = get_log_context()
            assert context["job"] == "expire"
            assert context["component"] == "recurring_runner"
            assert len(context["correlation_id"]) == 8

        assert get_log_context() == {}

    async def test_async_context_nests_and_restores(self):
        async with LogContext(job="generate", correlation_id="outer"):
            async with LogContext(job="generate", operation="generate", correlation_id="inner"):
                assert get_log_context()["correlation_id"] == "inner"
            assert get_log_context()["correlation_id"] == "outer"

    def test_set_log_context_merges(self):
        set_log_context(job="expire")
        set_log_context(family_id="fam-1", attempt=2)

        assert get_log_context() == {"job": "expire", "family_id": "fam-1", "attempt": 2}


class TestContextFilter:
    def test_fields_come_from_context(self):
        record = make_record()

        with LogContext(job="expire", family_id="fam-1", correlation_id="abc12345"):
            ContextFilter().filter(record)

        assert record.job == "expire"
        assert record.family_id == "fam-1"
        assert record.correlation_id == "abc12345"

    def test_component_defaults_to_logger_name_tail(self):
        record = make_record()

        ContextFilter().filter(record)

        assert record.component == "recurring.expiration_service"
        assert record.job == "N/A"


class TestFormatters:
    def test_json_formatter_merges_extra_and_context(self):
        record = make_record(instance_count=2)
        with LogContext(job="expire", operation="expire", correlation_id="abc12345"):
            ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "expired 2"
        assert data["level"] == "INFO"
        assert data["job"] == "expire"
        assert data["correlation_id"] == "abc12345"
        assert "family_id" not in data
        assert data["extra"] == {"instance_count": 2}

    def test_json_formatter_includes_exception(self):
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            record = logging.LogRecord(
                "chorequest", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        data = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: disk full" in data["exception"]

    def test_colored_formatter_restores_level_name(self):
        record = make_record()

        output = ColoredFormatter(fmt="%(levelname)s %(message)s").format(record)

        assert "\033[94m" in output
        assert record.levelname == "INFO"


def test_logging_is_initialized_on_import():
    health = get_logging_health()

    assert health.initialized is True
    assert health.queue_max_size > 0
