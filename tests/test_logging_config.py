"""Tests for logging configuration and formatters."""

import json
import logging
import sys

import pytest

from tender_alerts.logging import ComponentLoggerAdapter, get_logger
from tender_alerts.logging.config import (
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from tender_alerts.logging.context import clear_log_context, log_context


@pytest.fixture(autouse=True)
def clean_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(message="Test message", **extra):
    return logging.getLogger("test").makeRecord(
        "tender_alerts.test", logging.INFO, "test.py", 1, message, (), None, extra=extra
    )


def test_json_formatter_fields():
    record = make_record(event="alerts.run.completed", emails_sent=3, config_ids=["cfg-1"])

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["level"] == "INFO"
    assert log_obj["message"] == "Test message"
    assert log_obj["logger"] == "tender_alerts.test"
    assert log_obj["timestamp"].endswith("Z")
    assert log_obj["event"] == "alerts.run.completed"
    assert log_obj["emails_sent"] == 3
    assert log_obj["config_ids"] == ["cfg-1"]


def test_json_formatter_stringifies_unknown_types():
    record = make_record(payload=object())
    log_obj = json.loads(JSONFormatter().format(record))
    assert log_obj["payload"].startswith("<object object")


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.getLogger("test").makeRecord(
            "test", logging.ERROR, "test.py", 1, "failed", (), sys.exc_info()
        )

    log_obj = json.loads(JSONFormatter().format(record))
    assert "RuntimeError: boom" in log_obj["exc_info"]


def test_key_value_formatter_quotes_and_skips():
    formatter = KeyValueFormatter("%(levelname)s %(message)s")
    record = make_record(
        event="scheduler.job.skipped",
        reason="previous run",
        active=True,
        last_error=None,
        service="tender-alerts",
    )

    output = formatter.format(record)

    assert output.startswith("INFO Test message ")
    assert "event=scheduler.job.skipped" in output
    assert 'reason="previous run"' in output
    assert "active=true" in output
    assert "last_error=null" in output
    assert "service=" not in output


def test_contextual_filter_adds_context_without_overriding_extra():
    log_filter = ContextualFilter(environment="test")
    record = make_record(owner_id="explicit")

    with log_context(run_id="run-1", owner_id="ambient"):
        assert log_filter.filter(record) is True

    assert record.service == "tender-alerts"
    assert record.environment == "test"
    assert record.run_id == "run-1"
    assert record.owner_id == "explicit"


def test_component_logger_adapter_merges_extra(caplog):
    caplog.set_level(logging.INFO)
    logger = get_logger("tender_alerts.test.adapter", component="matching")

    assert isinstance(logger, ComponentLoggerAdapter)
    logger.info("matched", extra={"event": "matching.batch.completed"})

    record = caplog.records[-1]
    assert record.component == "matching"
    assert record.event == "matching.batch.completed"


def test_get_logger_without_component_is_plain():
    assert isinstance(get_logger("tender_alerts.test.plain"), logging.Logger)


def test_configure_logging_installs_single_handler(restore_root_logger):
    configure_logging(level="DEBUG", format_type="json", environment="test")

    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JSONFormatter)
    assert logging.getLogger("apscheduler").level == logging.WARNING


def test_configure_logging_rejects_bad_values(restore_root_logger):
    with pytest.raises(ValueError, match="log level"):
        configure_logging(level="LOUD")
    with pytest.raises(ValueError, match="log format"):
        configure_logging(format_type="xml")
