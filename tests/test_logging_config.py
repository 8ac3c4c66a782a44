import json
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler

from app.utils.logging_config import (
    ContextFormatter,
    JsonFormatter,
    PerformanceMonitor,
    configure_for_environment,
    get_logger,
)


def make_record(msg="Created user", **extra):
    record = logging.LogRecord("skillboard.app.services.user_store", logging.INFO, __file__, 10, msg, None, None)
    record.__dict__.update(extra)
    return record


class TestContextFormatter:

    def test_appends_extra_fields_request_id_first(self):
        formatter = ContextFormatter("%(levelname)s - %(message)s")

        line = formatter.format(make_record(user_id="u1", skill_id="s1", request_id="r1"))

        assert line == "INFO - Created user | request_id=r1 skill_id=s1 user_id=u1"

    def test_plain_record_unchanged(self):
        formatter = ContextFormatter("%(levelname)s - %(message)s")

        assert formatter.format(make_record()) == "INFO - Created user"


class TestJsonFormatter:

    def test_extra_fields_are_top_level(self):
        record = make_record(user_id="u1", endorsements_removed=2, at=datetime(2024, 1, 1))

        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "Created user"
        assert payload["level"] == "INFO"
        assert payload["user_id"] == "u1"
        assert payload["endorsements_removed"] == 2
        assert payload["at"] == "2024-01-01 00:00:00"


def test_get_logger_namespace():
    assert get_logger("app.services.db").name == "skillboard.app.services.db"


def test_testing_environment_logs_to_console_only(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "testing")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)

    configure_for_environment()

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert root.handlers
    assert not any(isinstance(h, RotatingFileHandler) for h in root.handlers)
    assert all(isinstance(h.formatter, ContextFormatter) for h in root.handlers)


def test_performance_monitor_reports_duration(caplog):
    logger = get_logger("tests.performance")

    with caplog.at_level(logging.DEBUG, logger=logger.name):
        with PerformanceMonitor("search_users", logger, user_id="u1"):
            pass

    record = caplog.records[-1]
    assert record.operation == "search_users"
    assert record.user_id == "u1"
    assert record.duration_ms >= 0
