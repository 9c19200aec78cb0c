"""
Unit Tests for the Logging Subsystem
====================================

Purpose
-------
Test context propagation into log records and the JSON line format.

Test Coverage
-------------
- LogContext binds user/mission/operation for the enclosed block
- Explicit ``extra`` fields win over bound context
- JSONFormatter output shape
- set_log_context / clear_log_context

Testing Strategy
----------------
- Unit tests on hand-built LogRecords; no handlers are installed
"""

import json
import logging

import pytest

from src.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    clear_log_context,
    get_log_context,
    set_log_context,
)


def _record(msg: str = "Decision recorded", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="src.modules.decision.service",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestLogContext:
    """Test context binding."""

    def test_context_applied_inside_block(self):
        # Arrange
        record = _record()

        # Act
        with LogContext(user_id="user-1", mission_id="m-1", operation="record_decision"):
            ContextFilter().filter(record)

        # Assert
        assert record.user_id == "user-1"
        assert record.mission_id == "m-1"
        assert record.operation == "record_decision"
        assert record.correlation_id != "N/A"

    def test_context_reset_after_block(self):
        # Arrange
        with LogContext(user_id="user-1"):
            pass
        record = _record()

        # Act
        ContextFilter().filter(record)

        # Assert
        assert record.user_id == "N/A"
        assert record.correlation_id == "N/A"

    async def test_async_context_manager(self):
        # Arrange
        record = _record()

        # Act
        async with LogContext(user_id="user-2", mission_id="m-2"):
            ContextFilter().filter(record)

        # Assert
        assert (record.user_id, record.mission_id) == ("user-2", "m-2")

    def test_explicit_extra_wins(self):
        # Arrange
        record = _record(user_id="explicit")

        # Act
        with LogContext(user_id="bound"):
            ContextFilter().filter(record)

        # Assert
        assert record.user_id == "explicit"

    def test_set_and_clear(self):
        # Act
        set_log_context(user_id="user-3", operation="stop_mission")
        bound = get_log_context()
        clear_log_context()

        # Assert
        assert bound["user_id"] == "user-3"
        assert bound["operation"] == "stop_mission"
        assert get_log_context() == {}


@pytest.mark.unit
class TestJSONFormatter:
    """Test the JSON line format."""

    def test_json_line_fields(self):
        # Arrange
        record = _record(xp_awarded=23, completion_percentage=10)
        with LogContext(user_id="user-1", mission_id="m-1"):
            ContextFilter().filter(record)

        # Act
        line = json.loads(JSONFormatter().format(record))

        # Assert
        assert line["message"] == "Decision recorded"
        assert line["level"] == "INFO"
        assert line["user_id"] == "user-1"
        assert line["mission_id"] == "m-1"
        assert line["extra"] == {"xp_awarded": 23, "completion_percentage": 10}

    def test_unset_context_omitted(self):
        # Arrange
        record = _record()
        ContextFilter().filter(record)

        # Act
        line = json.loads(JSONFormatter().format(record))

        # Assert
        assert "user_id" not in line
        assert "extra" not in line
