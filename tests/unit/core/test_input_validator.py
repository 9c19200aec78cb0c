"""
Unit Tests for InputValidator
=============================

Purpose
-------
Test caller-input validation at the service boundary.

Test Coverage
-------------
- Integer validation (bounds, booleans, fractional floats)
- Percentage range
- User, mission and idempotency key identifiers

Testing Strategy
----------------
- Unit tests (fast, no database)
- Parametrized valid/invalid cases
"""

import pytest

from src.core.database.service import normalize_database_url
from src.core.validation.input_validator import InputValidator
from src.modules.shared.exceptions import ValidationError


@pytest.mark.unit
class TestIntegerValidation:
    """Test integer validators."""

    @pytest.mark.parametrize("value,expected", [(5, 5), ("12", 12), (3.0, 3), (0, 0)])
    def test_accepts_whole_numbers(self, value, expected):
        # Assert
        assert InputValidator.validate_non_negative_integer(value, "n") == expected

    @pytest.mark.parametrize("value", [None, True, 2.5, "abc", -1])
    def test_rejects_invalid(self, value):
        # Act & Assert
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_non_negative_integer(value, "elapsed_seconds")

        assert exc_info.value.field == "elapsed_seconds"

    def test_positive_rejects_zero(self):
        # Act & Assert
        with pytest.raises(ValidationError):
            InputValidator.validate_positive_integer(0, "limit")

    @pytest.mark.parametrize("value,valid", [(0, True), (100, True), (101, False), (-1, False)])
    def test_percentage_range(self, value, valid):
        # Act & Assert
        if valid:
            assert InputValidator.validate_percentage(value) == value
        else:
            with pytest.raises(ValidationError):
                InputValidator.validate_percentage(value)


@pytest.mark.unit
class TestIdentifierValidation:
    """Test identifier validators."""

    def test_user_id_is_stripped(self):
        # Assert
        assert InputValidator.validate_user_id("  auth0_abc  ") == "auth0_abc"

    @pytest.mark.parametrize("value", [None, "", "   ", 42, "has space", "x" * 129])
    def test_rejects_bad_user_id(self, value):
        # Act & Assert
        with pytest.raises(ValidationError):
            InputValidator.validate_user_id(value)

    def test_mission_uuid_is_accepted(self):
        # Arrange
        mission_id = "670a8cdc-8961-438b-b67f-1b259767d8c5"

        # Assert
        assert InputValidator.validate_mission_id(mission_id) == mission_id

    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_idempotency_key_is_required(self, value):
        # Act & Assert
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_idempotency_key(value)

        assert "required" in exc_info.value.validation_message

    def test_idempotency_key_allows_free_text(self):
        # Assert
        assert InputValidator.validate_idempotency_key("msg 42 / turn 7") == "msg 42 / turn 7"


@pytest.mark.unit
class TestDatabaseUrl:
    """Test normalize_database_url."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("sqlite:///./game.db", "sqlite+aiosqlite:///./game.db"),
            ("postgres://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
            ("postgresql://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
            ("postgresql+asyncpg://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
        ],
    )
    def test_async_driver(self, url, expected):
        # Assert
        assert normalize_database_url(url) == expected
