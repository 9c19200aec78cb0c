"""
Input Validation Layer

Purpose
-------
Centralized validation for caller-supplied identifiers and numbers entering
the progression services. Enforces type, bounds and format rules so that
malformed input is rejected with a clear `ValidationError` before any
database work starts.

Responsibilities
----------------
- Validate and convert inputs to the correct types
- Enforce bounds on numeric inputs (percentages, elapsed seconds, orders)
- Validate user ids, mission ids and idempotency keys

Non-Responsibilities
--------------------
- Normalizing classifier output (never raises; see the decision model)
- Business rules (service layer concern)
- Persistence (database layer concern)

Observability
-------------
Every validation failure is logged at debug level with the field name, the
raw value (repr) and the reason.
"""

from __future__ import annotations

import re
from typing import Any, NoReturn, Optional

from src.core.logging.logger import get_logger
from src.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

MAX_IDENTIFIER_LENGTH = 128
MAX_IDEMPOTENCY_KEY_LENGTH = 255
_IDENTIFIER_CHARS = r"A-Za-z0-9_\-:.@"


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log and raise a ValidationError."""
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless input validation.

    All methods return the validated (and converted) value or raise
    ValidationError; none of them fail silently.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds checking.

        Booleans are rejected even though ``bool`` subclasses ``int``.

        Args:
            value: Input value to validate (string, int, etc.)
            field_name: Name of field for error messages/logging
            min_value: Minimum allowed value (inclusive)
            max_value: Maximum allowed value (inclusive)

        Returns:
            Validated integer value

        Raises:
            ValidationError: If validation fails
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number")
        if isinstance(value, float) and not value.is_integer():
            _raise_validation_error(
                field_name, value, f"Must be a whole number, got '{value}'"
            )

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(
                field_name,
                value,
                f"Must be a whole number, got '{value}'",
            )

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Must be at least {min_value}, got {int_value}",
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Cannot exceed {max_value}, got {int_value}",
            )

        return int_value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(
            value=value, field_name=field_name, min_value=1, max_value=max_value
        )

    @staticmethod
    def validate_non_negative_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(
            value=value, field_name=field_name, min_value=0, max_value=max_value
        )

    @staticmethod
    def validate_percentage(value: Any, field_name: str = "completion_percentage") -> int:
        """Validate a completion percentage in [0, 100]."""
        return InputValidator.validate_integer(
            value=value, field_name=field_name, min_value=0, max_value=100
        )

    # =========================================================================
    # IDENTIFIER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_user_id(value: Any, field_name: str = "user_id") -> str:
        """
        Validate an opaque user identifier.

        User ids come from the auth provider; only emptiness, length and a
        conservative character set are checked.
        """
        return InputValidator.validate_string(
            value,
            field_name=field_name,
            min_length=1,
            max_length=MAX_IDENTIFIER_LENGTH,
            allowed_chars=_IDENTIFIER_CHARS,
        )

    @staticmethod
    def validate_mission_id(value: Any, field_name: str = "mission_id") -> str:
        return InputValidator.validate_string(
            value,
            field_name=field_name,
            min_length=1,
            max_length=MAX_IDENTIFIER_LENGTH,
            allowed_chars=_IDENTIFIER_CHARS,
        )

    @staticmethod
    def validate_idempotency_key(value: Any, field_name: str = "idempotency_key") -> str:
        """
        Validate the per-submission idempotency key.

        A decision submission without a key cannot be deduplicated on retry,
        so a missing key is a caller error.
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            _raise_validation_error(
                field_name, value, "An idempotency key is required for every submission"
            )
        return InputValidator.validate_string(
            value,
            field_name=field_name,
            min_length=1,
            max_length=MAX_IDEMPOTENCY_KEY_LENGTH,
        )

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        allowed_chars: Optional[str] = None,
    ) -> str:
        """
        Validate string input with optional length and character constraints.

        Args:
            value: String value to validate
            field_name: Name of field for error messages
            min_length: Minimum string length
            max_length: Maximum string length
            allowed_chars: Regex character class for allowed characters

        Returns:
            Validated, stripped string

        Raises:
            ValidationError: If validation fails
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        if not isinstance(value, str):
            _raise_validation_error(
                field_name, value, f"Must be a string, got {type(value).__name__}"
            )

        str_value = value.strip()

        if min_length is not None and len(str_value) < min_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Must be at least {min_length} characters",
            )

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Cannot exceed {max_length} characters",
            )

        if allowed_chars is not None and not re.fullmatch(f"[{allowed_chars}]+", str_value):
            _raise_validation_error(field_name, str_value, "Contains invalid characters")

        return str_value

