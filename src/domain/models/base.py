"""
Base domain model helpers.

Purpose
-------
Foundations shared by the pure domain models: the validation error raised by
self-validating value objects and the range checks they use.

Non-Responsibilities
--------------------
- Persistence (handled by repositories)
- Database schema (handled by SQLAlchemy models)
- Service orchestration (handled by service layer)

Design Notes
------------
Domain models are frozen dataclasses that validate themselves in
``__post_init__`` and return new instances instead of mutating.
"""

from __future__ import annotations

from typing import Optional

from src.modules.shared.exceptions import ValidationError


# ============================================================================
# DOMAIN MODEL VALIDATION
# ============================================================================


class DomainValidationError(ValidationError):
    """
    Raised when a domain value object is constructed with invalid data.

    A ValidationError, so callers handle domain-model and input validation
    failures the same way.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(field or "domain", message)


def validate_non_negative(value: int, field_name: str) -> None:
    """
    Raises
    ------
    DomainValidationError
        If value is negative
    """
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )


def validate_range(value: int, min_val: int, max_val: int, field_name: str) -> None:
    """
    Validate that a value is within an inclusive range.

    Raises
    ------
    DomainValidationError
        If value is outside the range
    """
    if not (min_val <= value <= max_val):
        raise DomainValidationError(
            f"{field_name} must be between {min_val} and {max_val}, got {value}",
            field=field_name,
        )
