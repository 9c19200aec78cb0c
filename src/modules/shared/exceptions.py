"""
Domain exceptions for the progression engine.

Purpose
-------
Define the structured exception hierarchy for progression rules: malformed
caller input and unknown missions or achievements. The application layer
translates these into player-facing messages; infrastructure failures live in
`src.core.exceptions`.

Design Notes
------------
- All domain exceptions inherit from `ProgressionDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Classifier output is never a reason to raise: a malformed decision is
  normalized, not rejected. These exceptions cover caller mistakes only.
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  understand both domain and infrastructure exceptions.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from src.core.exceptions import ErrorSeverity, ProgressionInfrastructureException


class ProgressionDomainException(Exception):
    """
    Base exception for all progression domain errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise ProgressionDomainException(
        ...     "Mission cannot be resumed",
        ...     {"mission_id": "670a8cdc-8961-438b-b67f-1b259767d8c5"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = dict(details or {})
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class NotFoundError(ProgressionDomainException):
    """
    Raised when a mission, achievement or progress row does not exist.

    Args:
        resource_type: Type of resource (e.g., "Mission", "Achievement")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": identifier,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(ProgressionDomainException):
    """
    Raised when caller input fails validation.

    Examples: empty user id, missing idempotency key, a completion percentage
    outside [0, 100], an unknown field in a partial progress update.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """True if the exception marks a retryable failure."""
    if isinstance(exc, (ProgressionDomainException, ProgressionInfrastructureException)):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity of a domain or infrastructure exception; ERROR for anything else."""
    if isinstance(exc, (ProgressionDomainException, ProgressionInfrastructureException)):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    severity = get_error_severity(exc)
    return severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
