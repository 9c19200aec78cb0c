"""
Shared Module

Purpose
-------
Domain-level foundations for the progression modules:
- Domain exceptions and error handling
- Base service and repository patterns
- Progression constants and formulas

Architecture
------------
- BaseService: Foundation for service classes (logging, config, events)
- BaseRepository: Type-safe database access and dialect-aware upserts
- Domain exceptions: caller errors and rule violations
- Formulas: Pure calculation functions for XP, levels and intervals

Import submodules directly (``from src.modules.shared.formulas import ...``);
this package only re-exports the exception hierarchy.
"""

from .exceptions import (
    NotFoundError,
    ProgressionDomainException,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

__all__ = [
    "ProgressionDomainException",
    "NotFoundError",
    "ValidationError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
]
