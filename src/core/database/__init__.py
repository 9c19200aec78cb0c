"""
Database infrastructure.

Exports the declarative base, column mixins and the async DatabaseService.
"""

from src.core.database.base import Base, IdMixin, TimestampMixin, utc_now
from src.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
    normalize_database_url,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "utc_now",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
    "normalize_database_url",
]
