"""
Base Repository Pattern

Purpose
-------
Type-safe, generic repository abstraction for database operations following
SQLAlchemy 2.0 async patterns. Repositories encapsulate data access and give
services a consistent interface for reads, inserts, deletes and the
dialect-aware upsert constructs used for atomic counters.

Design Notes
------------
This base repository provides:
- Type-safe query helpers
- Existence/counting utilities
- Dialect-aware ``insert()`` for ``ON CONFLICT`` upserts (PostgreSQL in
  production, SQLite in tests) and a portable ``greatest()``
- Full structured logging

What this class does NOT do:
- Manage transactions (services/DatabaseService handle that)
- Contain business logic

Usage
-----
    from src.database.models import UserAchievement
    from src.modules.shared.base_repository import BaseRepository

    class AchievementRepository(BaseRepository[UserAchievement]):
        async def find_by_user(
            self, session: AsyncSession, user_id: str
        ) -> list[UserAchievement]:
            return await self.find_many_where(
                session,
                UserAchievement.user_id == user_id,
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class UnsupportedDialectError(RuntimeError):
    """Raised when an upsert is requested on a dialect without ON CONFLICT support."""


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def table(self) -> Any:
        return self.model_class.__table__  # type: ignore[attr-defined]

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found": instance is not None,
                "locked": for_update,
            },
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ordering clauses
            limit: Optional maximum number of results

        Returns:
            List of model instances
        """
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "limit": limit,
            },
        )
        return instances

    async def exists(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> bool:
        return await self.count(session, *conditions) > 0

    async def count(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = int(result.scalar_one())

        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "count": count},
        )
        return count

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    async def add(self, session: AsyncSession, instance: T) -> T:
        """Add an instance and flush so generated columns are populated."""
        session.add(instance)
        await session.flush()
        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
        return instance

    async def delete_where(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> int:
        """
        Bulk delete matching rows.

        Returns:
            Number of rows deleted
        """
        result = await session.execute(delete(self.model_class).where(*conditions))
        deleted = int(result.rowcount or 0)
        self.log.debug(
            f"Repository.delete_where: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "deleted_count": deleted},
        )
        return deleted

    # ------------------------------------------------------------------ #
    # Dialect helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def dialect_name(session: AsyncSession) -> str:
        return session.get_bind().dialect.name

    def insert(self, session: AsyncSession) -> Any:
        """
        ``INSERT`` construct supporting ``on_conflict_do_update`` /
        ``on_conflict_do_nothing`` for the session's dialect.

        Raises:
            UnsupportedDialectError: dialect is neither PostgreSQL nor SQLite
        """
        name = self.dialect_name(session)
        if name == "postgresql":
            return postgresql.insert(self.table)
        if name == "sqlite":
            return sqlite.insert(self.table)
        raise UnsupportedDialectError(f"Upsert is not supported on dialect '{name}'")

    def greatest(self, session: AsyncSession, *values: Any) -> Any:
        """``GREATEST(a, b)`` on PostgreSQL, scalar ``MAX(a, b)`` on SQLite."""
        if self.dialect_name(session) == "sqlite":
            return func.max(*values)
        return func.greatest(*values)
