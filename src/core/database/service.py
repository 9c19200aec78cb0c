"""
Database Service - Core Infrastructure Layer

Purpose
-------
Async database engine and session management for the progression engine.
Provides atomic transactions, dialect detection for upsert statements and a
lightweight health check.

Responsibilities
----------------
- Own one AsyncEngine and session factory per service instance
- Provide async context managers for read sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Translate driver-level failures into `PersistenceUnavailableError`
- Configure statement timeouts for PostgreSQL connections
- Create the schema for development and tests

Non-Responsibilities
--------------------
- Domain logic or business rules
- Event emission
- Database migrations

Architecture Notes
------------------
**Transaction Model**:
- `get_transaction()` is the primary interface for all state mutations
- Automatic commit on success, rollback on any exception
- Never manually call `session.commit()` inside service code

**Instances, not singletons**:
Each `DatabaseService` is constructed with its own URL and injected into the
services that need it. Tests build one per test against a throwaway SQLite
file; production builds one against PostgreSQL.

**Driver selection**:
Plain URLs are rewritten to their async drivers:
- ``sqlite:///path`` -> ``sqlite+aiosqlite:///path``
- ``postgresql://...`` -> ``postgresql+asyncpg://...``

**Connection Pooling**:
- QueuePool arguments for PostgreSQL outside of tests
- StaticPool for in-memory SQLite (one shared connection)
- NullPool for file SQLite and testing environments

Usage Example
-------------
>>> db = DatabaseService("sqlite:///./choicecraft.db")
>>> await db.initialize()
>>> await db.create_all()
>>>
>>> async with db.get_transaction() as session:
>>>     session.add(record)
>>>     # Automatic commit on exit

Error Handling
--------------
**DatabaseInitializationError** - URL missing or engine creation failed.

**DatabaseNotInitializedError** - Session requested before initialize().

**PersistenceUnavailableError** - OperationalError or non-integrity DBAPIError
raised inside a session; the transaction has been rolled back.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool, QueuePool, StaticPool

from src.core.config.config import Config
from src.core.database.base import Base
from src.core.exceptions import PersistenceUnavailableError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# URL handling
# ============================================================================


def normalize_database_url(url: str) -> str:
    """
    Rewrite a plain database URL to use its async driver.

    Example:
        >>> normalize_database_url("sqlite:///./game.db")
        'sqlite+aiosqlite:///./game.db'
        >>> normalize_database_url("postgresql://u:p@host/db")
        'postgresql+asyncpg://u:p@host/db'
    """
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of the engine configuration for one service instance."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and ":memory:" in self.url

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Async engine and session management for one database.

    Public API
    ----------
    **Lifecycle**:
    - initialize() -> Create engine and session factory
    - shutdown() -> Dispose engine
    - create_all() / drop_all() -> Schema management for dev and tests

    **Session Management**:
    - get_session() -> Read access, no automatic commit
    - get_transaction() -> Atomic write transaction (preferred)

    **Utilities**:
    - health_check() -> Fast reachability check
    - dialect_name -> "postgresql" or "sqlite", used to pick upsert syntax
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        echo: Optional[bool] = None,
        statement_timeout_ms: Optional[int] = None,
    ) -> None:
        self._raw_url = url if url is not None else Config.DATABASE_URL
        self._echo = echo
        self._statement_timeout_ms = statement_timeout_ms
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._config_snapshot: Optional[_DatabaseConfigSnapshot] = None
        self._init_lock = asyncio.Lock()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    def _build_config_snapshot(self) -> _DatabaseConfigSnapshot:
        if not self._raw_url or not isinstance(self._raw_url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        url = normalize_database_url(self._raw_url)

        pool_class: Type[Pool]
        if url.startswith("sqlite") and ":memory:" in url:
            pool_class = StaticPool
        elif url.startswith("sqlite") or Config.is_testing():
            pool_class = NullPool
        else:
            pool_class = QueuePool

        snapshot = _DatabaseConfigSnapshot(
            url=url,
            echo=self._echo if self._echo is not None else Config.DATABASE_ECHO,
            pool_class=pool_class,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            pool_timeout=Config.DATABASE_POOL_TIMEOUT,
            statement_timeout_ms=(
                self._statement_timeout_ms
                if self._statement_timeout_ms is not None
                else Config.DATABASE_STATEMENT_TIMEOUT_MS
            ),
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "pool_class": pool_class.__name__,
                "statement_timeout_ms": snapshot.statement_timeout_ms,
            },
        )
        return snapshot

    async def initialize(self) -> None:
        """
        Create the engine and session factory.

        Idempotent: a second call returns immediately.

        Raises:
            DatabaseInitializationError: URL invalid or engine creation failed
        """
        async with self._init_lock:
            if self._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            try:
                config = self._build_config_snapshot()

                engine_kwargs: dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }
                if config.pool_class is QueuePool:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_timeout": config.pool_timeout,
                        }
                    )
                if config.is_memory:
                    engine_kwargs["connect_args"] = {"check_same_thread": False}

                self._engine = create_async_engine(config.url, **engine_kwargs)
                self._session_factory = async_sessionmaker(
                    bind=self._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
                self._config_snapshot = config

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": config.pool_class.__name__,
                    },
                )

            except DatabaseInitializationError:
                raise
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    async def shutdown(self) -> None:
        """Dispose the engine. Safe to call more than once."""
        async with self._init_lock:
            if self._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            try:
                await self._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                self._engine = None
                self._session_factory = None
                self._config_snapshot = None

    async def create_all(self) -> None:
        """Create every table registered on ``Base.metadata``."""
        # Registers all model classes on the metadata
        import src.database.models  # noqa: F401

        engine = self._require_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema created")

    async def drop_all(self) -> None:
        import src.database.models  # noqa: F401

        engine = self._require_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database schema dropped")

    # ========================================================================
    # Health Check
    # ========================================================================

    async def health_check(self) -> bool:
        """
        Execute ``SELECT 1``.

        Never raises; returns False when the database is unreachable.
        """
        if self._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    # ========================================================================
    # Introspection
    # ========================================================================

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def dialect_name(self) -> str:
        """SQL dialect of the bound engine, e.g. ``postgresql`` or ``sqlite``."""
        return self._require_engine().dialect.name

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None or self._session_factory is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call initialize() during startup."
            )
        return self._engine

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    async def _apply_statement_timeout(self, session: AsyncSession) -> None:
        config = self._config_snapshot
        if config is not None and config.is_postgres:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {config.statement_timeout_ms}")
            )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session without automatic commit, for reads.

        Raises:
            DatabaseNotInitializedError: initialize() has not been called
            PersistenceUnavailableError: the database could not be reached
        """
        self._require_engine()
        assert self._session_factory is not None

        async with self._session_factory() as session:
            try:
                await self._apply_statement_timeout(session)
                yield session
            except IntegrityError:
                raise
            except (OperationalError, DBAPIError, OSError) as exc:
                logger.warning(
                    "Database unavailable during read session",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                )
                raise PersistenceUnavailableError("read session", exc) from exc

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in one atomic transaction.

        Commits when the block exits normally. Any exception rolls back every
        statement issued in the block and propagates; driver-level failures
        are re-raised as `PersistenceUnavailableError`.

        Raises:
            DatabaseNotInitializedError: initialize() has not been called
            PersistenceUnavailableError: connection, timeout or
                serialization failure; nothing was applied
        """
        self._require_engine()
        assert self._session_factory is not None

        start = time.perf_counter()
        async with self._session_factory() as session:
            try:
                await self._apply_statement_timeout(session)
                logger.debug("Database transaction started")
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except IntegrityError as exc:
                await session.rollback()
                logger.error(
                    "IntegrityError in transaction; rolled back",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                )
                raise

            except (OperationalError, DBAPIError, OSError) as exc:
                await self._safe_rollback(session)
                logger.warning(
                    "Database unavailable; transaction rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise PersistenceUnavailableError("transaction", exc) from exc

            except BaseException:
                await self._safe_rollback(session)
                logger.debug(
                    "Database transaction rolled back",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )
                raise

    @staticmethod
    async def _safe_rollback(session: AsyncSession) -> None:
        # The connection may already be gone; the original error is what matters
        try:
            await session.rollback()
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.debug(
                "Rollback failed after database error",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
