"""
Pytest Configuration and Fixtures for the Progression Engine Tests
==================================================================

Purpose
-------
Centralized test fixtures and configuration for the test suite.
Provides reusable fixtures for the database, services, configuration,
event capture and mocks.

Responsibilities
----------------
- Per-test SQLite database (aiosqlite, temp file) with the full schema
- Optional PostgreSQL testcontainer for dialect-specific tests
- Service wiring with real ConfigManager and EventBus instances
- Mocks for unit tests of service helpers
- Classification payloads live in tests/factories.py

Non-Responsibilities
--------------------
- Test implementation (delegated to test files)
- Production configuration (test-specific only)

Architecture Notes
------------------
- Unit tests use pure functions or mocks (fast, isolated)
- Integration tests use a fresh SQLite file per test; a file (not
  ``:memory:``) so concurrent sessions see the same database
- PostgreSQL tests are marked ``postgres`` and skipped without Docker
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_JSON", "false")

from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Generator, List

import pytest
import pytest_asyncio

from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.logging.logger import get_logger
from src.modules.achievement.service import AchievementService
from src.modules.decision.service import DecisionService
from src.modules.leaderboard.service import LeaderboardService
from src.modules.player.xp_service import PlayerXPService
from src.modules.progress.service import MissionProgressService

logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["LOG_LEVEL"] = "DEBUG"
    Config.load()


# ============================================================================
# CONFIG & EVENTS
# ============================================================================


@pytest.fixture
def config_manager() -> ConfigManager:
    """ConfigManager loaded from the repository's config/ directory."""
    return ConfigManager(config_dir=PROJECT_ROOT / "config")


@pytest.fixture
def event_bus(config_manager: ConfigManager) -> EventBus:
    return EventBus(config_manager)


@pytest.fixture
def recorded_events(event_bus: EventBus) -> List[tuple[str, Dict[str, Any]]]:
    """
    Capture every event published on ``event_bus``.

    Each entry is ``(event_name, payload)`` in publish order.
    """
    captured: List[tuple[str, Dict[str, Any]]] = []
    original_publish = event_bus.publish

    async def capturing_publish(event_name: str, data: Dict[str, Any]) -> list[Any]:
        captured.append((event_name, dict(data)))
        return await original_publish(event_name, data)

    event_bus.publish = capturing_publish  # type: ignore[method-assign]
    return captured


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def db_service(tmp_path: Path) -> AsyncGenerator[DatabaseService, None]:
    """
    Fresh SQLite database with the full schema.

    Scope: function (new database file per test, clean slate)
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'progression.db'}"
    service = DatabaseService(url, echo=False)
    await service.initialize()
    await service.create_all()

    yield service

    await service.shutdown()


def start_postgres_container(postgres: Any) -> Any:
    """
    Build and start a PostgresContainer, skipping the test when Docker is unavailable.

    Both the constructor (Docker client lookup) and ``start()`` can fail.
    """
    logger.info("Starting PostgreSQL testcontainer...")
    try:
        container = postgres.PostgresContainer(image="postgres:16-alpine", driver="asyncpg")
        container.start()
    except Exception as exc:  # Docker missing or not running
        pytest.skip(f"PostgreSQL testcontainer unavailable: {exc}")
    return container


@pytest.fixture(scope="session")
def postgres_url() -> Generator[str, None, None]:
    """
    Start a PostgreSQL testcontainer.

    Scope: session (container persists across all postgres tests)
    Uses: tests marked ``postgres``; skipped when Docker is unavailable
    """
    postgres = pytest.importorskip("testcontainers.postgres")

    container = start_postgres_container(postgres)

    yield container.get_connection_url()

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def pg_db_service(postgres_url: str) -> AsyncGenerator[DatabaseService, None]:
    service = DatabaseService(postgres_url, echo=False)
    await service.initialize()
    await service.drop_all()
    await service.create_all()

    yield service

    await service.drop_all()
    await service.shutdown()


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def xp_service(db_service, config_manager, event_bus) -> PlayerXPService:
    return PlayerXPService(
        db_service, config_manager, event_bus, get_logger("tests.PlayerXPService")
    )


@pytest.fixture
def achievement_service(db_service, xp_service, config_manager, event_bus) -> AchievementService:
    return AchievementService(
        db_service,
        xp_service,
        config_manager,
        event_bus,
        get_logger("tests.AchievementService"),
    )


@pytest.fixture
def progress_service(db_service, config_manager, event_bus) -> MissionProgressService:
    return MissionProgressService(
        db_service, config_manager, event_bus, get_logger("tests.MissionProgressService")
    )


@pytest.fixture
def decision_service(
    db_service, xp_service, achievement_service, config_manager, event_bus
) -> DecisionService:
    return DecisionService(
        db_service,
        xp_service,
        achievement_service,
        config_manager,
        event_bus,
        get_logger("tests.DecisionService"),
    )


@pytest.fixture
def leaderboard_service(db_service, config_manager, event_bus) -> LeaderboardService:
    return LeaderboardService(
        db_service, config_manager, event_bus, get_logger("tests.LeaderboardService")
    )


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests that need to assert on event publishing
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """
    Mock ConfigManager returning each key's default.

    Scope: function
    """
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    mock_config.get_int = mocker.MagicMock(side_effect=lambda key, default=0: default)
    mock_config.get_float = mocker.MagicMock(side_effect=lambda key, default=0.0: default)
    return mock_config


