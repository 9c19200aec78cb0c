"""
PostgreSQL Integration Tests
============================

Purpose
-------
Run the upsert-heavy paths on the PostgreSQL dialect: ON CONFLICT inserts,
GREATEST() time flushes, SELECT ... FOR UPDATE and the conditional bonus
claim.

Testing Strategy
----------------
- Requires Docker; skipped when the testcontainer cannot start
- Same services as the SQLite suite, wired to ``pg_db_service``
"""

import asyncio

import pytest

from src.core.logging.logger import get_logger
from src.modules.achievement.service import AchievementService
from src.modules.decision.service import DecisionService
from src.modules.player.xp_service import PlayerXPService
from src.modules.progress.service import MissionProgressService
from tests.factories import LOST_CITY, classification

pytestmark = [pytest.mark.integration, pytest.mark.postgres]

USER = "user-1"


@pytest.fixture
def pg_services(pg_db_service, config_manager, event_bus):
    xp = PlayerXPService(pg_db_service, config_manager, event_bus, get_logger("tests.pg.xp"))
    achievements = AchievementService(
        pg_db_service, xp, config_manager, event_bus, get_logger("tests.pg.achievements")
    )
    progress = MissionProgressService(
        pg_db_service, config_manager, event_bus, get_logger("tests.pg.progress")
    )
    decisions = DecisionService(
        pg_db_service, xp, achievements, config_manager, event_bus, get_logger("tests.pg.decisions")
    )
    return decisions, progress, xp


class TestPostgresUpserts:
    """Test dialect-specific statements on PostgreSQL."""

    async def test_dialect(self, pg_db_service):
        # Assert
        assert pg_db_service.dialect_name == "postgresql"
        assert await pg_db_service.health_check() is True

    async def test_concurrent_decisions_all_counted(self, pg_services):
        # Arrange
        decisions, progress, _ = pg_services

        # Act
        await asyncio.gather(
            *(
                decisions.record_decision(USER, LOST_CITY, classification(), f"turn-{i}")
                for i in range(8)
            )
        )

        # Assert
        snapshot = await progress.get(USER, LOST_CITY)
        assert snapshot.decisions_made == 8
        assert snapshot.strategic_good_decisions == 8

    async def test_duplicate_key_on_postgres(self, pg_services):
        # Arrange
        decisions, _, xp = pg_services
        await decisions.record_decision(USER, LOST_CITY, classification(), "turn-1")

        # Act
        retry = await decisions.record_decision(USER, LOST_CITY, classification(), "turn-1")

        # Assert
        assert retry.duplicate is True
        assert (await xp.get_xp(USER)).total_xp == 5

    async def test_time_uses_greatest(self, pg_services):
        # Arrange
        _, progress, _ = pg_services
        await progress.record_time(USER, LOST_CITY, 200)

        # Act
        snapshot = await progress.record_time(USER, LOST_CITY, 50)

        # Assert
        assert snapshot.time_spent_seconds == 200

    async def test_completion_bonus_claimed_once(self, pg_services):
        # Arrange
        decisions, _, _ = pg_services

        # Act
        outcomes = await asyncio.gather(
            *(
                decisions.record_decision(
                    USER, LOST_CITY, classification(), f"final-{i}", completion_percentage=100
                )
                for i in range(4)
            )
        )

        # Assert
        assert sum(1 for o in outcomes if o.reward.completion_bonus > 0) == 1
