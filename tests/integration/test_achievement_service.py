"""
Integration Tests for AchievementService
========================================

Purpose
-------
Test achievement evaluation, one-shot triggers and unlock listing against a
real database.

Test Coverage
-------------
- evaluate() unlocks from stored progress rows and awards rarity XP
- Re-evaluation never unlocks or awards twice
- Time achievements (speed_runner scoped to the current mission)
- trigger() for stop_master / social_butterfly, rejection of other ids
- list_unlocked() ordering
- achievement.unlocked event payload

Testing Strategy
----------------
- Integration tests (aiosqlite file database per test)
- Progress rows seeded through MissionProgressService.upsert
- AAA pattern (Arrange, Act, Assert)
"""

import asyncio

import pytest

from src.modules.shared.exceptions import ValidationError
from tests.factories import LOST_CITY, SPACE_ODYSSEY

USER = "user-1"


def _ids(unlocked):
    return [u.achievement.id for u in unlocked]


# ============================================================================
# EVALUATION TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestEvaluate:
    """Test evaluate()."""

    async def test_nothing_for_new_user(self, achievement_service, xp_service):
        # Act
        unlocked = await achievement_service.evaluate(USER)

        # Assert
        assert unlocked == []
        assert (await xp_service.get_xp(USER)).total_xp == 0

    async def test_first_mission_unlocks_once(self, achievement_service, progress_service, xp_service):
        # Arrange
        await progress_service.upsert(USER, LOST_CITY, {"completion_percentage": 100})

        # Act
        first = await achievement_service.evaluate(USER, current_mission_id=LOST_CITY)
        second = await achievement_service.evaluate(USER, current_mission_id=LOST_CITY)

        # Assert
        assert _ids(first) == ["first_mission"]
        assert first[0].xp_awarded == 50
        assert first[0].mission_context == LOST_CITY
        assert second == []
        assert (await xp_service.get_xp(USER)).total_xp == 50

    async def test_speed_runner_needs_current_mission(self, achievement_service, progress_service):
        # Arrange
        await progress_service.upsert(
            USER, LOST_CITY, {"completion_percentage": 100, "time_spent_seconds": 120}
        )

        # Act
        without_context = await achievement_service.evaluate(USER)
        with_context = await achievement_service.evaluate(USER, current_mission_id=LOST_CITY)

        # Assert
        assert _ids(without_context) == ["first_mission"]
        assert _ids(with_context) == ["speed_runner"]
        assert with_context[0].xp_awarded == 200

    async def test_storyteller_from_any_mission(self, achievement_service, progress_service):
        # Arrange
        await progress_service.record_time(USER, SPACE_ODYSSEY, 301)

        # Act
        unlocked = await achievement_service.evaluate(USER, current_mission_id=LOST_CITY)

        # Assert
        assert _ids(unlocked) == ["storyteller"]
        assert unlocked[0].xp_awarded == 100

    async def test_concurrent_evaluations_award_once(
        self, achievement_service, progress_service, xp_service
    ):
        # Arrange
        await progress_service.upsert(USER, LOST_CITY, {"completion_percentage": 100})

        # Act
        results = await asyncio.gather(
            *(achievement_service.evaluate(USER) for _ in range(3))
        )

        # Assert
        assert sum(len(r) for r in results) == 1
        assert (await xp_service.get_xp(USER)).total_xp == 50

    async def test_unlock_event_payload(self, achievement_service, progress_service, recorded_events):
        # Arrange
        await progress_service.upsert(USER, LOST_CITY, {"completion_percentage": 100})

        # Act
        await achievement_service.evaluate(USER, current_mission_id=LOST_CITY)

        # Assert
        unlocked = [data for name, data in recorded_events if name == "achievement.unlocked"]
        assert unlocked == [
            {
                "achievement_id": "first_mission",
                "name": "First Steps",
                "rarity": "common",
                "xp_awarded": 50,
                "user_id": USER,
                "mission_id": LOST_CITY,
            }
        ]


# ============================================================================
# TRIGGER TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestTrigger:
    """Test one-shot triggered achievements."""

    @pytest.mark.parametrize("achievement_id", ["stop_master", "social_butterfly"])
    async def test_trigger_grants_once(self, achievement_service, xp_service, achievement_id):
        # Act
        first = await achievement_service.trigger(USER, achievement_id)
        second = await achievement_service.trigger(USER, achievement_id)

        # Assert
        assert first.achievement.id == achievement_id
        assert first.xp_awarded == 50
        assert second is None
        assert (await xp_service.get_xp(USER)).total_xp == 50

    @pytest.mark.parametrize("achievement_id", ["diplomat", "first_mission", "nope", None])
    async def test_rejects_non_triggerable(self, achievement_service, achievement_id):
        # Act & Assert
        with pytest.raises(ValidationError) as exc_info:
            await achievement_service.trigger(USER, achievement_id)

        assert exc_info.value.field == "achievement_id"


# ============================================================================
# LISTING TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestListUnlocked:
    """Test list_unlocked()."""

    async def test_empty_for_new_user(self, achievement_service):
        # Act & Assert
        assert await achievement_service.list_unlocked(USER) == []

    async def test_lists_in_unlock_order(self, achievement_service, progress_service):
        # Arrange
        await achievement_service.trigger(USER, "stop_master", LOST_CITY)
        await progress_service.upsert(USER, LOST_CITY, {"completion_percentage": 100})
        await achievement_service.evaluate(USER)

        # Act
        unlocked = await achievement_service.list_unlocked(USER)

        # Assert
        assert _ids(unlocked) == ["stop_master", "first_mission"]
        assert unlocked[0].mission_context == LOST_CITY

    async def test_other_users_are_separate(self, achievement_service):
        # Arrange
        await achievement_service.trigger("user-2", "stop_master")

        # Act & Assert
        assert await achievement_service.list_unlocked(USER) == []
