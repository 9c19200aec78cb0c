"""
Integration Tests for DecisionService
=====================================

Purpose
-------
Test the end-to-end decision flow against a real database: normalization,
atomic counter increments, XP, the one-time completion bonus, achievement
evaluation, idempotent retries and the stop command.

Test Coverage
-------------
- First good decision XP with a difficulty multiplier
- Invalid decisions: progress XP only, counters untouched
- Diplomat boundary: unlock and rarity XP exactly once
- All four missions: legendary unlock, repeat evaluation awards nothing
- Idempotent retry with the same key
- Completion bonus awarded once across percentage fluctuation
- Achievement pass failure reported as deferred
- stop_mission floor, time flush and stop_master trigger
- Event sequence for a completing decision

Testing Strategy
----------------
- Integration tests (aiosqlite file database per test)
- Real services wired through conftest fixtures
- AAA pattern (Arrange, Act, Assert)
"""

import asyncio

import pytest

from src.core.exceptions import PersistenceUnavailableError
from src.core.logging.logger import get_logger
from src.modules.progress.repository import DecisionRecordRepository
from src.modules.shared.exceptions import ValidationError
from tests.factories import (
    ALL_MISSIONS,
    CYBER_HEIST,
    ENCHANTED_FOREST,
    LOST_CITY,
    SPACE_ODYSSEY,
    classification,
)

USER = "user-1"


# ============================================================================
# XP SCENARIO TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDecisionXP:
    """Test XP awarded for single decisions."""

    async def test_first_good_strategic_decision(self, decision_service, xp_service):
        """Test round(5 * 1.5) + round(10 * 1.5) = 23 on a fresh account."""
        # Act
        outcome = await decision_service.record_decision(
            USER,
            ENCHANTED_FOREST,
            classification("strategic", "good", progress=10, bonus=1.5),
            "turn-1",
            completion_percentage=10,
        )

        # Assert
        assert outcome.xp_awarded == 23
        assert outcome.total_xp == 23
        assert outcome.old_level == 1
        assert outcome.new_level == 1
        assert outcome.progress.decisions_made == 1
        assert outcome.progress.strategic_good_decisions == 1
        assert outcome.progress.completion_percentage == 10
        assert outcome.show_feedback
        assert (await xp_service.get_xp(USER)).total_xp == 23

    async def test_invalid_decision_with_progress(self, decision_service):
        """Test that a non-story decision earns only the progress term."""
        # Act
        outcome = await decision_service.record_decision(
            USER,
            LOST_CITY,
            classification("none", "good", story=False, progress=5, bonus=1.0),
            "turn-1",
            completion_percentage=5,
        )

        # Assert
        assert outcome.xp_awarded == 5
        assert outcome.progress.completion_percentage == 5
        assert all(v == 0 for v in outcome.progress.counters().values())

    async def test_none_decision_never_counts(self, decision_service):
        """Test that a story-flagged none/bad decision leaves every counter at zero."""
        # Act
        outcome = await decision_service.record_decision(
            USER, LOST_CITY, classification("none", "bad", story=True), "turn-1"
        )

        # Assert
        assert outcome.decision.quality.value == "good"
        assert all(v == 0 for v in outcome.progress.counters().values())

    async def test_missing_bonus_uses_mission_difficulty(self, decision_service):
        """Test that Cyber Heist (Expert) doubles the base XP."""
        # Act
        outcome = await decision_service.record_decision(
            USER, CYBER_HEIST, classification("action", "good", bonus=None), "turn-1"
        )

        # Assert
        assert outcome.decision.difficulty_bonus == 2.0
        assert outcome.xp_awarded == 10

    async def test_small_talk_shows_no_feedback(self, decision_service):
        # Act
        outcome = await decision_service.record_decision(
            USER, LOST_CITY, classification("none", "good", story=False), "turn-1"
        )

        # Assert
        assert outcome.xp_awarded == 0
        assert outcome.show_feedback is False

    async def test_ledger_records_awarded_xp(self, decision_service, db_service):
        # Arrange
        await decision_service.record_decision(
            USER, LOST_CITY, classification(progress=4), "turn-1", completion_percentage=4
        )
        repo = DecisionRecordRepository(logger=get_logger("tests.DecisionRecordRepository"))

        # Act
        async with db_service.get_session() as session:
            record = await repo.find_by_key(session, USER, "turn-1")

        # Assert
        assert record is not None
        assert record.xp_awarded == 9
        assert record.decision_type == "strategic"
        assert record.completion_percentage == 4


# ============================================================================
# PERCENTAGE TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestCompletionPercentage:
    """Test percentage handling and milestones."""

    @pytest.mark.parametrize("reported,stored", [(99.5, 100), (150, 100), (-3, 0), (42.4, 42)])
    async def test_percentage_is_rounded_and_clamped(self, decision_service, reported, stored):
        # Act
        outcome = await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-1", completion_percentage=reported
        )

        # Assert
        assert outcome.progress.completion_percentage == stored

    @pytest.mark.parametrize("reported", ["50", True, float("nan")])
    async def test_non_numeric_percentage_rejected(self, decision_service, progress_service, reported):
        # Act & Assert
        with pytest.raises(ValidationError):
            await decision_service.record_decision(
                USER, LOST_CITY, classification(), "turn-1", completion_percentage=reported
            )

        assert await progress_service.get(USER, LOST_CITY) is None

    async def test_none_keeps_stored_percentage(self, decision_service):
        # Arrange
        await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-1", completion_percentage=30
        )

        # Act
        outcome = await decision_service.record_decision(USER, LOST_CITY, classification(), "turn-2")

        # Assert
        assert outcome.progress.completion_percentage == 30
        assert outcome.milestones == ()

    async def test_milestones_crossed(self, decision_service):
        # Act
        outcome = await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-1", completion_percentage=55
        )

        # Assert
        assert [m.progress for m in outcome.milestones] == [25, 50]

    async def test_elapsed_time_flushed_with_decision(self, decision_service):
        # Arrange
        await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-1", elapsed_seconds=200
        )

        # Act
        outcome = await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-2", elapsed_seconds=150
        )

        # Assert
        assert outcome.progress.time_spent_seconds == 200

    @pytest.mark.parametrize("key", [None, "", "   "])
    async def test_idempotency_key_required(self, decision_service, key):
        # Act & Assert
        with pytest.raises(ValidationError):
            await decision_service.record_decision(USER, LOST_CITY, classification(), key)


# ============================================================================
# IDEMPOTENCY TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestIdempotentRetry:
    """Test retries with the same idempotency key."""

    async def test_retry_changes_nothing(self, decision_service, xp_service, recorded_events):
        # Arrange
        first = await decision_service.record_decision(
            USER, LOST_CITY, classification(progress=10), "turn-1", completion_percentage=20
        )
        events_after_first = len(recorded_events)

        # Act
        retry = await decision_service.record_decision(
            USER, LOST_CITY, classification(progress=10), "turn-1", completion_percentage=20
        )

        # Assert
        assert retry.duplicate is True
        assert retry.xp_awarded == 0
        assert retry.show_feedback is False
        assert retry.progress.decisions_made == first.progress.decisions_made == 1
        assert retry.total_xp == first.total_xp
        assert (await xp_service.get_xp(USER)).total_xp == first.total_xp
        assert len(recorded_events) == events_after_first

    async def test_same_key_for_other_user_is_independent(self, decision_service):
        # Arrange
        await decision_service.record_decision(USER, LOST_CITY, classification(), "turn-1")

        # Act
        other = await decision_service.record_decision("user-2", LOST_CITY, classification(), "turn-1")

        # Assert
        assert other.duplicate is False
        assert other.xp_awarded == 5

    async def test_key_reused_on_other_mission_is_duplicate(
        self, decision_service, progress_service, mocker
    ):
        # Arrange
        await decision_service.record_decision(USER, LOST_CITY, classification(), "turn-1")
        warning = mocker.patch.object(decision_service.log, "warning")

        # Act
        retry = await decision_service.record_decision(USER, SPACE_ODYSSEY, classification(), "turn-1")

        # Assert
        assert retry.duplicate is True
        assert retry.xp_awarded == 0
        assert await progress_service.get(USER, SPACE_ODYSSEY) is None
        assert warning.call_args.kwargs["extra"]["original_mission_id"] == LOST_CITY

    async def test_concurrent_distinct_keys_all_counted(
        self, decision_service, progress_service, xp_service
    ):
        # Act
        outcomes = await asyncio.gather(
            *(
                decision_service.record_decision(USER, LOST_CITY, classification(), f"turn-{i}")
                for i in range(8)
            )
        )

        # Assert
        assert not any(o.duplicate for o in outcomes)
        assert sum(o.xp_awarded for o in outcomes) == 40
        assert (await progress_service.get(USER, LOST_CITY)).decisions_made == 8
        # strategist (common) and perfectionist (rare) on top of 8 x 5
        assert (await xp_service.get_xp(USER)).total_xp == 40 + 50 + 100

    async def test_concurrent_same_key_counts_once(
        self, decision_service, progress_service, xp_service
    ):
        # Act
        outcomes = await asyncio.gather(
            *(
                decision_service.record_decision(USER, LOST_CITY, classification(), "turn-1")
                for _ in range(5)
            )
        )

        # Assert
        assert sorted(o.duplicate for o in outcomes) == [False, True, True, True, True]
        assert sum(o.xp_awarded for o in outcomes) == 5
        assert (await progress_service.get(USER, LOST_CITY)).decisions_made == 1
        assert (await xp_service.get_xp(USER)).total_xp == 5


# ============================================================================
# COMPLETION BONUS TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestCompletionBonus:
    """Test the one-time completion bonus."""

    async def test_bonus_on_first_completion(self, decision_service, recorded_events):
        # Act
        outcome = await decision_service.record_decision(
            USER, LOST_CITY, classification("action", "good"), "turn-1", completion_percentage=100
        )

        # Assert
        assert outcome.reward.decision_xp == 5
        assert outcome.reward.completion_bonus == 405
        assert outcome.progress.completion_bonus_awarded is True
        assert outcome.progress.completed_at is not None
        assert [name for name, _ in recorded_events].count("mission.completed") == 1

    async def test_bonus_awarded_once_across_fluctuation(self, decision_service, recorded_events):
        """Test 100 -> 80 -> 100 pays the bonus only the first time."""
        # Arrange
        first = await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-1", completion_percentage=100
        )
        await decision_service.record_decision(
            USER, LOST_CITY, classification("action", "bad"), "turn-2", completion_percentage=80
        )

        # Act
        again = await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-3", completion_percentage=100
        )

        # Assert
        assert first.reward.completion_bonus > 0
        assert again.reward.completion_bonus == 0
        assert again.xp_awarded == 5
        assert [name for name, _ in recorded_events].count("mission.completed") == 1

    async def test_reset_allows_bonus_again(self, decision_service, progress_service):
        # Arrange
        await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-1", completion_percentage=100
        )
        await progress_service.reset_mission(USER, LOST_CITY)

        # Act
        replay = await decision_service.record_decision(
            USER, LOST_CITY, classification(), "replay-1", completion_percentage=100
        )

        # Assert
        assert replay.reward.completion_bonus == 405

    async def test_bonus_paid_after_upsert_to_one_hundred(self, decision_service, progress_service):
        """Test a row already at 100 pays the unclaimed bonus on its next decision."""
        # Arrange
        await progress_service.upsert(USER, LOST_CITY, {"completion_percentage": 100})

        # Act
        outcome = await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-1", completion_percentage=100
        )
        later = await decision_service.record_decision(USER, LOST_CITY, classification(), "turn-2")

        # Assert
        assert outcome.reward.completion_bonus == 405
        assert outcome.progress.completion_bonus_awarded is True
        assert later.reward.completion_bonus == 0

    async def test_completing_event_sequence(self, decision_service, recorded_events):
        # Act
        await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-1", completion_percentage=100
        )

        # Assert
        assert [name for name, _ in recorded_events] == [
            "decision.recorded",
            "progress.updated",
            "mission.completed",
            "player.xp_added",
            "player.leveled_up",
            "achievement.unlocked",
            "player.xp_added",
        ]
        leveled = dict(recorded_events)["player.leveled_up"]
        assert (leveled["old_level"], leveled["new_level"]) == (1, 3)
        assert dict(recorded_events)["achievement.unlocked"]["achievement_id"] == "first_mission"


# ============================================================================
# ACHIEVEMENT TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDecisionAchievements:
    """Test achievements unlocked through the decision flow."""

    async def test_diplomat_boundary(self, decision_service, xp_service):
        """Test the third diplomatic decision across missions unlocks diplomat once."""
        # Arrange
        for i, mission_id in enumerate((LOST_CITY, SPACE_ODYSSEY)):
            outcome = await decision_service.record_decision(
                USER, mission_id, classification("diplomatic", "good"), f"turn-{i}"
            )
            assert outcome.new_achievements == ()

        # Act
        third = await decision_service.record_decision(
            USER, LOST_CITY, classification("diplomatic", "good"), "turn-2"
        )
        fourth = await decision_service.record_decision(
            USER, LOST_CITY, classification("diplomatic", "good"), "turn-3"
        )

        # Assert
        assert [a.achievement.id for a in third.new_achievements] == ["diplomat"]
        assert third.new_achievements[0].xp_awarded == 50
        assert fourth.new_achievements == ()
        assert (await xp_service.get_xp(USER)).total_xp == 4 * 5 + 50

    async def test_all_missions_legendary(self, decision_service, achievement_service, xp_service):
        """Test the fourth completion unlocks all_missions; re-evaluation grants nothing."""
        # Arrange
        outcomes = []
        for i, mission_id in enumerate(ALL_MISSIONS):
            outcomes.append(
                await decision_service.record_decision(
                    USER, mission_id, classification(), f"final-{i}", completion_percentage=100
                )
            )
        xp_before = (await xp_service.get_xp(USER)).total_xp

        # Act
        repeat = await achievement_service.evaluate(USER, current_mission_id=CYBER_HEIST)

        # Assert
        unlocked = {a.achievement.id: a for a in outcomes[-1].new_achievements}
        assert "all_missions" in unlocked
        assert unlocked["all_missions"].xp_awarded == 500
        assert [a.achievement.id for a in outcomes[0].new_achievements] == ["first_mission"]
        assert repeat == []
        assert (await xp_service.get_xp(USER)).total_xp == xp_before

    async def test_achievement_failure_is_deferred(
        self, decision_service, achievement_service, progress_service, mocker
    ):
        """Test that a failed achievement pass keeps the committed decision."""
        # Arrange
        mocker.patch.object(
            achievement_service,
            "evaluate",
            side_effect=PersistenceUnavailableError("transaction", RuntimeError("database is locked")),
        )

        # Act
        outcome = await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-1", completion_percentage=100
        )

        # Assert
        assert outcome.achievements_deferred is True
        assert outcome.new_achievements == ()
        assert (await progress_service.get(USER, LOST_CITY)).completion_percentage == 100


# ============================================================================
# STOP COMMAND TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestStopMission:
    """Test stop_mission."""

    async def test_stop_records_floor_time_and_trigger(self, decision_service, xp_service):
        # Act
        outcome = await decision_service.stop_mission(USER, LOST_CITY, elapsed_seconds=95)

        # Assert
        assert outcome.progress.completion_percentage == 5
        assert outcome.progress.time_spent_seconds == 95
        assert outcome.achievement.achievement.id == "stop_master"
        assert (await xp_service.get_xp(USER)).total_xp == 50

    async def test_stop_keeps_higher_progress(self, decision_service):
        # Arrange
        await decision_service.record_decision(
            USER, LOST_CITY, classification(), "turn-1", completion_percentage=40, elapsed_seconds=300
        )

        # Act
        outcome = await decision_service.stop_mission(USER, LOST_CITY, elapsed_seconds=120)

        # Assert
        assert outcome.progress.completion_percentage == 40
        assert outcome.progress.time_spent_seconds == 300

    async def test_second_stop_grants_nothing(self, decision_service):
        # Arrange
        await decision_service.stop_mission(USER, LOST_CITY, elapsed_seconds=10)

        # Act
        outcome = await decision_service.stop_mission(USER, LOST_CITY, elapsed_seconds=20)

        # Assert
        assert outcome.achievement is None
        assert outcome.achievements_deferred is False
