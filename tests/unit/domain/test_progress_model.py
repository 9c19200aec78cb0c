"""
Unit Tests for the Progress Aggregator
======================================

Purpose
-------
Test the pure fold of normalized decisions into a MissionProgressSnapshot.

Test Coverage
-------------
- Counter increments for valid good/bad decisions
- Invalid and none decisions leave counters untouched
- Completion percentage assignment (including decreases) and validation
- Counter invariants over long random decision sequences
- counter_deltas and check_counter_invariants

Testing Strategy
----------------
- Unit tests (fast, no database)
- Seeded random sequences for the invariant property
- AAA pattern (Arrange, Act, Assert)
"""

import random

import pytest

from src.domain.models.base import DomainValidationError
from src.domain.models.progress import (
    COUNTER_FIELDS,
    MissionProgressSnapshot,
    apply_decision,
    check_counter_invariants,
    counter_deltas,
)
from tests.factories import LOST_CITY, decision


@pytest.fixture
def empty():
    return MissionProgressSnapshot.empty("user-1", LOST_CITY)


# ============================================================================
# SNAPSHOT TESTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestMissionProgressSnapshot:
    """Test the snapshot value object."""

    def test_empty_snapshot_is_zeroed(self, empty):
        """Test that a new row starts at zero."""
        # Assert
        assert empty.completion_percentage == 0
        assert all(v == 0 for v in empty.counters().values())
        assert empty.completion_bonus_awarded is False
        assert not empty.is_complete

    def test_rejects_out_of_range_percentage(self):
        """Test that completion_percentage is bounded."""
        # Act & Assert
        with pytest.raises(DomainValidationError):
            MissionProgressSnapshot(user_id="u", mission_id="m", completion_percentage=101)

    def test_rejects_negative_counter(self):
        """Test that counters cannot be negative."""
        # Act & Assert
        with pytest.raises(DomainValidationError):
            MissionProgressSnapshot(user_id="u", mission_id="m", good_decisions=-1)

    @pytest.mark.parametrize("good,bad,expected", [(0, 0, 0), (3, 1, 75), (1, 2, 33), (1, 1, 50), (2, 1, 67)])
    def test_success_rate(self, good, bad, expected):
        """Test whole-number success rate with half-up rounding."""
        # Arrange
        snap = MissionProgressSnapshot(user_id="u", mission_id="m", good_decisions=good, bad_decisions=bad)

        # Assert
        assert snap.success_rate == expected


# ============================================================================
# AGGREGATION TESTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestApplyDecision:
    """Test apply_decision."""

    def test_good_valid_decision_increments_four_counters(self, empty):
        """Test the counters touched by a good diplomatic decision."""
        # Act
        after = apply_decision(empty, decision("diplomatic", "good"))

        # Assert
        assert counter_deltas(empty, after) == {
            "decisions_made": 1,
            "good_decisions": 1,
            "diplomatic_decisions": 1,
            "diplomatic_good_decisions": 1,
        }

    def test_bad_valid_decision(self, empty):
        """Test the counters touched by a bad action decision."""
        # Act
        after = apply_decision(empty, decision("action", "bad"))

        # Assert
        assert after.bad_decisions == 1
        assert after.action_bad_decisions == 1
        assert after.good_decisions == 0

    def test_none_decision_changes_no_counter(self, empty):
        """Test that small talk leaves statistics alone."""
        # Act
        after = apply_decision(empty, decision("none", "bad", story=True))

        # Assert
        assert after.counters() == empty.counters()

    def test_non_story_decision_changes_no_counter(self, empty):
        """Test that a typed non-story decision is not counted."""
        # Act
        after = apply_decision(empty, decision("strategic", "good", story=False), 15)

        # Assert
        assert after.counters() == empty.counters()
        assert after.completion_percentage == 15

    def test_percentage_is_assigned_and_may_decrease(self, empty):
        """Test that a bad choice can push progress back."""
        # Arrange
        at_sixty = apply_decision(empty, decision(), 60)

        # Act
        after = apply_decision(at_sixty, decision("action", "bad"), 45)

        # Assert
        assert after.completion_percentage == 45

    def test_none_percentage_keeps_current(self, empty):
        """Test that omitting the percentage leaves it unchanged."""
        # Arrange
        at_thirty = apply_decision(empty, decision(), 30)

        # Act
        after = apply_decision(at_thirty, decision())

        # Assert
        assert after.completion_percentage == 30

    @pytest.mark.parametrize("bad_pct", [-1, 101, 50.5, True, "50"])
    def test_rejects_invalid_percentage(self, empty, bad_pct):
        """Test that the aggregator refuses out-of-range or non-integer values."""
        # Act & Assert
        with pytest.raises(DomainValidationError):
            apply_decision(empty, decision(), bad_pct)

    def test_input_snapshot_is_not_modified(self, empty):
        """Test immutability of the input."""
        # Act
        apply_decision(empty, decision(), 10)

        # Assert
        assert empty.decisions_made == 0
        assert empty.completion_percentage == 0


# ============================================================================
# INVARIANT TESTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestCounterInvariants:
    """Test that counter sums hold for any decision sequence."""

    @pytest.mark.parametrize("seed", range(20))
    def test_invariants_hold_for_random_sequences(self, empty, seed):
        """Test the sum invariants after many random decisions."""
        # Arrange
        rng = random.Random(seed)
        types = ["diplomatic", "strategic", "action", "investigation", "none", "bogus", None]
        qualities = ["good", "bad", "neutral", None, "weird"]
        snap = empty
        valid = 0

        # Act
        for _ in range(rng.randint(1, 200)):
            d = decision(
                rng.choice(types),
                rng.choice(qualities),
                story=rng.random() < 0.8,
                progress=rng.choice([0, 3, -2, "x", 12.5]),
            )
            valid += d.is_valid_decision
            snap = apply_decision(snap, d, rng.choice([None, rng.randint(0, 100)]))

        # Assert
        assert check_counter_invariants(snap) == []
        assert snap.decisions_made == valid
        assert snap.good_decisions + snap.bad_decisions == snap.decisions_made

    def test_detects_broken_mapping(self):
        """Test that violations are described, not raised."""
        # Arrange
        counters = {name: 0 for name in COUNTER_FIELDS}
        counters.update(
            {
                "decisions_made": 2,
                "diplomatic_decisions": 1,
                "diplomatic_good_decisions": 1,
                "good_decisions": 1,
            }
        )

        # Act
        violations = check_counter_invariants(counters)

        # Assert
        assert len(violations) == 1
        assert violations[0].startswith("decisions_made (2)")

    def test_missing_keys_count_as_zero(self):
        """Test that a partial mapping is accepted."""
        # Act & Assert
        assert check_counter_invariants({"decisions_made": 0}) == []
