"""
Mission progress domain model.

Purpose
-------
Pure representation of the per-(user, mission) aggregate and the fold that
applies one normalized decision to it. No I/O: the persistence layer turns
the difference between two snapshots into atomic ``col = col + n`` updates.

Invariants
----------
For every snapshot produced from consistent input:

- ``<type>_decisions == <type>_good_decisions + <type>_bad_decisions``
- ``decisions_made == sum of the four <type>_decisions``
- ``good_decisions == sum of <type>_good_decisions``
- ``bad_decisions == sum of <type>_bad_decisions``

`check_counter_invariants` reports violations (for rows written by older
clients) without raising.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from src.database.models.enums import DecisionQuality, DecisionType
from src.domain.models.base import (
    DomainValidationError,
    validate_non_negative,
    validate_range,
)
from src.domain.models.decision import NormalizedDecision

if TYPE_CHECKING:
    from src.database.models.progression.mission_progress import MissionProgress


COUNTED_TYPES: tuple[DecisionType, ...] = DecisionType.counted()

COARSE_COUNTERS: tuple[str, ...] = (
    "decisions_made",
    "good_decisions",
    "bad_decisions",
    *(f"{t.value}_decisions" for t in COUNTED_TYPES),
)

FINE_COUNTERS: tuple[str, ...] = tuple(
    f"{t.value}_{q}_decisions" for t in COUNTED_TYPES for q in ("good", "bad")
)

COUNTER_FIELDS: tuple[str, ...] = COARSE_COUNTERS + FINE_COUNTERS


@dataclass(frozen=True)
class MissionProgressSnapshot:
    """
    Immutable view of one progress row.

    Build with `empty()` for a row that does not exist yet, or `from_row()`
    from the ORM model.
    """

    user_id: str
    mission_id: str
    completion_percentage: int = 0

    decisions_made: int = 0
    good_decisions: int = 0
    bad_decisions: int = 0
    diplomatic_decisions: int = 0
    strategic_decisions: int = 0
    action_decisions: int = 0
    investigation_decisions: int = 0

    diplomatic_good_decisions: int = 0
    diplomatic_bad_decisions: int = 0
    strategic_good_decisions: int = 0
    strategic_bad_decisions: int = 0
    action_good_decisions: int = 0
    action_bad_decisions: int = 0
    investigation_good_decisions: int = 0
    investigation_bad_decisions: int = 0

    time_spent_seconds: int = 0
    can_resume: bool = False
    last_message_order: int = 0
    completion_bonus_awarded: bool = False
    completed_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    def __post_init__(self) -> None:
        validate_range(self.completion_percentage, 0, 100, "completion_percentage")
        validate_non_negative(self.time_spent_seconds, "time_spent_seconds")
        for name in COUNTER_FIELDS:
            validate_non_negative(getattr(self, name), name)

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def empty(cls, user_id: str, mission_id: str) -> MissionProgressSnapshot:
        return cls(user_id=user_id, mission_id=mission_id)

    @classmethod
    def from_row(cls, row: "MissionProgress") -> MissionProgressSnapshot:
        values = {f.name: getattr(row, f.name) for f in fields(cls)}
        return cls(**values)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @property
    def is_complete(self) -> bool:
        return self.completion_percentage == 100

    @property
    def success_rate(self) -> int:
        """Good decisions as a whole-number percentage of good + bad; 0 when none."""
        judged = self.good_decisions + self.bad_decisions
        if judged == 0:
            return 0
        return int(self.good_decisions * 100 / judged + 0.5)

    def counters(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in COUNTER_FIELDS}

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# ============================================================================
# AGGREGATION
# ============================================================================


def apply_decision(
    current: MissionProgressSnapshot,
    decision: NormalizedDecision,
    new_completion_percentage: Optional[int] = None,
) -> MissionProgressSnapshot:
    """
    Fold one decision into a progress snapshot.

    Valid decisions add one to ``decisions_made``, the type counter, exactly
    one of good/bad and the matching fine counter. Invalid decisions leave
    every counter alone. ``completion_percentage`` is assigned (not added)
    whenever a value is supplied, so it can go down as well as up.

    Args:
        current: Snapshot before the decision
        decision: Normalized decision
        new_completion_percentage: Absolute percentage after this turn, or
            None to keep the current value

    Returns:
        A new snapshot; ``current`` is never modified

    Raises:
        DomainValidationError: ``new_completion_percentage`` outside 0-100
    """
    if new_completion_percentage is not None:
        if isinstance(new_completion_percentage, bool) or not isinstance(
            new_completion_percentage, int
        ):
            raise DomainValidationError(
                f"completion_percentage must be an integer, got {new_completion_percentage!r}",
                field="completion_percentage",
            )
        validate_range(new_completion_percentage, 0, 100, "completion_percentage")

    changes: Dict[str, Any] = {}
    if new_completion_percentage is not None:
        changes["completion_percentage"] = new_completion_percentage

    if decision.is_valid_decision:
        type_name = decision.decision_type.value
        outcome = "good" if decision.quality is DecisionQuality.GOOD else "bad"
        for name in (
            "decisions_made",
            f"{type_name}_decisions",
            f"{outcome}_decisions",
            f"{type_name}_{outcome}_decisions",
        ):
            changes[name] = getattr(current, name) + 1

    if not changes:
        return current
    return replace(current, **changes)


def counter_deltas(
    before: MissionProgressSnapshot, after: MissionProgressSnapshot
) -> Dict[str, int]:
    """
    Per-counter increments between two snapshots.

    Only non-zero entries are returned.

    Example:
        >>> counter_deltas(before, apply_decision(before, good_diplomatic))
        {'decisions_made': 1, 'good_decisions': 1, 'diplomatic_decisions': 1,
         'diplomatic_good_decisions': 1}
    """
    deltas: Dict[str, int] = {}
    for name in COUNTER_FIELDS:
        diff = getattr(after, name) - getattr(before, name)
        if diff:
            deltas[name] = diff
    return deltas


def check_counter_invariants(counters: MissionProgressSnapshot | Mapping[str, int]) -> list[str]:
    """
    Return a human-readable description of each broken counter invariant.

    Accepts a snapshot or a plain mapping of counter values. An empty list
    means the counters are consistent.
    """
    if isinstance(counters, MissionProgressSnapshot):
        values = counters.counters()
    else:
        values = {name: int(counters.get(name, 0) or 0) for name in COUNTER_FIELDS}

    violations: list[str] = []

    for t in COUNTED_TYPES:
        total = values[f"{t.value}_decisions"]
        good = values[f"{t.value}_good_decisions"]
        bad = values[f"{t.value}_bad_decisions"]
        if total != good + bad:
            violations.append(
                f"{t.value}_decisions ({total}) != "
                f"{t.value}_good_decisions ({good}) + {t.value}_bad_decisions ({bad})"
            )

    type_sum = sum(values[f"{t.value}_decisions"] for t in COUNTED_TYPES)
    if values["decisions_made"] != type_sum:
        violations.append(
            f"decisions_made ({values['decisions_made']}) != sum of type decisions ({type_sum})"
        )

    good_sum = sum(values[f"{t.value}_good_decisions"] for t in COUNTED_TYPES)
    if values["good_decisions"] != good_sum:
        violations.append(
            f"good_decisions ({values['good_decisions']}) != sum of type good decisions ({good_sum})"
        )

    bad_sum = sum(values[f"{t.value}_bad_decisions"] for t in COUNTED_TYPES)
    if values["bad_decisions"] != bad_sum:
        violations.append(
            f"bad_decisions ({values['bad_decisions']}) != sum of type bad decisions ({bad_sum})"
        )

    return violations
