"""
Achievement Predicates

Purpose
-------
Pure evaluation of the achievement catalog against a user's cumulative
progress rows. No I/O; the service supplies fresh rows and persists the
result.

Predicates
----------
- first_mission / all_missions: number of rows at 100 percent
- diplomat / strategist / action_hero / detective: type totals across rows
- explorer: ``decisions_made`` total across rows
- perfectionist: some row with enough good decisions and no bad ones
- speed_runner: the *current* mission row is complete and its time is
  strictly between 0 and the limit; skipped when no current mission is given
- storyteller: some row with time strictly over the limit

The result is a set of ids, so evaluation order cannot matter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from src.database.models.enums import DecisionType
from src.modules.shared.constants import (
    ALL_MISSIONS_THRESHOLD,
    EXPLORER_DECISION_THRESHOLD,
    PERFECTIONIST_GOOD_THRESHOLD,
    SPEED_RUNNER_MAX_SECONDS,
    STORYTELLER_MIN_SECONDS,
    TYPE_DECISION_THRESHOLD,
)

if TYPE_CHECKING:
    from src.core.config.manager import ConfigManager
    from src.domain.models.progress import MissionProgressSnapshot


TYPE_ACHIEVEMENTS: tuple[tuple[str, DecisionType], ...] = (
    ("diplomat", DecisionType.DIPLOMATIC),
    ("strategist", DecisionType.STRATEGIC),
    ("action_hero", DecisionType.ACTION),
    ("detective", DecisionType.INVESTIGATION),
)


@dataclass(frozen=True)
class AchievementThresholds:
    type_decisions: int = TYPE_DECISION_THRESHOLD
    explorer_decisions: int = EXPLORER_DECISION_THRESHOLD
    perfectionist_good: int = PERFECTIONIST_GOOD_THRESHOLD
    all_missions: int = ALL_MISSIONS_THRESHOLD
    speed_runner_max_seconds: int = SPEED_RUNNER_MAX_SECONDS
    storyteller_min_seconds: int = STORYTELLER_MIN_SECONDS

    @classmethod
    def from_config(cls, config: ConfigManager) -> AchievementThresholds:
        prefix = "progression.achievements"
        return cls(
            type_decisions=config.get_int(f"{prefix}.type_decision_threshold", TYPE_DECISION_THRESHOLD),
            explorer_decisions=config.get_int(
                f"{prefix}.explorer_decision_threshold", EXPLORER_DECISION_THRESHOLD
            ),
            perfectionist_good=config.get_int(
                f"{prefix}.perfectionist_good_threshold", PERFECTIONIST_GOOD_THRESHOLD
            ),
            all_missions=config.get_int(f"{prefix}.all_missions_threshold", ALL_MISSIONS_THRESHOLD),
            speed_runner_max_seconds=config.get_int(
                f"{prefix}.speed_runner_max_seconds", SPEED_RUNNER_MAX_SECONDS
            ),
            storyteller_min_seconds=config.get_int(
                f"{prefix}.storyteller_min_seconds", STORYTELLER_MIN_SECONDS
            ),
        )


DEFAULT_THRESHOLDS = AchievementThresholds()


def evaluate_predicates(
    rows: Iterable[MissionProgressSnapshot],
    current_mission_id: Optional[str] = None,
    thresholds: AchievementThresholds = DEFAULT_THRESHOLDS,
) -> set[str]:
    """
    Ids of every predicate achievement that holds for ``rows``.

    Already-unlocked achievements are included; the caller subtracts the
    persisted set.

    Args:
        rows: All progress rows of one user
        current_mission_id: Mission just played, for speed_runner
        thresholds: Predicate limits

    Example:
        >>> evaluate_predicates([complete_row], current_mission_id=complete_row.mission_id)
        {'first_mission'}
    """
    rows = list(rows)
    earned: set[str] = set()

    completed = sum(1 for r in rows if r.is_complete)
    if completed >= 1:
        earned.add("first_mission")
    if completed >= thresholds.all_missions:
        earned.add("all_missions")

    for achievement_id, decision_type in TYPE_ACHIEVEMENTS:
        column = f"{decision_type.value}_decisions"
        if sum(getattr(r, column) for r in rows) >= thresholds.type_decisions:
            earned.add(achievement_id)

    if sum(r.decisions_made for r in rows) >= thresholds.explorer_decisions:
        earned.add("explorer")

    if any(
        r.good_decisions >= thresholds.perfectionist_good and r.bad_decisions == 0
        for r in rows
    ):
        earned.add("perfectionist")

    if current_mission_id is not None:
        current = next((r for r in rows if r.mission_id == current_mission_id), None)
        if (
            current is not None
            and current.is_complete
            and 0 < current.time_spent_seconds < thresholds.speed_runner_max_seconds
        ):
            earned.add("speed_runner")

    if any(r.time_spent_seconds > thresholds.storyteller_min_seconds for r in rows):
        earned.add("storyteller")

    return earned
