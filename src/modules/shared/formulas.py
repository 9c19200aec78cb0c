"""
Progression Formulas

Purpose
-------
Pure calculation functions for the progression rules: decision XP with the
difficulty multiplier, the one-time mission completion bonus, levels derived
from total XP, achievement rewards and the ``HH:MM:SS`` interval codec used
to exchange mission play time.

Design Notes
------------
All formulas:
- Accept tunables as explicit keyword arguments, defaulting to
  src.modules.shared.constants (services pass the ConfigManager values)
- Have no side effects, database access or config access
- Round half up (``7.5 -> 8``), not Python's banker's rounding

Usage
-----
    from src.modules.shared.formulas import calculate_decision_xp, calculate_level

    xp = calculate_decision_xp(decision)
    level = calculate_level(total_xp)
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Mapping, Optional

from src.modules.shared.constants import (
    ACHIEVEMENT_RARITY_XP,
    COMPLETION_FLAT_BONUS,
    COMPLETION_PERCENTAGE_MULTIPLIER,
    COMPLETION_XP_PER_GOOD_DECISION,
    GOOD_DECISION_BASE_XP,
    LEVEL_XP_QUANTUM,
    MAX_COMPLETION_PERCENTAGE,
    UNKNOWN_RARITY_XP,
)
from src.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from src.domain.models.decision import NormalizedDecision
    from src.domain.models.progress import MissionProgressSnapshot


# ============================================================================
# ROUNDING
# ============================================================================


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from zero.

    Example:
        >>> round_half_up(7.5)
        8
        >>> round_half_up(2.5)
        3
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ============================================================================
# DECISION XP
# ============================================================================


def calculate_decision_xp(
    decision: NormalizedDecision,
    *,
    base_xp: int = GOOD_DECISION_BASE_XP,
) -> int:
    """
    XP earned by one decision.

    ``round(base_xp * bonus)`` when the decision is valid and good, plus
    ``round(progress_advancement * bonus)`` when it advanced the story.
    The progress term applies to invalid decisions too.

    Args:
        decision: Normalized decision
        base_xp: XP for a good decision before the multiplier

    Returns:
        XP to award (never negative)

    Example:
        >>> # strategic, good, story decision, progress 10, bonus 1.5
        >>> calculate_decision_xp(decision)
        23
    """
    xp = 0
    if decision.is_valid_decision and decision.is_good:
        xp += round_half_up(base_xp * decision.difficulty_bonus)
    if decision.progress_advancement > 0:
        xp += round_half_up(decision.progress_advancement * decision.difficulty_bonus)
    return xp


def calculate_completion_bonus(
    completion_percentage: int,
    good_decisions: int,
    *,
    percentage_multiplier: int = COMPLETION_PERCENTAGE_MULTIPLIER,
    per_good_decision: int = COMPLETION_XP_PER_GOOD_DECISION,
    flat_bonus: int = COMPLETION_FLAT_BONUS,
) -> int:
    """
    XP for finishing a mission.

    ``floor(pct * 2) + good_decisions * 5``, plus a flat 200 only when the
    percentage is exactly 100.

    Example:
        >>> calculate_completion_bonus(100, 4)
        420
        >>> calculate_completion_bonus(80, 4)
        180
    """
    bonus = math.floor(completion_percentage * percentage_multiplier)
    bonus += good_decisions * per_good_decision
    if completion_percentage == MAX_COMPLETION_PERCENTAGE:
        bonus += flat_bonus
    return bonus


@dataclass(frozen=True)
class RewardBreakdown:
    """XP for one decision, split into its sources."""

    decision_xp: int
    completion_bonus: int = 0

    @property
    def total(self) -> int:
        return self.decision_xp + self.completion_bonus

    @property
    def completion_bonus_earned(self) -> bool:
        return self.completion_bonus > 0


def completion_bonus_due(
    old_progress: MissionProgressSnapshot, new_progress: MissionProgressSnapshot
) -> bool:
    """
    True when the mission stands at 100 after this step and the bonus is unclaimed.

    A row already at 100 (set through ``upsert``) still pays on its next decision.
    """
    return (
        new_progress.completion_percentage == MAX_COMPLETION_PERCENTAGE
        and not old_progress.completion_bonus_awarded
    )


def compute_reward(
    decision: NormalizedDecision,
    old_progress: MissionProgressSnapshot,
    new_progress: MissionProgressSnapshot,
    *,
    base_xp: int = GOOD_DECISION_BASE_XP,
    percentage_multiplier: int = COMPLETION_PERCENTAGE_MULTIPLIER,
    per_good_decision: int = COMPLETION_XP_PER_GOOD_DECISION,
    flat_bonus: int = COMPLETION_FLAT_BONUS,
) -> RewardBreakdown:
    """
    Total reward for applying ``decision`` to ``old_progress``.

    The completion bonus is included on the first step that leaves the mission
    at 100 while ``completion_bonus_awarded`` is still false; it is computed
    from ``new_progress`` so the finishing decision's good count is included.
    """
    decision_xp = calculate_decision_xp(decision, base_xp=base_xp)

    completion_bonus = 0
    if completion_bonus_due(old_progress, new_progress):
        completion_bonus = calculate_completion_bonus(
            new_progress.completion_percentage,
            new_progress.good_decisions,
            percentage_multiplier=percentage_multiplier,
            per_good_decision=per_good_decision,
            flat_bonus=flat_bonus,
        )

    return RewardBreakdown(decision_xp=decision_xp, completion_bonus=completion_bonus)


# ============================================================================
# LEVELS
# ============================================================================


def calculate_level(total_xp: int, *, quantum: int = LEVEL_XP_QUANTUM) -> int:
    """
    Level for a lifetime XP total.

    Example:
        >>> calculate_level(0), calculate_level(199), calculate_level(200)
        (1, 1, 2)
    """
    if total_xp <= 0:
        return 1
    return total_xp // quantum + 1


def detect_level_up(
    old_xp: int, new_xp: int, *, quantum: int = LEVEL_XP_QUANTUM
) -> tuple[int, int, bool]:
    """
    Compare levels before and after an award.

    Returns:
        ``(old_level, new_level, leveled_up)``

    Example:
        >>> detect_level_up(190, 215)
        (1, 2, True)
    """
    old_level = calculate_level(old_xp, quantum=quantum)
    new_level = calculate_level(new_xp, quantum=quantum)
    return old_level, new_level, new_level > old_level


def xp_to_next_level(total_xp: int, *, quantum: int = LEVEL_XP_QUANTUM) -> int:
    return quantum - (max(total_xp, 0) % quantum)


# ============================================================================
# ACHIEVEMENTS
# ============================================================================


def achievement_xp(
    rarity: Optional[str],
    *,
    rarity_xp: Mapping[str, int] = ACHIEVEMENT_RARITY_XP,
    fallback: int = UNKNOWN_RARITY_XP,
) -> int:
    """
    XP granted when an achievement of ``rarity`` unlocks.

    Example:
        >>> achievement_xp("legendary"), achievement_xp("mythic")
        (500, 25)
    """
    if rarity is None:
        return fallback
    key = getattr(rarity, "value", rarity)
    return int(rarity_xp.get(str(key).lower(), fallback))


# ============================================================================
# INTERVAL CODEC
# ============================================================================

_CLOCK_RE = re.compile(
    r"^(?:(?P<days>\d+)\s+days?,?\s+)?(?P<h>\d+):(?P<m>[0-5]?\d):(?P<s>[0-5]?\d)(?:\.\d+)?$"
)
_SECONDS_RE = re.compile(r"^(?P<n>\d+)(?:\.\d+)?\s*(?:s|secs?|seconds?)?$")


def format_interval(seconds: int) -> str:
    """
    Format elapsed seconds as ``HH:MM:SS``; hours are not wrapped at 24.

    Example:
        >>> format_interval(3725)
        '01:02:05'
    """
    if isinstance(seconds, bool) or seconds < 0:
        raise ValidationError("time_spent", f"Elapsed time cannot be negative, got {seconds}")
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def parse_interval(text: str) -> int:
    """
    Parse an interval string into whole seconds.

    Accepts ``HH:MM:SS`` (optionally prefixed with ``N days``), and the
    ``"<n> seconds"`` form. Fractional seconds are truncated.

    Example:
        >>> parse_interval("00:03:05"), parse_interval("185 seconds")
        (185, 185)

    Raises:
        ValidationError: text is not a recognised interval
    """
    if not isinstance(text, str):
        raise ValidationError("time_spent", f"Interval must be a string, got {type(text).__name__}")

    value = text.strip().lower()

    clock = _CLOCK_RE.match(value)
    if clock:
        days = int(clock.group("days") or 0)
        return (
            days * 86400
            + int(clock.group("h")) * 3600
            + int(clock.group("m")) * 60
            + int(clock.group("s"))
        )

    plain = _SECONDS_RE.match(value)
    if plain:
        return int(plain.group("n"))

    raise ValidationError("time_spent", f"Unrecognised interval '{text}'")
