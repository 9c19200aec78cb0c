"""
Progression Domain Constants

Purpose
-------
Default values for the progression rules: XP awards, level size, completion
bonus terms, achievement rarity rewards, difficulty multipliers and
achievement thresholds.

IMPORTANT:
These are the defaults. Services read the live values from
``config/progression.yaml`` through ConfigManager and fall back to these
when a key is absent. Infrastructure settings (database URL, pool sizes,
logging) belong in src/core/config/config.py.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Mappings are read-only (MappingProxyType)
- Grouped by rule family
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Final, Mapping

# ============================================================================
# DECISION XP
# ============================================================================

GOOD_DECISION_BASE_XP: Final[int] = 5  # Before the difficulty multiplier
DEFAULT_DIFFICULTY_BONUS: Final[float] = 1.0

# ============================================================================
# LEVELING
# ============================================================================

LEVEL_XP_QUANTUM: Final[int] = 200  # XP per level; level = floor(xp / 200) + 1

# ============================================================================
# MISSION COMPLETION
# ============================================================================

MAX_COMPLETION_PERCENTAGE: Final[int] = 100
COMPLETION_PERCENTAGE_MULTIPLIER: Final[int] = 2
COMPLETION_XP_PER_GOOD_DECISION: Final[int] = 5
COMPLETION_FLAT_BONUS: Final[int] = 200  # Only when the mission reaches 100
MIN_STOP_COMPLETION_PERCENTAGE: Final[int] = 5  # Recorded on an early stop

# ============================================================================
# ACHIEVEMENTS
# ============================================================================

ACHIEVEMENT_RARITY_XP: Final[Mapping[str, int]] = MappingProxyType(
    {
        "common": 50,
        "rare": 100,
        "epic": 200,
        "legendary": 500,
    }
)
UNKNOWN_RARITY_XP: Final[int] = 25

TYPE_DECISION_THRESHOLD: Final[int] = 3  # diplomat / strategist / action_hero / detective
EXPLORER_DECISION_THRESHOLD: Final[int] = 10
PERFECTIONIST_GOOD_THRESHOLD: Final[int] = 5
ALL_MISSIONS_THRESHOLD: Final[int] = 4
SPEED_RUNNER_MAX_SECONDS: Final[int] = 180  # Strictly under 3 minutes
STORYTELLER_MIN_SECONDS: Final[int] = 300  # Strictly over 5 minutes

# ============================================================================
# DIFFICULTY
# ============================================================================

DIFFICULTY_BONUS: Final[Mapping[str, float]] = MappingProxyType(
    {
        "Beginner": 1.0,
        "Intermediate": 1.2,
        "Advanced": 1.5,
        "Expert": 2.0,
    }
)

# ============================================================================
# LEADERBOARD
# ============================================================================

USER_RARITY_TIERS: Final[tuple[tuple[int, str], ...]] = (
    (5000, "legendary"),
    (2000, "epic"),
    (500, "rare"),
)
DEFAULT_USER_RARITY: Final[str] = "common"
NO_FAVORITE_COMPANION: Final[str] = "None"
