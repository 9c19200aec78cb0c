"""
Achievement Catalog
===================

The fixed set of twelve achievements. Ten are predicates over cumulative
progress (see ``evaluator``); ``stop_master`` and ``social_butterfly`` are
granted by an external one-shot trigger.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from src.database.models.enums import AchievementCategory, AchievementRarity
from src.modules.shared.constants import ACHIEVEMENT_RARITY_XP, UNKNOWN_RARITY_XP
from src.modules.shared.exceptions import NotFoundError
from src.modules.shared.formulas import achievement_xp


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    icon: str
    category: AchievementCategory
    rarity: AchievementRarity
    triggered: bool = False

    def xp_reward(
        self,
        rarity_xp: Mapping[str, int] = ACHIEVEMENT_RARITY_XP,
        fallback: int = UNKNOWN_RARITY_XP,
    ) -> int:
        return achievement_xp(self.rarity, rarity_xp=rarity_xp, fallback=fallback)


ACHIEVEMENTS: tuple[Achievement, ...] = (
    # Completion
    Achievement(
        "first_mission", "First Steps", "Complete your first mission", "🌟",
        AchievementCategory.COMPLETION, AchievementRarity.COMMON,
    ),
    Achievement(
        "all_missions", "Adventure Master", "Complete all four missions", "👑",
        AchievementCategory.COMPLETION, AchievementRarity.LEGENDARY,
    ),
    # Decision
    Achievement(
        "diplomat", "Master Diplomat", "Make 3 diplomatic decisions", "🤝",
        AchievementCategory.DECISION, AchievementRarity.COMMON,
    ),
    Achievement(
        "strategist", "Grand Strategist", "Make 3 strategic decisions", "♟️",
        AchievementCategory.DECISION, AchievementRarity.COMMON,
    ),
    Achievement(
        "action_hero", "Action Hero", "Make 3 action decisions", "⚔️",
        AchievementCategory.DECISION, AchievementRarity.COMMON,
    ),
    Achievement(
        "detective", "Master Detective", "Make 3 investigation decisions", "🔍",
        AchievementCategory.DECISION, AchievementRarity.COMMON,
    ),
    # Time
    Achievement(
        "speed_runner", "Speed Runner", "Complete a mission in under 3 minutes", "⚡",
        AchievementCategory.TIME, AchievementRarity.EPIC,
    ),
    Achievement(
        "storyteller", "Master Storyteller", "Spend over 5 minutes on a single mission", "📚",
        AchievementCategory.TIME, AchievementRarity.RARE,
    ),
    # Exploration
    Achievement(
        "explorer", "Curious Explorer", "Make 10 decisions across all missions", "🗺️",
        AchievementCategory.EXPLORATION, AchievementRarity.COMMON,
    ),
    # Special
    Achievement(
        "perfectionist", "Perfectionist",
        "Make 5 good decisions with no bad decisions in a mission", "🔄",
        AchievementCategory.SPECIAL, AchievementRarity.RARE,
    ),
    Achievement(
        "stop_master", "Stop Command Expert", "Use the stop command once", "🛑",
        AchievementCategory.SPECIAL, AchievementRarity.COMMON, triggered=True,
    ),
    Achievement(
        "social_butterfly", "Social Butterfly", "Export your results data", "📊",
        AchievementCategory.SPECIAL, AchievementRarity.COMMON, triggered=True,
    ),
)

ACHIEVEMENTS_BY_ID: Mapping[str, Achievement] = MappingProxyType(
    {a.id: a for a in ACHIEVEMENTS}
)

TRIGGERED_ACHIEVEMENT_IDS: frozenset[str] = frozenset(
    a.id for a in ACHIEVEMENTS if a.triggered
)


def find_achievement(achievement_id: str) -> Optional[Achievement]:
    return ACHIEVEMENTS_BY_ID.get(achievement_id)


def get_achievement(achievement_id: str) -> Achievement:
    achievement = find_achievement(achievement_id)
    if achievement is None:
        raise NotFoundError("Achievement", achievement_id)
    return achievement
