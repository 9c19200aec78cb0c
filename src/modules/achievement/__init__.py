"""
Achievement Module
==================

- catalog: the twelve achievements
- evaluator: pure predicates over progress rows
- service: AchievementService (idempotent grants, one-shot triggers)
"""

from .catalog import ACHIEVEMENTS, TRIGGERED_ACHIEVEMENT_IDS, Achievement, find_achievement, get_achievement
from .evaluator import AchievementThresholds, evaluate_predicates
from .service import AchievementService, UnlockedAchievement, UserAchievementRepository

__all__ = [
    "ACHIEVEMENTS",
    "TRIGGERED_ACHIEVEMENT_IDS",
    "Achievement",
    "AchievementService",
    "AchievementThresholds",
    "UnlockedAchievement",
    "UserAchievementRepository",
    "evaluate_predicates",
    "find_achievement",
    "get_achievement",
]
