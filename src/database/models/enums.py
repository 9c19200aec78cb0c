"""
Database Model Enums
====================

Enumerations for categorical columns across the progression schema.

They are declarative schema helpers shared by the ORM models, the pure
domain layer and the services; they hold no business logic.
"""

from __future__ import annotations

import enum


class DecisionType(str, enum.Enum):
    """
    Category assigned to a player choice by the classifier.

    ``NONE`` marks small talk or anything that is not a story decision.
    """

    DIPLOMATIC = "diplomatic"
    STRATEGIC = "strategic"
    ACTION = "action"
    INVESTIGATION = "investigation"
    NONE = "none"

    @classmethod
    def counted(cls) -> tuple["DecisionType", ...]:
        """The four types that count toward decision statistics."""
        return (cls.DIPLOMATIC, cls.STRATEGIC, cls.ACTION, cls.INVESTIGATION)


class DecisionQuality(str, enum.Enum):
    GOOD = "good"
    BAD = "bad"
    NEUTRAL = "neutral"


class AchievementRarity(str, enum.Enum):
    """Rarity tier; determines the XP granted on unlock."""

    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class AchievementCategory(str, enum.Enum):
    COMPLETION = "completion"
    DECISION = "decision"
    TIME = "time"
    EXPLORATION = "exploration"
    SPECIAL = "special"


class MissionDifficulty(str, enum.Enum):
    """Mission tier; each tier maps to an XP difficulty multiplier."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"


class ChatRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
