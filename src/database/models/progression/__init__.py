"""
Progression domain ORM models.

Exports:
- ChatMessage
- DecisionRecord
- MissionProgress
- UserAchievement
"""

from .chat_message import ChatMessage
from .decision_record import DecisionRecord
from .mission_progress import MissionProgress
from .user_achievement import UserAchievement

__all__ = [
    "ChatMessage",
    "DecisionRecord",
    "MissionProgress",
    "UserAchievement",
]
