"""
Unified model aggregator.

Importing this package registers every table on ``Base.metadata``.
"""

# --- Core ---
from .core.user_xp import UserXP

# --- Progression ---
from .progression.chat_message import ChatMessage
from .progression.decision_record import DecisionRecord
from .progression.mission_progress import MissionProgress
from .progression.user_achievement import UserAchievement

__all__ = [
    # Core
    "UserXP",
    # Progression
    "ChatMessage",
    "DecisionRecord",
    "MissionProgress",
    "UserAchievement",
]
