"""
Mission Module
==============

Domain: static mission reference data

- catalog: Mission, Milestone, lookups and difficulty multipliers
"""

from .catalog import (
    MISSIONS,
    Milestone,
    Mission,
    difficulty_bonus_for,
    find_mission,
    get_mission,
    list_missions,
    milestones_crossed,
)

__all__ = [
    "MISSIONS",
    "Milestone",
    "Mission",
    "difficulty_bonus_for",
    "find_mission",
    "get_mission",
    "list_missions",
    "milestones_crossed",
]
