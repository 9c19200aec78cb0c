"""
Mission Catalog
===============

Static reference data for the four scripted missions: companion, difficulty
tier and the 25/50/75/100 milestones. The catalog is an immutable tuple;
lookups never touch the database.

The difficulty tier feeds the XP multiplier used when the classifier omits
``difficultyBonus``. On the decision path an unknown mission id falls back to
a 1.0 multiplier instead of failing.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from src.database.models.enums import MissionDifficulty
from src.modules.shared.constants import DEFAULT_DIFFICULTY_BONUS, DIFFICULTY_BONUS
from src.modules.shared.exceptions import NotFoundError


@dataclass(frozen=True)
class Milestone:
    progress: int
    event: str
    description: str


@dataclass(frozen=True)
class Mission:
    id: str
    title: str
    description: str
    companion: str
    difficulty: MissionDifficulty
    milestones: tuple[Milestone, ...]

    def difficulty_bonus(
        self, bonuses: Mapping[str, float] = DIFFICULTY_BONUS
    ) -> float:
        return float(bonuses.get(self.difficulty.value, DEFAULT_DIFFICULTY_BONUS))


LOST_CITY_ID = "670a8cdc-8961-438b-b67f-1b259767d8c5"
SPACE_ODYSSEY_ID = "b2fa59e6-d406-4c51-8b99-00e72c2a3a10"
ENCHANTED_FOREST_ID = "82761887-a4c7-4bd7-921a-4f0a3c18a558"
CYBER_HEIST_ID = "e5b455a2-9f57-448f-a0f9-7dd873fb0dfd"


MISSIONS: tuple[Mission, ...] = (
    Mission(
        id=LOST_CITY_ID,
        title="The Lost City",
        description="Uncover the secrets of an ancient civilization",
        companion="Professor Blue",
        difficulty=MissionDifficulty.BEGINNER,
        milestones=(
            Milestone(25, "Decipher the ancient entrance puzzle", "The first barrier is overcome"),
            Milestone(50, "Reach the inner sanctum", "Ancient guardians test your wisdom and courage"),
            Milestone(75, "Unlock the central vault", "The city's disappearance is explained"),
            Milestone(100, "Choose the fate of the ancient knowledge", "The legacy of the lost civilization is decided"),
        ),
    ),
    Mission(
        id=SPACE_ODYSSEY_ID,
        title="Space Odyssey",
        description="Navigate through an asteroid field in your spaceship",
        companion="Captain Nova",
        difficulty=MissionDifficulty.INTERMEDIATE,
        milestones=(
            Milestone(25, "Locate the source of the distress signal", "Survivors found, danger still surrounds you"),
            Milestone(50, "Rescue the stranded crew", "The asteroid field grows more unstable"),
            Milestone(75, "Find the cause of the field's instability", "This is no natural phenomenon"),
            Milestone(100, "Execute the final escape plan", "The crew and future travelers depend on your choice"),
        ),
    ),
    Mission(
        id=ENCHANTED_FOREST_ID,
        title="Enchanted Forest",
        description="Break the curse hurting magical creatures",
        companion="Fairy Lumi",
        difficulty=MissionDifficulty.ADVANCED,
        milestones=(
            Milestone(25, "Identify the curse's origin", "Unicorns, sprites and talking trees offer their wisdom"),
            Milestone(50, "Confront the dark magic at its source", "The curse fights back fiercely"),
            Milestone(75, "Gather the three sacred elements", "Ancient magic demands sacrifice"),
            Milestone(100, "Perform the ritual to break the curse", "Nature or darkness will prevail"),
        ),
    ),
    Mission(
        id=CYBER_HEIST_ID,
        title="Cyber Heist",
        description="Infiltrate a high-security digital vault",
        companion="Sergeant Nexus",
        difficulty=MissionDifficulty.EXPERT,
        milestones=(
            Milestone(25, "Bypass the outer firewall", "The real defenses are just awakening"),
            Milestone(50, "Get past the AI guardian protocols", "Hostile programs fight back in cyberspace"),
            Milestone(75, "Decrypt the evidence vault", "The corporation's deadliest countermeasures activate"),
            Milestone(100, "Escape with the evidence", "Your choices decide how justice is served"),
        ),
    ),
)

_MISSIONS_BY_ID: Mapping[str, Mission] = MappingProxyType({m.id: m for m in MISSIONS})


def list_missions() -> tuple[Mission, ...]:
    return MISSIONS


def find_mission(mission_id: str) -> Optional[Mission]:
    return _MISSIONS_BY_ID.get(mission_id)


def get_mission(mission_id: str) -> Mission:
    """
    Raises:
        NotFoundError: no mission with this id
    """
    mission = find_mission(mission_id)
    if mission is None:
        raise NotFoundError("Mission", mission_id)
    return mission


def difficulty_bonus_for(
    mission_id: Optional[str],
    bonuses: Mapping[str, float] = DIFFICULTY_BONUS,
) -> float:
    """XP multiplier for a mission; 1.0 for an unknown or missing id."""
    mission = find_mission(mission_id) if mission_id else None
    if mission is None:
        return DEFAULT_DIFFICULTY_BONUS
    return mission.difficulty_bonus(bonuses)


def companion_for(mission_id: str) -> Optional[str]:
    mission = find_mission(mission_id)
    return mission.companion if mission else None


def milestones_crossed(
    mission_id: str, old_percentage: int, new_percentage: int
) -> tuple[Milestone, ...]:
    """
    Milestones passed on the way from ``old_percentage`` up to ``new_percentage``.

    Empty when progress did not increase or the mission is unknown.
    """
    mission = find_mission(mission_id)
    if mission is None or new_percentage <= old_percentage:
        return ()
    return tuple(
        m for m in mission.milestones if old_percentage < m.progress <= new_percentage
    )
