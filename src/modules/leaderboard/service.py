"""
Leaderboard Service
===================

Purpose
-------
Per-user summary statistics and the global ranking derived from the
progress rows, lifetime XP and unlocked achievements. Read-only.

Domain
------
- Success rate: ``round(good / (good + bad) * 100)``, 0 with no decisions
- Favorite companion: companion of the most completed missions; ties go to
  the mission listed first in the catalog; "None" without completions
- Rarity tier by total XP: >= 5000 legendary, >= 2000 epic, >= 500 rare
- Ranking: total XP, then missions completed, then success rate (all
  descending), user id as the final tie-break; ranks are 1-based
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select

from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models.core.user_xp import UserXP
from src.database.models.enums import DecisionType
from src.database.models.progression.user_achievement import UserAchievement
from src.domain.models.progress import MissionProgressSnapshot
from src.modules.mission.catalog import list_missions
from src.modules.progress.repository import MissionProgressRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import (
    DEFAULT_USER_RARITY,
    LEVEL_XP_QUANTUM,
    NO_FAVORITE_COMPANION,
    USER_RARITY_TIERS,
)
from src.modules.shared.formulas import calculate_level, round_half_up

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


@dataclass(frozen=True)
class UserSummary:
    user_id: str
    total_xp: int
    level: int
    missions_completed: int
    success_rate: int
    total_decisions: int
    good_decisions: int
    bad_decisions: int
    decisions_by_type: Dict[str, int]
    playtime_seconds: int
    avg_completion_seconds: Optional[int]
    achievements_unlocked: int
    favorite_companion: str
    rarity: str
    rank: Optional[int] = None


# ============================================================================
# Pure helpers
# ============================================================================


def success_rate(good: int, bad: int) -> int:
    judged = good + bad
    if judged == 0:
        return 0
    return round_half_up(good / judged * 100)


def user_rarity(total_xp: int) -> str:
    for threshold, tier in USER_RARITY_TIERS:
        if total_xp >= threshold:
            return tier
    return DEFAULT_USER_RARITY


def favorite_companion(rows: Iterable[MissionProgressSnapshot]) -> str:
    completed = Counter(r.mission_id for r in rows if r.is_complete)
    best: Optional[str] = None
    best_count = 0
    for mission in list_missions():
        count = completed.get(mission.id, 0)
        if count > best_count:
            best, best_count = mission.companion, count
    return best or NO_FAVORITE_COMPANION


def build_summary(
    user_id: str,
    rows: Sequence[MissionProgressSnapshot],
    total_xp: int,
    achievements_unlocked: int,
    *,
    level_quantum: int = LEVEL_XP_QUANTUM,
) -> UserSummary:
    """Aggregate one user's rows into a summary."""
    good = sum(r.good_decisions for r in rows)
    bad = sum(r.bad_decisions for r in rows)
    completed = [r for r in rows if r.is_complete]
    avg_completion = (
        round_half_up(sum(r.time_spent_seconds for r in completed) / len(completed))
        if completed
        else None
    )

    return UserSummary(
        user_id=user_id,
        total_xp=total_xp,
        level=calculate_level(total_xp, quantum=level_quantum),
        missions_completed=len(completed),
        success_rate=success_rate(good, bad),
        total_decisions=sum(r.decisions_made for r in rows),
        good_decisions=good,
        bad_decisions=bad,
        decisions_by_type={
            t.value: sum(getattr(r, f"{t.value}_decisions") for r in rows)
            for t in DecisionType.counted()
        },
        playtime_seconds=sum(r.time_spent_seconds for r in rows),
        avg_completion_seconds=avg_completion,
        achievements_unlocked=achievements_unlocked,
        favorite_companion=favorite_companion(rows),
        rarity=user_rarity(total_xp),
    )


def rank_summaries(summaries: Iterable[UserSummary]) -> List[UserSummary]:
    ordered = sorted(
        summaries,
        key=lambda s: (-s.total_xp, -s.missions_completed, -s.success_rate, s.user_id),
    )
    return [replace(s, rank=i) for i, s in enumerate(ordered, start=1)]


# ============================================================================
# Service
# ============================================================================


class LeaderboardService(BaseService):
    """
    Public Methods
    --------------
    - summarize_user() -> UserSummary for one user
    - rank_users() -> Ranked summaries for every user with progress or XP
    """

    def __init__(
        self,
        db_service: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.db = db_service
        self._progress_repo = MissionProgressRepository(
            logger=get_logger(f"{__name__}.MissionProgressRepository")
        )

    async def summarize_user(self, user_id: str) -> UserSummary:
        user_id = InputValidator.validate_user_id(user_id)

        async with self.db.get_session() as session:
            summaries = await self._summaries(session, [user_id])
        return summaries[0]

    async def rank_users(self, limit: Optional[int] = None) -> List[UserSummary]:
        if limit is not None:
            limit = InputValidator.validate_positive_integer(limit, "limit")

        async with self.db.get_session() as session:
            progress_users = await self._progress_repo.list_user_ids(session)
            xp_users = (await session.execute(select(UserXP.user_id))).scalars().all()
            user_ids = sorted(set(progress_users) | set(xp_users))
            summaries = await self._summaries(session, user_ids)

        ranked = rank_summaries(summaries)
        self.log.debug("Leaderboard ranked", extra={"users": len(ranked), "limit": limit})
        return ranked[:limit] if limit is not None else ranked

    async def _summaries(
        self, session: AsyncSession, user_ids: Sequence[str]
    ) -> List[UserSummary]:
        if not user_ids:
            return []

        rows_by_user: Dict[str, List[MissionProgressSnapshot]] = {u: [] for u in user_ids}
        rows = await self._progress_repo.find_many_where(
            session, self._progress_repo.model_class.user_id.in_(user_ids)
        )
        for row in rows:
            rows_by_user[row.user_id].append(MissionProgressSnapshot.from_row(row))

        xp_result = await session.execute(
            select(UserXP.user_id, UserXP.total_xp).where(UserXP.user_id.in_(user_ids))
        )
        xp_by_user = {u: int(xp) for u, xp in xp_result.all()}

        ach_result = await session.execute(
            select(UserAchievement.user_id, func.count())
            .where(UserAchievement.user_id.in_(user_ids))
            .group_by(UserAchievement.user_id)
        )
        achievements_by_user = {u: int(n) for u, n in ach_result.all()}

        quantum = self.get_positive_int_config("progression.xp.level_quantum", LEVEL_XP_QUANTUM)
        return [
            build_summary(
                u,
                rows_by_user[u],
                xp_by_user.get(u, 0),
                achievements_by_user.get(u, 0),
                level_quantum=quantum,
            )
            for u in user_ids
        ]
