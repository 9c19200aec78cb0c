"""
Achievement Service
===================

Purpose
-------
Persists achievement unlocks. Predicates are re-evaluated against freshly
read progress rows inside the granting transaction; each grant is an
``INSERT ... ON CONFLICT DO NOTHING`` on ``(user_id, achievement_id)``, and
only a grant that actually inserted a row awards the rarity XP.

Domain
------
- Evaluation may run after every mutation; repeated runs grant nothing new
- ``stop_master`` and ``social_butterfly`` are granted by ``trigger()`` only
- Unlocks are never revoked (a mission reset keeps them)

Events
------
- ``achievement.unlocked`` per new unlock
- ``player.xp_added`` / ``player.leveled_up`` for the rarity XP
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from sqlalchemy import select

from src.core.database.base import utc_now
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models.progression.user_achievement import UserAchievement
from src.domain.models.progress import MissionProgressSnapshot
from src.modules.achievement.catalog import (
    ACHIEVEMENTS,
    TRIGGERED_ACHIEVEMENT_IDS,
    Achievement,
    find_achievement,
)
from src.modules.achievement.evaluator import AchievementThresholds, evaluate_predicates
from src.modules.progress.repository import MissionProgressRepository
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import ACHIEVEMENT_RARITY_XP, UNKNOWN_RARITY_XP
from src.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus
    from src.modules.player.xp_service import PlayerXPService, XPAward


@dataclass(frozen=True)
class UnlockedAchievement:
    achievement: Achievement
    unlocked_at: datetime
    mission_context: Optional[str] = None
    xp_awarded: int = 0


# ============================================================================
# Repository
# ============================================================================


class UserAchievementRepository(BaseRepository[UserAchievement]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(UserAchievement, logger)

    async def unlocked_ids(self, session: AsyncSession, user_id: str) -> set[str]:
        result = await session.execute(
            select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
        )
        return set(result.scalars().all())

    async def grant(
        self,
        session: AsyncSession,
        user_id: str,
        achievement_id: str,
        mission_context: Optional[str],
    ) -> Optional[datetime]:
        """
        Insert the unlock row unless it exists.

        Returns:
            The unlock time for a new row, None when already unlocked
        """
        unlocked_at = utc_now()
        stmt = (
            self.insert(session)
            .values(
                user_id=user_id,
                achievement_id=achievement_id,
                mission_context=mission_context,
                unlocked_at=unlocked_at,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
            .returning(self.table.c.id)
        )
        result = await session.execute(stmt)
        return unlocked_at if result.scalar_one_or_none() is not None else None

    async def list_for_user(self, session: AsyncSession, user_id: str) -> List[UserAchievement]:
        return await self.find_many_where(
            session,
            UserAchievement.user_id == user_id,
            order_by=[UserAchievement.unlocked_at, UserAchievement.id],
        )


# ============================================================================
# Service
# ============================================================================


class AchievementService(BaseService):
    """
    Public Methods
    --------------
    - evaluate() -> Grant every predicate achievement that now holds
    - trigger() -> Grant a one-shot achievement (stop_master, social_butterfly)
    - list_unlocked() -> Unlocked catalog entries with unlock times
    """

    def __init__(
        self,
        db_service: DatabaseService,
        xp_service: PlayerXPService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.db = db_service
        self._xp = xp_service
        self._achievement_repo = UserAchievementRepository(
            logger=get_logger(f"{__name__}.UserAchievementRepository")
        )
        self._progress_repo = MissionProgressRepository(
            logger=get_logger(f"{__name__}.MissionProgressRepository")
        )

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def evaluate(
        self, user_id: str, current_mission_id: Optional[str] = None
    ) -> List[UnlockedAchievement]:
        """
        Re-evaluate every predicate against the user's current rows.

        Args:
            user_id: User to evaluate
            current_mission_id: Mission just played; needed for speed_runner

        Returns:
            Achievements unlocked by this call, in catalog order
        """
        user_id = InputValidator.validate_user_id(user_id)
        if current_mission_id is not None:
            current_mission_id = InputValidator.validate_mission_id(current_mission_id)

        thresholds = AchievementThresholds.from_config(self._config)
        unlocked: List[UnlockedAchievement] = []
        awards: List[XPAward] = []

        async with self.db.get_transaction() as session:
            # Write first: SQLite takes the write lock here instead of
            # failing a read-to-write upgrade later in the transaction.
            await self._xp.ensure_account(session, user_id)

            rows = await self._progress_repo.list_for_user(session, user_id)
            snapshots = [MissionProgressSnapshot.from_row(r) for r in rows]
            already = await self._achievement_repo.unlocked_ids(session, user_id)
            earned = evaluate_predicates(snapshots, current_mission_id, thresholds) - already

            for achievement in ACHIEVEMENTS:
                if achievement.id not in earned:
                    continue
                grant = await self._grant(session, user_id, achievement, current_mission_id)
                if grant is not None:
                    unlocked.append(grant[0])
                    if grant[1] is not None:
                        awards.append(grant[1])

        await self._publish(user_id, unlocked, awards)
        return unlocked

    async def trigger(
        self, user_id: str, achievement_id: str, mission_id: Optional[str] = None
    ) -> Optional[UnlockedAchievement]:
        """
        Grant an externally triggered achievement.

        Returns:
            The unlock, or None when the user already had it

        Raises:
            ValidationError: ``achievement_id`` is not a triggerable achievement
        """
        user_id = InputValidator.validate_user_id(user_id)
        if mission_id is not None:
            mission_id = InputValidator.validate_mission_id(mission_id)
        achievement = find_achievement(achievement_id) if isinstance(achievement_id, str) else None
        if achievement is None or achievement.id not in TRIGGERED_ACHIEVEMENT_IDS:
            raise ValidationError(
                "achievement_id",
                f"'{achievement_id}' cannot be triggered; expected one of "
                f"{', '.join(sorted(TRIGGERED_ACHIEVEMENT_IDS))}",
            )

        self.log_operation("trigger_achievement", user_id=user_id, achievement_id=achievement.id)

        awards: List[XPAward] = []
        async with self.db.get_transaction() as session:
            grant = await self._grant(session, user_id, achievement, mission_id)
            if grant is not None and grant[1] is not None:
                awards.append(grant[1])

        if grant is None:
            return None

        await self._publish(user_id, [grant[0]], awards)
        return grant[0]

    async def list_unlocked(self, user_id: str) -> List[UnlockedAchievement]:
        user_id = InputValidator.validate_user_id(user_id)

        async with self.db.get_session() as session:
            rows = await self._achievement_repo.list_for_user(session, user_id)

        result: List[UnlockedAchievement] = []
        for row in rows:
            achievement = find_achievement(row.achievement_id)
            if achievement is None:
                self.log.warning(
                    "Unlocked achievement not in catalog",
                    extra={"user_id": user_id, "achievement_id": row.achievement_id},
                )
                continue
            result.append(
                UnlockedAchievement(
                    achievement=achievement,
                    unlocked_at=row.unlocked_at,
                    mission_context=row.mission_context,
                )
            )
        return result

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    def _rarity_xp(self) -> tuple[Mapping[str, int], int]:
        section: Dict[str, Any] = self.get_config("progression.xp.achievement_rarity") or {}
        table = {**ACHIEVEMENT_RARITY_XP, **{k: int(v) for k, v in section.items() if k != "fallback"}}
        return table, int(section.get("fallback", UNKNOWN_RARITY_XP))

    async def _grant(
        self,
        session: AsyncSession,
        user_id: str,
        achievement: Achievement,
        mission_context: Optional[str],
    ) -> Optional[tuple[UnlockedAchievement, Optional[XPAward]]]:
        unlocked_at = await self._achievement_repo.grant(
            session, user_id, achievement.id, mission_context
        )
        if unlocked_at is None:
            return None

        rarity_xp, fallback = self._rarity_xp()
        xp = achievement.xp_reward(rarity_xp, fallback)
        award = await self._xp.award_xp(
            session, user_id, xp, reason=f"achievement:{achievement.id}"
        )
        return (
            UnlockedAchievement(
                achievement=achievement,
                unlocked_at=unlocked_at,
                mission_context=mission_context,
                xp_awarded=xp,
            ),
            award,
        )

    async def _publish(
        self,
        user_id: str,
        unlocked: List[UnlockedAchievement],
        awards: List[XPAward],
    ) -> None:
        for item in unlocked:
            await self.emit_event(
                "achievement.unlocked",
                {
                    "achievement_id": item.achievement.id,
                    "name": item.achievement.name,
                    "rarity": item.achievement.rarity.value,
                    "xp_awarded": item.xp_awarded,
                },
                {"user_id": user_id, "mission_id": item.mission_context},
            )
            self.log.info(
                f"Achievement unlocked: {item.achievement.id}",
                extra={
                    "user_id": user_id,
                    "achievement_id": item.achievement.id,
                    "xp_awarded": item.xp_awarded,
                },
            )
        for award in awards:
            await self._xp.publish_award(award)
