"""
Player XP Service
=================

Purpose
-------
Lifetime experience points and levels per user. XP only grows; the level is
always ``floor(total_xp / quantum) + 1`` and is recomputed in the same SQL
statement that adds the XP, so concurrent awards can never leave a stale
level behind.

Domain
------
- ``award_xp(session, ...)`` joins the caller's transaction (decision flow,
  achievement grants); the caller publishes the returned award after commit
- ``add_xp(...)`` is the standalone variant that opens its own transaction
- A user without a row reads as ``total_xp=0, level=1``

Events
------
- ``player.xp_added`` for every positive award
- ``player.leveled_up`` when the level changed
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from src.core.database.base import utc_now
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models.core.user_xp import UserXP
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import LEVEL_XP_QUANTUM
from src.modules.shared.formulas import calculate_level, detect_level_up, xp_to_next_level

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


@dataclass(frozen=True)
class UserXPState:
    user_id: str
    total_xp: int = 0
    level: int = 1
    xp_to_next_level: int = LEVEL_XP_QUANTUM


@dataclass(frozen=True)
class XPAward:
    """Result of one XP increment."""

    user_id: str
    amount: int
    reason: str
    old_xp: int
    new_xp: int
    old_level: int
    new_level: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


# ============================================================================
# Repository
# ============================================================================


class UserXPRepository(BaseRepository[UserXP]):
    """Atomic ``total_xp = total_xp + n`` upserts on ``user_xp``."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(UserXP, logger)

    async def ensure_exists(self, session: AsyncSession, user_id: str) -> None:
        now = utc_now()
        stmt = (
            self.insert(session)
            .values(user_id=user_id, total_xp=0, level=1, created_at=now, updated_at=now)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        await session.execute(stmt)

    async def increment(
        self, session: AsyncSession, user_id: str, amount: int, quantum: int
    ) -> tuple[int, int]:
        """
        Add ``amount`` and recompute the level in one statement.

        Returns:
            ``(total_xp, level)`` after the increment
        """
        table = self.table
        now = utc_now()
        stmt = self.insert(session).values(
            user_id=user_id,
            total_xp=amount,
            level=calculate_level(amount, quantum=quantum),
            created_at=now,
            updated_at=now,
        )
        new_total = table.c.total_xp + stmt.excluded.total_xp
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "total_xp": new_total,
                "level": new_total // quantum + 1,
                "updated_at": now,
            },
        ).returning(table.c.total_xp, table.c.level)

        result = await session.execute(stmt)
        total_xp, level = result.one()
        return int(total_xp), int(level)

    async def find_by_user(self, session: AsyncSession, user_id: str) -> Optional[UserXP]:
        return await self.find_one_where(session, UserXP.user_id == user_id)


# ============================================================================
# Service
# ============================================================================


class PlayerXPService(BaseService):
    """
    Service for lifetime XP and levels.

    Public Methods
    --------------
    - get_xp() -> Current XP state (zero state for unknown users)
    - award_xp() -> Increment inside the caller's transaction
    - add_xp() -> Increment in its own transaction and publish events
    - publish_award() -> Emit the events for a committed award
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
        self._xp_repo = UserXPRepository(logger=get_logger(f"{__name__}.UserXPRepository"))

    @property
    def level_quantum(self) -> int:
        return self.get_positive_int_config("progression.xp.level_quantum", LEVEL_XP_QUANTUM)

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_xp(self, user_id: str) -> UserXPState:
        user_id = InputValidator.validate_user_id(user_id)

        async with self.db.get_session() as session:
            row = await self._xp_repo.find_by_user(session, user_id)

        return self._to_state(user_id, row.total_xp if row else 0)

    async def get_xp_in_session(self, session: AsyncSession, user_id: str) -> UserXPState:
        row = await self._xp_repo.find_by_user(session, user_id)
        return self._to_state(user_id, row.total_xp if row else 0)

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def ensure_account(self, session: AsyncSession, user_id: str) -> None:
        """Create the zero-XP row if missing, inside the caller's transaction."""
        await self._xp_repo.ensure_exists(session, user_id)

    async def award_xp(
        self,
        session: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
    ) -> Optional[XPAward]:
        """
        Add XP within an open transaction.

        Publishing is left to the caller (``publish_award``) because events
        must follow the commit.

        Returns:
            The award, or None when ``amount`` is zero
        """
        amount = InputValidator.validate_non_negative_integer(amount, "xp_amount")
        if amount == 0:
            return None

        quantum = self.level_quantum
        new_xp, new_level = await self._xp_repo.increment(session, user_id, amount, quantum)
        old_xp = new_xp - amount
        old_level, _, _ = detect_level_up(old_xp, new_xp, quantum=quantum)

        return XPAward(
            user_id=user_id,
            amount=amount,
            reason=reason,
            old_xp=old_xp,
            new_xp=new_xp,
            old_level=old_level,
            new_level=new_level,
        )

    async def add_xp(self, user_id: str, amount: int, reason: str) -> Optional[XPAward]:
        user_id = InputValidator.validate_user_id(user_id)

        self.log_operation("add_xp", user_id=user_id, xp_amount=amount, reason=reason)

        async with self.db.get_transaction() as session:
            award = await self.award_xp(session, user_id, amount, reason)

        if award:
            await self.publish_award(award)
        return award

    async def publish_award(self, award: XPAward) -> None:
        """Emit ``player.xp_added`` and, on a level change, ``player.leveled_up``."""
        await self.emit_event(
            "player.xp_added",
            {
                "amount": award.amount,
                "reason": award.reason,
                "old_xp": award.old_xp,
                "new_xp": award.new_xp,
            },
            {"user_id": award.user_id},
        )

        if award.leveled_up:
            await self.emit_event(
                "player.leveled_up",
                {"old_level": award.old_level, "new_level": award.new_level},
                {"user_id": award.user_id},
            )
            self.log.info(
                f"Level up: {award.old_level} -> {award.new_level}",
                extra={
                    "user_id": award.user_id,
                    "old_level": award.old_level,
                    "new_level": award.new_level,
                    "total_xp": award.new_xp,
                },
            )

    def _to_state(self, user_id: str, total_xp: int) -> UserXPState:
        quantum = self.level_quantum
        return UserXPState(
            user_id=user_id,
            total_xp=total_xp,
            level=calculate_level(total_xp, quantum=quantum),
            xp_to_next_level=xp_to_next_level(total_xp, quantum=quantum),
        )
