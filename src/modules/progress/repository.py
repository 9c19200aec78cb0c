"""
Mission Progress Repositories
=============================

Purpose
-------
Data access for the per-(user, mission) progress rows, the decision ledger
and the mission transcript. Every write that can race another writer is a
single ``INSERT ... ON CONFLICT`` statement keyed by the table's unique
index, so duplicate-key races never surface as errors and counters never
go through a read-modify-write cycle.

Write primitives
----------------
- ``ensure_exists``      insert zeroed row, do nothing on conflict
- ``upsert_fields``      field-level replace of whitelisted columns
  (``time_spent_seconds`` still never decreases)
- ``apply_increments``   ``col = col + n`` for counter deltas
- ``record_time``        ``time_spent_seconds = GREATEST(existing, new)``
- ``raise_completion_floor``  ``completion_percentage = GREATEST(existing, floor)``
- ``claim_completion_bonus``  conditional ``UPDATE``; rowcount says who won

None of these manage transactions; the calling service owns the session.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from sqlalchemy import func, select, update

from src.core.database.base import utc_now
from src.database.models.progression.chat_message import ChatMessage
from src.database.models.progression.decision_record import DecisionRecord
from src.database.models.progression.mission_progress import MissionProgress
from src.domain.models.decision import NormalizedDecision
from src.domain.models.progress import COUNTER_FIELDS
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


# Columns a caller may replace through a partial update. Counters are
# excluded: they only move through apply_increments.
PATCHABLE_FIELDS: frozenset[str] = frozenset(
    {
        "completion_percentage",
        "time_spent_seconds",
        "can_resume",
        "last_message_order",
    }
)


# ============================================================================
# MissionProgress
# ============================================================================


class MissionProgressRepository(BaseRepository[MissionProgress]):
    """Upsert primitives for ``user_mission_progress``."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(MissionProgress, logger)

    @staticmethod
    def _key(user_id: str, mission_id: str) -> tuple[Any, Any]:
        return (
            MissionProgress.user_id == user_id,
            MissionProgress.mission_id == mission_id,
        )

    async def get_row(
        self,
        session: AsyncSession,
        user_id: str,
        mission_id: str,
        *,
        for_update: bool = False,
    ) -> Optional[MissionProgress]:
        """
        Read the row straight from the database.

        ``populate_existing`` refreshes any instance already in the session's
        identity map, so a read after a Core upsert never returns stale values.
        """
        stmt = (
            select(MissionProgress)
            .where(*self._key(user_id, mission_id))
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(
        self, session: AsyncSession, user_id: str
    ) -> List[MissionProgress]:
        return await self.find_many_where(
            session,
            MissionProgress.user_id == user_id,
            order_by=[MissionProgress.last_updated.desc(), MissionProgress.id.desc()],
        )

    async def list_user_ids(self, session: AsyncSession) -> List[str]:
        result = await session.execute(
            select(MissionProgress.user_id).distinct().order_by(MissionProgress.user_id)
        )
        return list(result.scalars().all())

    async def ensure_exists(
        self, session: AsyncSession, user_id: str, mission_id: str
    ) -> MissionProgress:
        """
        Create a zeroed row unless one exists, then return the stored row.

        Concurrent callers converge on the same row; the loser's insert is a
        no-op rather than an integrity error.
        """
        now = utc_now()
        stmt = (
            self.insert(session)
            .values(
                user_id=user_id,
                mission_id=mission_id,
                created_at=now,
                last_updated=now,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "mission_id"])
        )
        await session.execute(stmt)

        row = await self.get_row(session, user_id, mission_id)
        if row is None:
            raise RuntimeError(
                f"Progress row for {user_id}/{mission_id} missing after ensure_exists"
            )
        return row

    async def upsert_fields(
        self,
        session: AsyncSession,
        user_id: str,
        mission_id: str,
        fields: Mapping[str, Any],
    ) -> MissionProgress:
        """
        Replace the given columns, creating a zeroed row first if needed.

        Raises:
            ValidationError: a field is not patchable
        """
        unknown = sorted(set(fields) - PATCHABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "partial_update",
                f"Cannot patch field(s): {', '.join(unknown)}",
            )

        now = utc_now()
        stmt = self.insert(session).values(
            user_id=user_id,
            mission_id=mission_id,
            created_at=now,
            last_updated=now,
            **fields,
        )
        set_: Dict[str, Any] = {name: stmt.excluded[name] for name in fields}
        if "time_spent_seconds" in set_:
            set_["time_spent_seconds"] = self.greatest(
                session, self.table.c.time_spent_seconds, stmt.excluded.time_spent_seconds
            )
        set_["last_updated"] = now
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "mission_id"], set_=set_
        )
        await session.execute(stmt)

        self.log.debug(
            "Progress fields upserted",
            extra={"user_id": user_id, "mission_id": mission_id, "fields": sorted(fields)},
        )
        return await self._reload(session, user_id, mission_id)

    async def apply_increments(
        self,
        session: AsyncSession,
        user_id: str,
        mission_id: str,
        deltas: Mapping[str, int],
        completion_percentage: Optional[int] = None,
    ) -> MissionProgress:
        """
        Add ``deltas`` to the counter columns in a single upsert.

        ``completion_percentage`` is assigned when given. An absent row is
        inserted with the deltas as its initial counters.
        """
        unknown = sorted(set(deltas) - set(COUNTER_FIELDS))
        if unknown:
            raise ValidationError("deltas", f"Not counter columns: {', '.join(unknown)}")

        table = self.table
        now = utc_now()
        values: Dict[str, Any] = dict(deltas)
        if completion_percentage is not None:
            values["completion_percentage"] = completion_percentage

        stmt = self.insert(session).values(
            user_id=user_id,
            mission_id=mission_id,
            created_at=now,
            last_updated=now,
            **values,
        )
        set_: Dict[str, Any] = {
            name: table.c[name] + stmt.excluded[name] for name in deltas
        }
        if completion_percentage is not None:
            set_["completion_percentage"] = stmt.excluded.completion_percentage
        set_["last_updated"] = now
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "mission_id"], set_=set_
        )
        await session.execute(stmt)

        self.log.debug(
            "Progress counters incremented",
            extra={
                "user_id": user_id,
                "mission_id": mission_id,
                "deltas": dict(deltas),
                "completion_percentage": completion_percentage,
            },
        )
        return await self._reload(session, user_id, mission_id)

    async def record_time(
        self, session: AsyncSession, user_id: str, mission_id: str, elapsed_seconds: int
    ) -> MissionProgress:
        """Store elapsed time; a smaller value than the stored one is ignored."""
        table = self.table
        now = utc_now()
        stmt = self.insert(session).values(
            user_id=user_id,
            mission_id=mission_id,
            time_spent_seconds=elapsed_seconds,
            created_at=now,
            last_updated=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "mission_id"],
            set_={
                "time_spent_seconds": self.greatest(
                    session, table.c.time_spent_seconds, stmt.excluded.time_spent_seconds
                ),
                "last_updated": now,
            },
        )
        await session.execute(stmt)
        return await self._reload(session, user_id, mission_id)

    async def raise_completion_floor(
        self, session: AsyncSession, user_id: str, mission_id: str, floor: int
    ) -> MissionProgress:
        table = self.table
        now = utc_now()
        stmt = self.insert(session).values(
            user_id=user_id,
            mission_id=mission_id,
            completion_percentage=floor,
            created_at=now,
            last_updated=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "mission_id"],
            set_={
                "completion_percentage": self.greatest(
                    session,
                    table.c.completion_percentage,
                    stmt.excluded.completion_percentage,
                ),
                "last_updated": now,
            },
        )
        await session.execute(stmt)
        return await self._reload(session, user_id, mission_id)

    async def claim_completion_bonus(
        self, session: AsyncSession, user_id: str, mission_id: str
    ) -> bool:
        """
        Flip ``completion_bonus_awarded`` if the row is complete and unclaimed.

        Returns:
            True only for the caller whose update changed the row
        """
        now = utc_now()
        stmt = (
            update(MissionProgress)
            .where(
                *self._key(user_id, mission_id),
                MissionProgress.completion_percentage == 100,
                MissionProgress.completion_bonus_awarded.is_(False),
            )
            .values(completion_bonus_awarded=True, completed_at=now, last_updated=now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        claimed = (result.rowcount or 0) == 1

        self.log.debug(
            "Completion bonus claim",
            extra={"user_id": user_id, "mission_id": mission_id, "claimed": claimed},
        )
        return claimed

    async def _reload(
        self, session: AsyncSession, user_id: str, mission_id: str
    ) -> MissionProgress:
        row = await self.get_row(session, user_id, mission_id)
        if row is None:
            raise RuntimeError(f"Progress row for {user_id}/{mission_id} missing after upsert")
        return row


# ============================================================================
# DecisionRecord
# ============================================================================


class DecisionRecordRepository(BaseRepository[DecisionRecord]):
    """Append-only decision ledger keyed by ``(user_id, idempotency_key)``."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(DecisionRecord, logger)

    async def insert_if_new(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        mission_id: str,
        idempotency_key: str,
        decision: NormalizedDecision,
        completion_percentage: Optional[int],
    ) -> Optional[int]:
        """
        Insert the ledger row for a submission.

        Returns:
            The new row id, or None when the key was already recorded
        """
        stmt = (
            self.insert(session)
            .values(
                user_id=user_id,
                mission_id=mission_id,
                idempotency_key=idempotency_key,
                decision_type=decision.decision_type.value,
                quality=decision.quality.value,
                is_valid_decision=decision.is_valid_decision,
                progress_advancement=decision.progress_advancement,
                difficulty_bonus=decision.difficulty_bonus,
                completion_percentage=completion_percentage,
                xp_awarded=0,
                reasoning=decision.reasoning,
                created_at=utc_now(),
            )
            .on_conflict_do_nothing(index_elements=["user_id", "idempotency_key"])
            .returning(self.table.c.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def set_xp_awarded(self, session: AsyncSession, record_id: int, xp: int) -> None:
        await session.execute(
            update(DecisionRecord)
            .where(DecisionRecord.id == record_id)
            .values(xp_awarded=xp)
            .execution_options(synchronize_session=False)
        )

    async def find_by_key(
        self, session: AsyncSession, user_id: str, idempotency_key: str
    ) -> Optional[DecisionRecord]:
        return await self.find_one_where(
            session,
            DecisionRecord.user_id == user_id,
            DecisionRecord.idempotency_key == idempotency_key,
        )

    async def delete_for_mission(
        self, session: AsyncSession, user_id: str, mission_id: str
    ) -> int:
        return await self.delete_where(
            session,
            DecisionRecord.user_id == user_id,
            DecisionRecord.mission_id == mission_id,
        )


# ============================================================================
# ChatMessage
# ============================================================================


class ChatMessageRepository(BaseRepository[ChatMessage]):
    """Transcript rows are written by the chat layer; progression only counts and clears them."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(ChatMessage, logger)

    async def count_for_mission(
        self, session: AsyncSession, user_id: str, mission_id: str
    ) -> int:
        return await self.count(
            session,
            ChatMessage.user_id == user_id,
            ChatMessage.mission_id == mission_id,
        )

    async def max_order(
        self, session: AsyncSession, user_id: str, mission_id: str
    ) -> int:
        result = await session.execute(
            select(func.max(ChatMessage.message_order)).where(
                ChatMessage.user_id == user_id,
                ChatMessage.mission_id == mission_id,
            )
        )
        return int(result.scalar_one_or_none() or 0)

    async def delete_for_mission(
        self, session: AsyncSession, user_id: str, mission_id: str
    ) -> int:
        return await self.delete_where(
            session,
            ChatMessage.user_id == user_id,
            ChatMessage.mission_id == mission_id,
        )
