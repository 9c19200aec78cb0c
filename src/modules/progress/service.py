"""
Mission Progress Service
========================

Purpose
-------
Durable per-(user, mission) progress: reads, field-level upserts, the
monotonic play-time flush, chat resumability bookkeeping and the
"start fresh" reset.

Domain
------
- One row per (user, mission); created lazily by whichever write comes first
- Counter columns are owned by the decision flow (atomic increments only);
  this service never patches them
- ``time_spent_seconds`` never decreases
- Reset deletes the progress row, its decision ledger and its transcript in
  one transaction, so a fresh playthrough can earn the completion bonus again

Events
------
- ``progress.updated`` after any committed write
- ``progress.reset`` after a committed reset
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.domain.models.progress import MissionProgressSnapshot
from src.modules.progress.repository import (
    PATCHABLE_FIELDS,
    ChatMessageRepository,
    DecisionRecordRepository,
    MissionProgressRepository,
)
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.formulas import format_interval, parse_interval

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus


@dataclass(frozen=True)
class ResumeState:
    """What the chat layer needs to offer "continue where you left off"."""

    has_existing_chat: bool
    can_resume: bool
    last_message_order: int
    total_messages: int
    completion_percentage: int


@dataclass(frozen=True)
class ResetResult:
    user_id: str
    mission_id: str
    progress_deleted: bool
    decisions_deleted: int
    messages_deleted: int


class MissionProgressService(BaseService):
    """
    Service for per-mission progress persistence.

    Public Methods
    --------------
    - get() -> Snapshot of one progress row, or None
    - list_for_user() -> All of a user's rows, most recently updated first
    - ensure_exists() -> Create the row if missing
    - upsert() -> Field-level partial update with read-after-write
    - record_time() -> Monotonic elapsed-time flush
    - mark_resumable() -> Chat resumability bookkeeping
    - get_resume_state() -> Resume information for the chat layer
    - reset_mission() -> Start fresh
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
        self._decision_repo = DecisionRecordRepository(
            logger=get_logger(f"{__name__}.DecisionRecordRepository")
        )
        self._chat_repo = ChatMessageRepository(
            logger=get_logger(f"{__name__}.ChatMessageRepository")
        )

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get(self, user_id: str, mission_id: str) -> Optional[MissionProgressSnapshot]:
        """
        Snapshot of one progress row.

        Returns:
            The snapshot, or None when the user has not started the mission
        """
        user_id = InputValidator.validate_user_id(user_id)
        mission_id = InputValidator.validate_mission_id(mission_id)

        async with self.db.get_session() as session:
            row = await self._progress_repo.get_row(session, user_id, mission_id)
            return MissionProgressSnapshot.from_row(row) if row else None

    async def list_for_user(self, user_id: str) -> List[MissionProgressSnapshot]:
        user_id = InputValidator.validate_user_id(user_id)

        async with self.db.get_session() as session:
            rows = await self._progress_repo.list_for_user(session, user_id)
            return [MissionProgressSnapshot.from_row(row) for row in rows]

    async def get_resume_state(self, user_id: str, mission_id: str) -> ResumeState:
        """
        Resumability of a mission chat.

        A mission can be resumed when it has some progress, at least one
        transcript message, and has not been explicitly marked unresumable.
        """
        user_id = InputValidator.validate_user_id(user_id)
        mission_id = InputValidator.validate_mission_id(mission_id)

        async with self.db.get_session() as session:
            row = await self._progress_repo.get_row(session, user_id, mission_id)
            total_messages = await self._chat_repo.count_for_mission(
                session, user_id, mission_id
            )
            last_order = await self._chat_repo.max_order(session, user_id, mission_id)

        completion = row.completion_percentage if row else 0
        resumable_flag = row.can_resume if row else True
        return ResumeState(
            has_existing_chat=total_messages > 0,
            can_resume=completion > 0 and total_messages > 0 and resumable_flag,
            last_message_order=last_order,
            total_messages=total_messages,
            completion_percentage=completion,
        )

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def ensure_exists(self, user_id: str, mission_id: str) -> MissionProgressSnapshot:
        """
        Create a zeroed row unless one exists.

        Safe to call concurrently; every caller gets the same row back.
        """
        user_id = InputValidator.validate_user_id(user_id)
        mission_id = InputValidator.validate_mission_id(mission_id)

        async with self.db.get_transaction() as session:
            row = await self._progress_repo.ensure_exists(session, user_id, mission_id)
            snapshot = MissionProgressSnapshot.from_row(row)

        return snapshot

    async def upsert(
        self, user_id: str, mission_id: str, partial_update: Mapping[str, Any]
    ) -> MissionProgressSnapshot:
        """
        Replace selected fields of a progress row.

        Accepted fields: ``completion_percentage``, ``time_spent_seconds``
        (or ``time_spent`` as an ``HH:MM:SS`` string), ``can_resume`` and
        ``last_message_order``. A missing row is created zeroed and then
        patched. The stored row is re-read in the same transaction.

        Raises:
            ValidationError: Unknown field or invalid value
        """
        user_id = InputValidator.validate_user_id(user_id)
        mission_id = InputValidator.validate_mission_id(mission_id)
        fields = self._validate_patch(partial_update)

        self.log_operation(
            "upsert_progress",
            user_id=user_id,
            mission_id=mission_id,
            fields=sorted(fields),
        )

        async with self.db.get_transaction() as session:
            row = await self._progress_repo.upsert_fields(session, user_id, mission_id, fields)
            snapshot = MissionProgressSnapshot.from_row(row)

        await self._emit_updated(snapshot, source="upsert")
        return snapshot

    async def record_time(
        self, user_id: str, mission_id: str, elapsed_seconds: int
    ) -> MissionProgressSnapshot:
        """
        Flush elapsed play time. The stored value is ``max(stored, elapsed)``.

        Raises:
            ValidationError: negative or non-integer elapsed time
        """
        user_id = InputValidator.validate_user_id(user_id)
        mission_id = InputValidator.validate_mission_id(mission_id)
        elapsed_seconds = InputValidator.validate_non_negative_integer(
            elapsed_seconds, "elapsed_seconds"
        )

        async with self.db.get_transaction() as session:
            row = await self._progress_repo.record_time(
                session, user_id, mission_id, elapsed_seconds
            )
            snapshot = MissionProgressSnapshot.from_row(row)

        self.log.debug(
            "Mission time recorded",
            extra={
                "user_id": user_id,
                "mission_id": mission_id,
                "elapsed_seconds": elapsed_seconds,
                "stored_seconds": snapshot.time_spent_seconds,
            },
        )
        await self._emit_updated(snapshot, source="record_time")
        return snapshot

    async def mark_resumable(
        self, user_id: str, mission_id: str, last_message_order: int
    ) -> MissionProgressSnapshot:
        """Flag the mission as resumable at ``last_message_order``."""
        return await self.upsert(
            user_id,
            mission_id,
            {"can_resume": True, "last_message_order": last_message_order},
        )

    async def reset_mission(self, user_id: str, mission_id: str) -> ResetResult:
        """
        Start a mission fresh.

        Deletes the progress row, the decision ledger and the transcript for
        ``(user_id, mission_id)`` atomically. Lifetime XP and unlocked
        achievements are kept.
        """
        user_id = InputValidator.validate_user_id(user_id)
        mission_id = InputValidator.validate_mission_id(mission_id)

        self.log_operation("reset_mission", user_id=user_id, mission_id=mission_id)

        async with self.db.get_transaction() as session:
            progress_deleted = await self._progress_repo.delete_where(
                session,
                self._progress_repo.model_class.user_id == user_id,
                self._progress_repo.model_class.mission_id == mission_id,
            )
            decisions_deleted = await self._decision_repo.delete_for_mission(
                session, user_id, mission_id
            )
            messages_deleted = await self._chat_repo.delete_for_mission(
                session, user_id, mission_id
            )

        result = ResetResult(
            user_id=user_id,
            mission_id=mission_id,
            progress_deleted=progress_deleted > 0,
            decisions_deleted=decisions_deleted,
            messages_deleted=messages_deleted,
        )

        await self.emit_event(
            "progress.reset",
            {
                "progress_deleted": result.progress_deleted,
                "decisions_deleted": decisions_deleted,
                "messages_deleted": messages_deleted,
            },
            {"user_id": user_id, "mission_id": mission_id},
        )

        self.log.info(
            "Mission reset",
            extra={
                "user_id": user_id,
                "mission_id": mission_id,
                "decisions_deleted": decisions_deleted,
                "messages_deleted": messages_deleted,
            },
        )
        return result

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    @staticmethod
    def _validate_patch(partial_update: Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(partial_update, Mapping) or not partial_update:
            raise ValidationError("partial_update", "Partial update must be a non-empty mapping")

        fields: Dict[str, Any] = {}
        for name, value in partial_update.items():
            if name == "time_spent":
                name = "time_spent_seconds"
                value = parse_interval(value) if isinstance(value, str) else value

            if name not in PATCHABLE_FIELDS:
                raise ValidationError("partial_update", f"Cannot patch field '{name}'")

            if name == "completion_percentage":
                fields[name] = InputValidator.validate_percentage(value)
            elif name in ("time_spent_seconds", "last_message_order"):
                fields[name] = InputValidator.validate_non_negative_integer(value, name)
            elif name == "can_resume":
                if not isinstance(value, bool):
                    raise ValidationError(name, "can_resume must be a boolean")
                fields[name] = value

        return fields

    async def _emit_updated(self, snapshot: MissionProgressSnapshot, source: str) -> None:
        await self.emit_event(
            "progress.updated",
            {
                "source": source,
                "completion_percentage": snapshot.completion_percentage,
                "time_spent": format_interval(snapshot.time_spent_seconds),
                "can_resume": snapshot.can_resume,
            },
            {"user_id": snapshot.user_id, "mission_id": snapshot.mission_id},
        )
