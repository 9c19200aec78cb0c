"""
MissionProgress: per-(user, mission) cumulative statistics.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utc_now


class MissionProgress(Base, IdMixin):
    """
    Durable progress row for one user on one mission.

    ``(user_id, mission_id)`` is unique and is the conflict target for every
    upsert. Counter columns only ever change through ``col = col + n``.
    """

    __tablename__ = "user_mission_progress"
    __table_args__ = (
        Index("ix_user_mission_progress_user_mission", "user_id", "mission_id", unique=True),
        Index("ix_user_mission_progress_last_updated", "last_updated"),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    mission_id: Mapped[str] = mapped_column(String(128), nullable=False)

    completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Coarse counters
    decisions_made: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    good_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bad_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    diplomatic_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    strategic_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    action_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    investigation_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Fine counters
    diplomatic_good_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    diplomatic_bad_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    strategic_good_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    strategic_bad_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    action_good_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    action_bad_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    investigation_good_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    investigation_bad_decisions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    time_spent_seconds: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Monotonic; flushed as GREATEST(existing, new)",
    )

    can_resume: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_message_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    completion_bonus_awarded: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Set once by the conditional claim when the mission first reaches 100",
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )
