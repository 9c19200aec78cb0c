"""
DecisionRecord: one normalized, classified player choice.
Schema only. Written once, never updated.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utc_now


class DecisionRecord(Base, IdMixin):
    """
    Ledger row for a decision submission.

    ``(user_id, idempotency_key)`` is unique: a retried submission collides
    here and is recognised as a duplicate before any counter moves.
    """

    __tablename__ = "decision_records"
    __table_args__ = (
        Index("ix_decision_records_user_key", "user_id", "idempotency_key", unique=True),
        Index("ix_decision_records_user_mission", "user_id", "mission_id"),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    mission_id: Mapped[str] = mapped_column(String(128), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)

    decision_type: Mapped[str] = mapped_column(String(32), nullable=False)
    quality: Mapped[str] = mapped_column(String(16), nullable=False)
    is_valid_decision: Mapped[bool] = mapped_column(Boolean, nullable=False)
    progress_advancement: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    difficulty_bonus: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    completion_percentage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    xp_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reasoning: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
