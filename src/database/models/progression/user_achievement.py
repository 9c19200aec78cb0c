"""
UserAchievement: append-only record of unlocked achievements.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utc_now


class UserAchievement(Base, IdMixin):
    """
    One unlocked achievement for one user.

    The unique ``(user_id, achievement_id)`` index makes grants idempotent.
    """

    __tablename__ = "user_achievements"
    __table_args__ = (
        Index("ix_user_achievements_user_achievement", "user_id", "achievement_id", unique=True),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    mission_context: Mapped[Optional[str]] = mapped_column(
        String(128),
        nullable=True,
        doc="Mission being played when the achievement unlocked",
    )
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
