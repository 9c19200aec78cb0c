"""
UserXP: lifetime experience and level per user.
Schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class UserXP(Base, IdMixin, TimestampMixin):
    """
    ``total_xp`` only grows, through ``total_xp = total_xp + n``.
    ``level`` is recomputed from ``total_xp`` in the same statement.
    """

    __tablename__ = "user_xp"
    __table_args__ = (
        Index("ix_user_xp_user", "user_id", unique=True),
        Index("ix_user_xp_total_xp", "total_xp"),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
