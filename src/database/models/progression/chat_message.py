"""
ChatMessage: mission transcript rows owned by the chat collaborator.
Schema only. The progression engine reads counts and deletes on reset.
"""

from __future__ import annotations

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class ChatMessage(Base, IdMixin, TimestampMixin):
    __tablename__ = "mission_chat_messages"
    __table_args__ = (
        Index(
            "ix_mission_chat_messages_user_mission_order",
            "user_id",
            "mission_id",
            "message_order",
            unique=True,
        ),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    mission_id: Mapped[str] = mapped_column(String(128), nullable=False)
    message_order: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
