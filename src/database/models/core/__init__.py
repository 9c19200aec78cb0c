"""
Core database models.

- UserXP: lifetime experience and level per user

All models inherit from the shared SQLAlchemy Base.
"""

from src.core.database.base import Base

from .user_xp import UserXP

__all__ = [
    "Base",
    "UserXP",
]
