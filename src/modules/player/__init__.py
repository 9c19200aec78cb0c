"""
Player Module
=============

Services
--------
- PlayerXPService: Lifetime XP, levels and level-up detection

All writes are atomic increments; events are published after commit.
"""

from .xp_service import PlayerXPService, UserXPRepository, UserXPState, XPAward

__all__ = [
    "PlayerXPService",
    "UserXPRepository",
    "UserXPState",
    "XPAward",
]
