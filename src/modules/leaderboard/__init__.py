"""
Leaderboard Module
==================

- service: LeaderboardService (per-user summaries and ranking)
"""

from .service import LeaderboardService, UserSummary, build_summary, rank_summaries

__all__ = ["LeaderboardService", "UserSummary", "build_summary", "rank_summaries"]
