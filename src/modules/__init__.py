"""
Progression feature modules.

- mission: static mission catalog
- progress: per-(user, mission) persistence
- player: lifetime XP and levels
- achievement: catalog, predicates and idempotent grants
- decision: end-to-end decision recording
- leaderboard: per-user summaries and ranking
- shared: base classes, exceptions, constants and formulas
"""
