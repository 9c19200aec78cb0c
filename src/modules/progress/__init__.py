"""
Progress Module
===============

Domain: durable per-(user, mission) progress

- repository: upsert primitives for progress rows, decision ledger, transcript
- service: MissionProgressService (reads, upserts, time flush, reset)
"""

from .repository import (
    PATCHABLE_FIELDS,
    ChatMessageRepository,
    DecisionRecordRepository,
    MissionProgressRepository,
)
from .service import MissionProgressService, ResetResult, ResumeState

__all__ = [
    "PATCHABLE_FIELDS",
    "ChatMessageRepository",
    "DecisionRecordRepository",
    "MissionProgressRepository",
    "MissionProgressService",
    "ResetResult",
    "ResumeState",
]
