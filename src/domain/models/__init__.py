"""
Domain models package.

Pure, self-validating models for the progression engine. They are separate
from the SQLAlchemy schemas in ``src/database/models``; services convert
between the two.

- decision: classifier input, normalization rules, NormalizedDecision
- progress: MissionProgressSnapshot and the decision fold
"""

from .base import (
    DomainValidationError,
    validate_non_negative,
    validate_range,
)
from .decision import (
    DecisionClassification,
    NormalizationRule,
    NormalizedDecision,
    normalize,
)
from .progress import (
    COUNTER_FIELDS,
    MissionProgressSnapshot,
    apply_decision,
    check_counter_invariants,
    counter_deltas,
)

__all__ = [
    "DomainValidationError",
    "validate_non_negative",
    "validate_range",
    "DecisionClassification",
    "NormalizationRule",
    "NormalizedDecision",
    "normalize",
    "COUNTER_FIELDS",
    "MissionProgressSnapshot",
    "apply_decision",
    "check_counter_invariants",
    "counter_deltas",
]
