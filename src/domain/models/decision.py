"""
Decision domain model.

Purpose
-------
Turn the classifier's structured judgment of one player turn into a
`NormalizedDecision` that the rest of the engine can trust.

The classifier is a language model; its output is treated as untrusted.
`normalize()` never raises for malformed classifier input: every field has
a safe fallback, and each fallback that fires is recorded as a
`NormalizationRule` on the result so callers and tests can see what happened.

Rules
-----
- UNKNOWN_TYPE_IS_NONE: missing or unrecognised ``type`` becomes ``none``
- NONE_IS_GOOD: ``type == none`` forces ``quality = good``
- MISSING_QUALITY_IS_BAD: a typed decision with missing, unknown or
  ``neutral`` quality counts as ``bad``
- INVALID_PROGRESS_IS_ZERO: negative, NaN or non-numeric
  ``progressAdvancement`` becomes 0
- DEFAULT_DIFFICULTY_BONUS: missing, non-positive or non-numeric
  ``difficultyBonus`` becomes the mission default (1.0 without a mission)

Usage Example
-------------
>>> classification = DecisionClassification.from_payload({
...     "type": "diplomatic",
...     "quality": "good",
...     "isStoryDecision": True,
...     "progressAdvancement": 8,
...     "difficultyBonus": 1.5,
...     "reasoning": "Calmed the guardian",
... })
>>> decision = normalize(classification)
>>> decision.is_valid_decision
True
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from src.core.logging.logger import get_logger
from src.database.models.enums import DecisionQuality, DecisionType

logger = get_logger(__name__)

DEFAULT_DIFFICULTY_BONUS = 1.0

_TRUE_TOKENS = frozenset({"true", "1", "yes", "y"})


class NormalizationRule(str, Enum):
    UNKNOWN_TYPE_IS_NONE = "unknown_type_is_none"
    NONE_IS_GOOD = "none_is_good"
    MISSING_QUALITY_IS_BAD = "missing_quality_is_bad"
    INVALID_PROGRESS_IS_ZERO = "invalid_progress_is_zero"
    DEFAULT_DIFFICULTY_BONUS = "default_difficulty_bonus"


# ============================================================================
# INPUT
# ============================================================================


@dataclass(frozen=True)
class DecisionClassification:
    """
    Raw classifier output for one player turn.

    Fields hold whatever the classifier sent; nothing is validated here.
    """

    type: Any = None
    quality: Any = None
    is_story_decision: Any = False
    progress_advancement: Any = 0
    difficulty_bonus: Any = None
    reasoning: Any = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> DecisionClassification:
        """
        Build from the wire mapping.

        Accepts camelCase keys (``isStoryDecision``, ``progressAdvancement``,
        ``difficultyBonus``) and their snake_case equivalents. A non-mapping
        payload yields an all-defaults classification.
        """
        if not isinstance(payload, Mapping):
            logger.warning(
                "Decision classification payload is not a mapping",
                extra={"payload_type": type(payload).__name__},
            )
            return cls()

        def pick(camel: str, snake: str, default: Any = None) -> Any:
            if camel in payload:
                return payload[camel]
            return payload.get(snake, default)

        return cls(
            type=payload.get("type"),
            quality=payload.get("quality"),
            is_story_decision=pick("isStoryDecision", "is_story_decision", False),
            progress_advancement=pick("progressAdvancement", "progress_advancement", 0),
            difficulty_bonus=pick("difficultyBonus", "difficulty_bonus"),
            reasoning=payload.get("reasoning"),
        )


# ============================================================================
# OUTPUT
# ============================================================================


@dataclass(frozen=True)
class NormalizedDecision:
    """A classified decision with every field guaranteed well-formed."""

    decision_type: DecisionType
    quality: DecisionQuality
    is_story_decision: bool
    progress_advancement: float
    difficulty_bonus: float
    reasoning: str = ""
    applied_rules: tuple[NormalizationRule, ...] = field(default_factory=tuple)

    @property
    def is_valid_decision(self) -> bool:
        """Counts toward statistics: a story decision of one of the four types."""
        return self.is_story_decision and self.decision_type in DecisionType.counted()

    @property
    def is_good(self) -> bool:
        return self.quality is DecisionQuality.GOOD

    def has_rule(self, rule: NormalizationRule) -> bool:
        return rule in self.applied_rules


# ============================================================================
# PARSING HELPERS
# ============================================================================


def _parse_type(raw: Any) -> Optional[DecisionType]:
    if isinstance(raw, DecisionType):
        return raw
    if isinstance(raw, str):
        try:
            return DecisionType(raw.strip().lower())
        except ValueError:
            return None
    return None


def _parse_quality(raw: Any) -> Optional[DecisionQuality]:
    if isinstance(raw, DecisionQuality):
        return raw
    if isinstance(raw, str):
        try:
            return DecisionQuality(raw.strip().lower())
        except ValueError:
            return None
    return None


def _parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw == 1
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUE_TOKENS
    return False


def _parse_number(raw: Any) -> Optional[float]:
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


# ============================================================================
# NORMALIZATION
# ============================================================================


def normalize(
    classification: DecisionClassification,
    mission_difficulty_bonus: Optional[float] = None,
) -> NormalizedDecision:
    """
    Apply the fail-soft rules to a raw classification.

    Args:
        classification: Raw classifier output
        mission_difficulty_bonus: Fallback multiplier from the mission's
            difficulty tier; 1.0 when omitted

    Returns:
        NormalizedDecision with the rules that fired in ``applied_rules``

    Example:
        >>> d = normalize(DecisionClassification(type="none", quality="bad"))
        >>> d.quality, d.applied_rules
        (<DecisionQuality.GOOD: 'good'>, (<NormalizationRule.NONE_IS_GOOD: 'none_is_good'>,))
    """
    rules: list[NormalizationRule] = []

    decision_type = _parse_type(classification.type)
    if decision_type is None:
        logger.warning(
            "Unrecognised decision type treated as none",
            extra={"raw_type": repr(classification.type)},
        )
        decision_type = DecisionType.NONE
        rules.append(NormalizationRule.UNKNOWN_TYPE_IS_NONE)

    quality = _parse_quality(classification.quality)
    if decision_type is DecisionType.NONE:
        if quality is not DecisionQuality.GOOD:
            rules.append(NormalizationRule.NONE_IS_GOOD)
        quality = DecisionQuality.GOOD
    elif quality is None or quality is DecisionQuality.NEUTRAL:
        logger.warning(
            "Decision was not classified as good or bad, defaulting to bad",
            extra={
                "decision_type": decision_type.value,
                "raw_quality": repr(classification.quality),
            },
        )
        quality = DecisionQuality.BAD
        rules.append(NormalizationRule.MISSING_QUALITY_IS_BAD)

    progress = _parse_number(classification.progress_advancement)
    if progress is None or progress < 0:
        if classification.progress_advancement not in (None, 0):
            logger.debug(
                "Invalid progress advancement replaced with 0",
                extra={"raw_progress": repr(classification.progress_advancement)},
            )
        progress = 0.0
        rules.append(NormalizationRule.INVALID_PROGRESS_IS_ZERO)

    bonus = _parse_number(classification.difficulty_bonus)
    if bonus is None or bonus <= 0:
        bonus = (
            float(mission_difficulty_bonus)
            if mission_difficulty_bonus is not None and mission_difficulty_bonus > 0
            else DEFAULT_DIFFICULTY_BONUS
        )
        rules.append(NormalizationRule.DEFAULT_DIFFICULTY_BONUS)

    reasoning = classification.reasoning if isinstance(classification.reasoning, str) else ""

    return NormalizedDecision(
        decision_type=decision_type,
        quality=quality,
        is_story_decision=_parse_bool(classification.is_story_decision),
        progress_advancement=progress,
        difficulty_bonus=bonus,
        reasoning=reasoning,
        applied_rules=tuple(rules),
    )
