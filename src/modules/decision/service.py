"""
Decision Service
================

Purpose
-------
End-to-end handling of one classified player turn: normalize the
classifier's judgment, fold it into the mission's progress row, compute and
award XP, claim the one-time completion bonus, then evaluate achievements.

Flow
----
1. Validate ids; normalize the classification (never fails)
2. One transaction:
   a. insert the decision ledger row keyed by the idempotency key; a
      conflict means this submission was already applied -> duplicate
   b. lock/read the progress row and fold the decision in memory
   c. apply the counter deltas as ``col = col + n`` (plus the new
      percentage and, when supplied, the monotonic time flush)
   d. claim the completion bonus with a conditional update
   e. add decision XP (+ bonus) to the user's lifetime XP
3. Check counter invariants on the committed row (WARNING on violation)
4. Publish events
5. Evaluate achievements in a second transaction. A persistence failure
   there is logged and reported as ``achievements_deferred``; the next
   evaluation catches up.

A retry with the same idempotency key changes nothing and returns an
outcome with ``duplicate=True`` and zero XP.

Events
------
- ``decision.recorded`` for every applied decision
- ``progress.updated`` after the progress row changed
- ``mission.completed`` when the completion bonus was claimed
- ``player.xp_added`` / ``player.leveled_up`` via PlayerXPService
- ``achievement.unlocked`` via AchievementService
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Union

from src.core.exceptions import PersistenceUnavailableError
from src.core.logging.logger import LogContext, get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models.enums import DecisionType
from src.domain.models.decision import DecisionClassification, NormalizedDecision, normalize
from src.domain.models.progress import (
    MissionProgressSnapshot,
    apply_decision,
    check_counter_invariants,
    counter_deltas,
)
from src.modules.mission.catalog import Milestone, difficulty_bonus_for, milestones_crossed
from src.modules.progress.repository import DecisionRecordRepository, MissionProgressRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.constants import (
    COMPLETION_FLAT_BONUS,
    COMPLETION_PERCENTAGE_MULTIPLIER,
    COMPLETION_XP_PER_GOOD_DECISION,
    DEFAULT_DIFFICULTY_BONUS,
    DIFFICULTY_BONUS,
    GOOD_DECISION_BASE_XP,
    MAX_COMPLETION_PERCENTAGE,
    MIN_STOP_COMPLETION_PERCENTAGE,
)
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.formulas import RewardBreakdown, compute_reward, round_half_up

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.database.service import DatabaseService
    from src.core.event.bus import EventBus
    from src.modules.achievement.service import AchievementService, UnlockedAchievement
    from src.modules.player.xp_service import PlayerXPService, XPAward


@dataclass(frozen=True)
class DecisionOutcome:
    """Everything the chat layer needs to render feedback for one turn."""

    user_id: str
    mission_id: str
    idempotency_key: str
    decision: NormalizedDecision
    duplicate: bool = False
    old_completion_percentage: int = 0
    progress: Optional[MissionProgressSnapshot] = None
    reward: RewardBreakdown = field(default_factory=lambda: RewardBreakdown(decision_xp=0))
    total_xp: Optional[int] = None
    old_level: Optional[int] = None
    new_level: Optional[int] = None
    milestones: tuple[Milestone, ...] = ()
    new_achievements: tuple[UnlockedAchievement, ...] = ()
    achievements_deferred: bool = False
    invariant_violations: tuple[str, ...] = ()

    @property
    def xp_awarded(self) -> int:
        return self.reward.total

    @property
    def leveled_up(self) -> bool:
        return (
            self.old_level is not None
            and self.new_level is not None
            and self.new_level > self.old_level
        )

    @property
    def completion_percentage(self) -> int:
        return self.progress.completion_percentage if self.progress else self.old_completion_percentage

    @property
    def show_feedback(self) -> bool:
        """Whether the turn deserves a feedback card in the chat."""
        if self.duplicate:
            return False
        d = self.decision
        return bool(
            d.is_valid_decision
            or d.decision_type is not DecisionType.NONE
            or d.is_story_decision
            or self.completion_percentage != self.old_completion_percentage
            or self.xp_awarded > 0
            or d.reasoning
        )


@dataclass(frozen=True)
class StopOutcome:
    progress: MissionProgressSnapshot
    achievement: Optional[UnlockedAchievement] = None
    achievements_deferred: bool = False


class DecisionService(BaseService):
    """
    Orchestrates the decision flow across progress, XP and achievements.

    Public Methods
    --------------
    - record_decision() -> Apply one classified decision idempotently
    - stop_mission() -> Persist an early stop and grant stop_master
    """

    def __init__(
        self,
        db_service: DatabaseService,
        xp_service: PlayerXPService,
        achievement_service: AchievementService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.db = db_service
        self._xp = xp_service
        self._achievements = achievement_service
        self._progress_repo = MissionProgressRepository(
            logger=get_logger(f"{__name__}.MissionProgressRepository")
        )
        self._decision_repo = DecisionRecordRepository(
            logger=get_logger(f"{__name__}.DecisionRecordRepository")
        )

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def record_decision(
        self,
        user_id: str,
        mission_id: str,
        classification: Union[DecisionClassification, Mapping[str, Any]],
        idempotency_key: str,
        completion_percentage: Optional[Union[int, float]] = None,
        elapsed_seconds: Optional[int] = None,
    ) -> DecisionOutcome:
        """
        Apply one classified decision.

        Args:
            user_id: Player
            mission_id: Mission being played
            classification: Classifier output (dataclass or raw mapping)
            idempotency_key: Unique per logical submission; reuse it on retry
            completion_percentage: Absolute mission progress after this turn,
                clamped to 0-100; None keeps the stored value
            elapsed_seconds: Session clock reading to flush with the decision

        Returns:
            DecisionOutcome

        Raises:
            ValidationError: invalid ids, key, percentage type or elapsed time
            PersistenceUnavailableError: the decision transaction failed;
                retry with the same key
        """
        user_id = InputValidator.validate_user_id(user_id)
        mission_id = InputValidator.validate_mission_id(mission_id)
        idempotency_key = InputValidator.validate_idempotency_key(idempotency_key)
        percentage = self._coerce_percentage(completion_percentage)
        if elapsed_seconds is not None:
            elapsed_seconds = InputValidator.validate_non_negative_integer(
                elapsed_seconds, "elapsed_seconds"
            )

        if not isinstance(classification, DecisionClassification):
            classification = DecisionClassification.from_payload(classification)
        decision = normalize(classification, self._mission_bonus(mission_id))

        async with LogContext(user_id=user_id, mission_id=mission_id, operation="record_decision"):
            self.log_operation(
                "record_decision",
                user_id=user_id,
                mission_id=mission_id,
                idempotency_key=idempotency_key,
                decision_type=decision.decision_type.value,
                quality=decision.quality.value,
                is_valid_decision=decision.is_valid_decision,
            )
            return await self._record(
                user_id, mission_id, idempotency_key, decision, percentage, elapsed_seconds
            )

    async def stop_mission(
        self, user_id: str, mission_id: str, elapsed_seconds: int
    ) -> StopOutcome:
        """
        Handle the player's stop command.

        Flushes play time, records at least the minimum stop percentage and
        grants ``stop_master`` on first use.
        """
        user_id = InputValidator.validate_user_id(user_id)
        mission_id = InputValidator.validate_mission_id(mission_id)
        elapsed_seconds = InputValidator.validate_non_negative_integer(
            elapsed_seconds, "elapsed_seconds"
        )
        floor = self.get_int_config(
            "progression.stop.minimum_completion_percentage", MIN_STOP_COMPLETION_PERCENTAGE
        )

        self.log_operation(
            "stop_mission", user_id=user_id, mission_id=mission_id, elapsed_seconds=elapsed_seconds
        )

        async with self.db.get_transaction() as session:
            await self._progress_repo.record_time(session, user_id, mission_id, elapsed_seconds)
            row = await self._progress_repo.raise_completion_floor(
                session, user_id, mission_id, floor
            )
            snapshot = MissionProgressSnapshot.from_row(row)

        await self.emit_event(
            "progress.updated",
            {"source": "stop", "completion_percentage": snapshot.completion_percentage},
            {"user_id": user_id, "mission_id": mission_id},
        )

        try:
            unlocked = await self._achievements.trigger(user_id, "stop_master", mission_id)
        except PersistenceUnavailableError as e:
            self.log_error("stop_mission.trigger", e, user_id=user_id, mission_id=mission_id)
            return StopOutcome(progress=snapshot, achievements_deferred=True)

        return StopOutcome(progress=snapshot, achievement=unlocked)

    # ========================================================================
    # PRIVATE - Decision transaction
    # ========================================================================

    async def _record(
        self,
        user_id: str,
        mission_id: str,
        idempotency_key: str,
        decision: NormalizedDecision,
        percentage: Optional[int],
        elapsed_seconds: Optional[int],
    ) -> DecisionOutcome:
        award: Optional[XPAward] = None
        bonus_claimed = False
        original = None

        async with self.db.get_transaction() as session:
            record_id = await self._decision_repo.insert_if_new(
                session,
                user_id=user_id,
                mission_id=mission_id,
                idempotency_key=idempotency_key,
                decision=decision,
                completion_percentage=percentage,
            )

            if record_id is None:
                original = await self._decision_repo.find_by_key(session, user_id, idempotency_key)
                row = await self._progress_repo.get_row(session, user_id, mission_id)
                current = (
                    MissionProgressSnapshot.from_row(row)
                    if row
                    else MissionProgressSnapshot.empty(user_id, mission_id)
                )
                duplicate = True
            else:
                duplicate = False
                await self._progress_repo.ensure_exists(session, user_id, mission_id)
                row = await self._progress_repo.get_row(
                    session, user_id, mission_id, for_update=True
                )
                before = MissionProgressSnapshot.from_row(row)
                expected = apply_decision(before, decision, percentage)

                row = await self._progress_repo.apply_increments(
                    session,
                    user_id,
                    mission_id,
                    counter_deltas(before, expected),
                    completion_percentage=percentage,
                )
                if elapsed_seconds is not None:
                    row = await self._progress_repo.record_time(
                        session, user_id, mission_id, elapsed_seconds
                    )
                after = MissionProgressSnapshot.from_row(row)

                reward = self._compute_reward(decision, before, after)
                if reward.completion_bonus_earned:
                    bonus_claimed = await self._progress_repo.claim_completion_bonus(
                        session, user_id, mission_id
                    )
                    if not bonus_claimed:
                        reward = RewardBreakdown(decision_xp=reward.decision_xp)
                    else:
                        row = await self._progress_repo.get_row(session, user_id, mission_id)
                        after = MissionProgressSnapshot.from_row(row)

                award = await self._xp.award_xp(
                    session, user_id, reward.total, reason="decision"
                )
                await self._decision_repo.set_xp_awarded(session, record_id, reward.total)

            xp_state = await self._xp.get_xp_in_session(session, user_id)

        if duplicate:
            self.log.info(
                "Duplicate decision submission ignored",
                extra={
                    "user_id": user_id,
                    "mission_id": mission_id,
                    "idempotency_key": idempotency_key,
                    "original_xp_awarded": original.xp_awarded if original else None,
                },
            )
            if original is not None and original.mission_id != mission_id:
                self.log.warning(
                    "Idempotency key reused across missions",
                    extra={
                        "user_id": user_id,
                        "mission_id": mission_id,
                        "original_mission_id": original.mission_id,
                        "idempotency_key": idempotency_key,
                    },
                )
            return DecisionOutcome(
                user_id=user_id,
                mission_id=mission_id,
                idempotency_key=idempotency_key,
                decision=decision,
                duplicate=True,
                old_completion_percentage=current.completion_percentage,
                progress=current,
                total_xp=xp_state.total_xp,
                old_level=xp_state.level,
                new_level=xp_state.level,
            )

        violations = tuple(check_counter_invariants(after))
        if violations:
            self.log.warning(
                "Progress counters inconsistent after decision",
                extra={
                    "user_id": user_id,
                    "mission_id": mission_id,
                    "violations": list(violations),
                },
            )

        outcome = DecisionOutcome(
            user_id=user_id,
            mission_id=mission_id,
            idempotency_key=idempotency_key,
            decision=decision,
            old_completion_percentage=before.completion_percentage,
            progress=after,
            reward=reward,
            total_xp=award.new_xp if award else xp_state.total_xp,
            old_level=award.old_level if award else xp_state.level,
            new_level=award.new_level if award else xp_state.level,
            milestones=milestones_crossed(
                mission_id, before.completion_percentage, after.completion_percentage
            ),
            invariant_violations=violations,
        )

        await self._publish(outcome, award, bonus_claimed)
        return await self._evaluate_achievements(outcome)

    async def _evaluate_achievements(self, outcome: DecisionOutcome) -> DecisionOutcome:
        try:
            unlocked: List[UnlockedAchievement] = await self._achievements.evaluate(
                outcome.user_id, current_mission_id=outcome.mission_id
            )
        except PersistenceUnavailableError as e:
            self.log_error(
                "record_decision.evaluate_achievements",
                e,
                user_id=outcome.user_id,
                mission_id=outcome.mission_id,
            )
            return replace(outcome, achievements_deferred=True)

        if not unlocked:
            return outcome
        return replace(outcome, new_achievements=tuple(unlocked))

    async def _publish(
        self, outcome: DecisionOutcome, award: Optional[XPAward], bonus_claimed: bool
    ) -> None:
        context = {"user_id": outcome.user_id, "mission_id": outcome.mission_id}
        progress = outcome.progress

        await self.emit_event(
            "decision.recorded",
            {
                "idempotency_key": outcome.idempotency_key,
                "decision_type": outcome.decision.decision_type.value,
                "quality": outcome.decision.quality.value,
                "is_valid_decision": outcome.decision.is_valid_decision,
                "xp_awarded": outcome.xp_awarded,
                "applied_rules": [r.value for r in outcome.decision.applied_rules],
            },
            context,
        )
        await self.emit_event(
            "progress.updated",
            {
                "source": "decision",
                "old_completion_percentage": outcome.old_completion_percentage,
                "completion_percentage": progress.completion_percentage if progress else 0,
                "milestones": [m.progress for m in outcome.milestones],
            },
            context,
        )
        if bonus_claimed:
            await self.emit_event(
                "mission.completed",
                {
                    "completion_bonus": outcome.reward.completion_bonus,
                    "good_decisions": progress.good_decisions if progress else 0,
                },
                context,
            )
        if award:
            await self._xp.publish_award(award)

        self.log.info(
            "Decision recorded",
            extra={
                "user_id": outcome.user_id,
                "mission_id": outcome.mission_id,
                "decision_type": outcome.decision.decision_type.value,
                "xp_awarded": outcome.xp_awarded,
                "completion_bonus": outcome.reward.completion_bonus,
                "completion_percentage": outcome.completion_percentage,
            },
        )

    # ========================================================================
    # PRIVATE - Config-driven helpers
    # ========================================================================

    def _mission_bonus(self, mission_id: str) -> float:
        bonuses = self.get_config("progression.difficulty_bonus") or DIFFICULTY_BONUS
        return difficulty_bonus_for(mission_id, bonuses) or DEFAULT_DIFFICULTY_BONUS

    def _compute_reward(
        self,
        decision: NormalizedDecision,
        before: MissionProgressSnapshot,
        after: MissionProgressSnapshot,
    ) -> RewardBreakdown:
        return compute_reward(
            decision,
            before,
            after,
            base_xp=self.get_int_config("progression.xp.good_decision_base", GOOD_DECISION_BASE_XP),
            percentage_multiplier=self.get_int_config(
                "progression.xp.completion.percentage_multiplier", COMPLETION_PERCENTAGE_MULTIPLIER
            ),
            per_good_decision=self.get_int_config(
                "progression.xp.completion.per_good_decision", COMPLETION_XP_PER_GOOD_DECISION
            ),
            flat_bonus=self.get_int_config(
                "progression.xp.completion.flat_bonus", COMPLETION_FLAT_BONUS
            ),
        )

    @staticmethod
    def _coerce_percentage(value: Optional[Union[int, float]]) -> Optional[int]:
        """Round and clamp a reported percentage; None means unchanged."""
        if value is None:
            return None
        if (
            isinstance(value, bool)
            or not isinstance(value, (int, float))
            or (isinstance(value, float) and not math.isfinite(value))
        ):
            raise ValidationError(
                "completion_percentage",
                f"completion_percentage must be a number, got {value!r}",
            )
        rounded = round_half_up(value) if isinstance(value, float) else value
        return max(0, min(MAX_COMPLETION_PERCENTAGE, rounded))
