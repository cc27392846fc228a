"""
Deload Strategies

A deload strategy turns a planned set into a lighter one after an exercise
has failed `failure_count_for_deload` sessions in a row.

Strategies form a closed set of variants. Each exposes `apply(planned_set)`.
Only the proportional cut has a defined computation; the other named
strategies refuse to run so a misconfigured plan cannot silently end up
with wrong targets.

Usage:
    strategy = deload_strategy_for(progression)
    lighter = strategy.apply(planned_set)
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_FLOOR
from typing import Any, ClassVar, Optional, Union

from core.exceptions import UnsupportedDeloadStrategyError
from .constants import DeloadStrategy, DEFAULT_DELOAD_STRATEGY
from .types import ExerciseProgression, PlannedSet

logger = logging.getLogger(__name__)


def _as_decimal(value: float) -> Decimal:
    # str() first so 2.5 stays 2.5 and not its binary approximation
    return Decimal(str(value))


@dataclass(frozen=True)
class ProportionalDeload:
    """
    Cut the target weight by `percentage` percent, then floor to a
    multiple of `increment`. Never below zero. Reps are untouched.

    Missing parameters or a non-positive increment are a configuration
    problem, not a fault: the set is returned unchanged with a warning.
    """
    percentage: Optional[float]
    increment: Optional[float]
    exercise_id: Any = None

    kind: ClassVar[DeloadStrategy] = DeloadStrategy.PROPORTIONAL

    def apply(self, planned_set: PlannedSet) -> PlannedSet:
        if self.percentage is None or self.increment is None:
            logger.warning(
                "Proportional deload cannot be applied: deload_percentage or weight_increment is missing",
                extra={"extra_fields": {"exercise_id": str(self.exercise_id), "set_id": str(planned_set.id)}},
            )
            return replace(planned_set)
        if self.increment <= 0:
            logger.warning(
                "Proportional deload cannot be applied: weight_increment must be positive",
                extra={"extra_fields": {
                    "exercise_id": str(self.exercise_id),
                    "set_id": str(planned_set.id),
                    "weight_increment": self.increment,
                }},
            )
            return replace(planned_set)

        increment = _as_decimal(self.increment)
        remaining_share = 1 - _as_decimal(self.percentage) / 100
        target = _as_decimal(planned_set.expected_weight) * remaining_share
        steps = (target / increment).to_integral_value(rounding=ROUND_FLOOR)
        new_weight = max(Decimal(0), steps * increment)

        return replace(planned_set, expected_weight=float(new_weight))


@dataclass(frozen=True)
class ReferenceSetDeload:
    """Deload relative to a reference set. No computation is defined yet."""
    reference_set_index: Optional[int]
    exercise_id: Any = None

    kind: ClassVar[DeloadStrategy] = DeloadStrategy.REFERENCE_SET

    def apply(self, planned_set: PlannedSet) -> PlannedSet:
        raise UnsupportedDeloadStrategyError(self.kind.value, self.exercise_id)


@dataclass(frozen=True)
class CustomDeload:
    """User-defined deload. No computation is defined yet."""
    exercise_id: Any = None

    kind: ClassVar[DeloadStrategy] = DeloadStrategy.CUSTOM

    def apply(self, planned_set: PlannedSet) -> PlannedSet:
        raise UnsupportedDeloadStrategyError(self.kind.value, self.exercise_id)


DeloadVariant = Union[ProportionalDeload, ReferenceSetDeload, CustomDeload]


def deload_strategy_for(progression: ExerciseProgression) -> DeloadVariant:
    """
    Build the deload variant configured on a progression.

    A missing strategy means PROPORTIONAL. An unknown name raises
    UnsupportedDeloadStrategyError.
    """
    raw = progression.deload_strategy or DEFAULT_DELOAD_STRATEGY.value
    try:
        kind = DeloadStrategy(raw)
    except ValueError:
        raise UnsupportedDeloadStrategyError(raw, progression.exercise_id)

    if kind is DeloadStrategy.PROPORTIONAL:
        return ProportionalDeload(
            percentage=progression.deload_percentage,
            increment=progression.weight_increment,
            exercise_id=progression.exercise_id,
        )
    if kind is DeloadStrategy.REFERENCE_SET:
        return ReferenceSetDeload(
            reference_set_index=progression.reference_set_index,
            exercise_id=progression.exercise_id,
        )
    return CustomDeload(exercise_id=progression.exercise_id)
