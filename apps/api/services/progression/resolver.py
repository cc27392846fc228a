"""
Progression Resolver

Given what was performed in a session, the plan placements it touched and
the plan's progression rules, compute the new set targets and the new
progression state. Pure: nothing is read or written here, and the inputs
are never mutated.

Rules, per global exercise (all placements of it judged together):
    - success (every expected set met): every set gains weight_increment,
      consecutive_failures resets to 0
    - failure: consecutive_failures + 1; once it reaches
      failure_count_for_deload the deload strategy runs and the count
      resets to 0
    - last_updated is always stamped with the clock
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from core.exceptions import DataIntegrityError, MissingProgressionError, MissingSessionSetError
from services.clock import Clock, utc_now
from .constants import SetStatus
from .deload_strategies import deload_strategy_for
from .types import (
    ExerciseProgression,
    PerformedSet,
    PlannedExercise,
    PlannedSet,
    ProgressionResolution,
)

logger = logging.getLogger(__name__)


def _met_target(expected: PlannedSet, actual: PerformedSet) -> bool:
    if actual.status != SetStatus.COMPLETED.value:
        return False
    if (actual.actual_reps or 0) < expected.expected_reps:
        return False
    if (actual.actual_weight or 0) < expected.expected_weight:
        return False
    return True


def _increase(planned_set: PlannedSet, increment: Optional[float]) -> PlannedSet:
    new_weight = Decimal(str(planned_set.expected_weight)) + Decimal(str(increment or 0))
    return replace(planned_set, expected_weight=float(new_weight))


def _group_placements(plan_exercises: Iterable[PlannedExercise]) -> Dict[Any, List[PlannedExercise]]:
    """Group placements by global exercise, first-seen order, one entry per placement id."""
    grouped: Dict[Any, List[PlannedExercise]] = {}
    seen_ids = set()
    for placement in plan_exercises:
        if placement.id in seen_ids:
            continue
        seen_ids.add(placement.id)
        grouped.setdefault(placement.exercise_id, []).append(placement)
    return grouped


def _index_progressions(progressions: Iterable[ExerciseProgression]) -> Dict[Any, ExerciseProgression]:
    indexed: Dict[Any, ExerciseProgression] = {}
    for progression in progressions:
        if progression.exercise_id in indexed:
            raise DataIntegrityError(
                f"More than one exercise progression found for exercise_id: {progression.exercise_id}.",
                context={"exercise_id": str(progression.exercise_id)},
            )
        indexed[progression.exercise_id] = progression
    return indexed


def _judge_exercise(
    exercise_id: Any,
    placements: List[PlannedExercise],
    performed_by_placement: Dict[Any, Dict[int, PerformedSet]],
) -> bool:
    """
    True when the exercise was performed and every expected set was met.

    Placements not performed in this session are not judged. A performed
    placement missing any expected set is a data-integrity fault.
    """
    performed_any = False
    successful = True

    for placement in placements:
        performed = performed_by_placement.get(placement.id)
        if not performed:
            continue
        performed_any = True

        for expected in placement.sets:
            actual = performed.get(expected.set_index)
            if actual is None:
                raise MissingSessionSetError(expected.set_index, exercise_id, placement.id)
            if not _met_target(expected, actual):
                successful = False

    return performed_any and successful


def resolve_progressions(
    session_sets: Iterable[PerformedSet],
    plan_exercises: Iterable[PlannedExercise],
    progressions: Iterable[ExerciseProgression],
    clock: Clock = utc_now,
) -> ProgressionResolution:
    """
    Compute new targets and progression state for one completed session.

    Raises:
        MissingProgressionError: an exercise with expected sets has no progression
        MissingSessionSetError: a performed placement lacks an expected set index
        UnsupportedDeloadStrategyError: a deload is due under a strategy with no computation
    """
    performed_by_placement: Dict[Any, Dict[int, PerformedSet]] = {}
    for performed in session_sets:
        performed_by_placement.setdefault(performed.plan_exercise_id, {})[performed.set_index] = performed

    progression_by_exercise = _index_progressions(progressions)
    resolved_at = clock()
    resolution = ProgressionResolution()

    for exercise_id, placements in _group_placements(plan_exercises).items():
        expected_sets = [s for placement in placements for s in placement.sets]
        if not expected_sets:
            logger.info(
                "Skipping progression for exercise without expected sets",
                extra={"extra_fields": {"exercise_id": str(exercise_id)}},
            )
            continue

        progression = progression_by_exercise.get(exercise_id)
        if progression is None:
            raise MissingProgressionError(exercise_id)

        if _judge_exercise(exercise_id, placements, performed_by_placement):
            updated_sets = [_increase(s, progression.weight_increment) for s in expected_sets]
            failures = 0
        else:
            failures = (progression.consecutive_failures or 0) + 1
            if failures >= progression.failure_count_for_deload:
                strategy = deload_strategy_for(progression)
                updated_sets = [strategy.apply(s) for s in expected_sets]
                logger.info(
                    "Deload triggered",
                    extra={"extra_fields": {
                        "exercise_id": str(exercise_id),
                        "strategy": strategy.kind.value,
                        "failures": failures,
                    }},
                )
                failures = 0
            else:
                updated_sets = [replace(s) for s in expected_sets]

        resolution.sets_to_update.extend(updated_sets)
        resolution.progressions_to_update.append(
            replace(progression, consecutive_failures=failures, last_updated=resolved_at)
        )

    return resolution
