"""
In-memory records the progression engine works on.

The engine never sees ORM rows: callers convert with `from_model` and get
plain, immutable values back. Anything with the right attributes works as
a source, which keeps the engine testable without a database.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class PlannedSet:
    """Target for one set of one placement."""
    id: Any
    plan_exercise_id: Any
    set_index: int
    expected_reps: int
    expected_weight: float

    @classmethod
    def from_model(cls, row: Any) -> "PlannedSet":
        return cls(
            id=row.id,
            plan_exercise_id=row.plan_exercise_id,
            set_index=row.set_index,
            expected_reps=row.expected_reps,
            expected_weight=row.expected_weight,
        )


@dataclass(frozen=True)
class PlannedExercise:
    """One placement of a global exercise, with its expected sets."""
    id: Any
    exercise_id: Any
    sets: Tuple[PlannedSet, ...] = field(default_factory=tuple)

    @classmethod
    def from_model(cls, row: Any) -> "PlannedExercise":
        return cls(
            id=row.id,
            exercise_id=row.exercise_id,
            sets=tuple(PlannedSet.from_model(s) for s in row.sets),
        )


@dataclass(frozen=True)
class PerformedSet:
    """What actually happened for one set in a session."""
    id: Any
    plan_exercise_id: Any
    set_index: int
    status: str
    expected_reps: Optional[int] = None
    actual_reps: Optional[int] = None
    actual_weight: Optional[float] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, row: Any) -> "PerformedSet":
        return cls(
            id=row.id,
            plan_exercise_id=row.plan_exercise_id,
            set_index=row.set_index,
            status=row.status,
            expected_reps=row.expected_reps,
            actual_reps=row.actual_reps,
            actual_weight=row.actual_weight,
            completed_at=row.completed_at,
        )


@dataclass(frozen=True)
class ExerciseProgression:
    """Progression rule for one exercise within one plan."""
    id: Any
    plan_id: Any
    exercise_id: Any
    weight_increment: Optional[float]
    failure_count_for_deload: int
    deload_percentage: Optional[float] = None
    deload_strategy: Optional[str] = None
    consecutive_failures: int = 0
    reference_set_index: Optional[int] = None
    last_updated: Optional[datetime] = None

    @classmethod
    def from_model(cls, row: Any) -> "ExerciseProgression":
        return cls(
            id=row.id,
            plan_id=row.plan_id,
            exercise_id=row.exercise_id,
            weight_increment=row.weight_increment,
            failure_count_for_deload=row.failure_count_for_deload,
            deload_percentage=row.deload_percentage,
            deload_strategy=row.deload_strategy,
            consecutive_failures=row.consecutive_failures,
            reference_set_index=row.reference_set_index,
            last_updated=row.last_updated,
        )


@dataclass
class ProgressionResolution:
    """Resolver output: new targets and new progression state."""
    sets_to_update: List[PlannedSet] = field(default_factory=list)
    progressions_to_update: List[ExerciseProgression] = field(default_factory=list)
