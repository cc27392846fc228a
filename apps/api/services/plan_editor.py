"""
Plan Editor

Create, read, update and delete training plans and everything nested in
them: days, exercise placements, planned sets and progressions.

Every request is scoped to the caller. A plan the caller does not own is
reported as not found; a child id that exists but hangs off a different
parent is an ownership error.

Order fields (day order_index, placement order_index, set set_index) are
only ever assigned through services.index_order.normalize_order. Each
mutation writes the changed row and its re-numbered siblings in one unit
of work.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import asc, desc
from sqlalchemy.orm import Session, selectinload

from core.exceptions import OwnershipError, PlanActivationError, ResourceNotFoundError
from models import (
    Exercise,
    TrainingPlan,
    TrainingPlanDay,
    TrainingPlanExercise,
    TrainingPlanExerciseProgression,
    TrainingPlanExerciseSet,
)
from services.clock import Clock, utc_now
from services.index_order import normalize_order
from services.progression import DeloadStrategy
from services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

PLAN_SORT_FIELDS = {
    "created_at": TrainingPlan.created_at,
    "name": TrainingPlan.name,
}

# Values a brand-new progression starts from when the upsert leaves them out
PROGRESSION_DEFAULTS = {
    "weight_increment": 0.0,
    "failure_count_for_deload": 0,
    "deload_percentage": 0.0,
    "deload_strategy": DeloadStrategy.PROPORTIONAL.value,
    "consecutive_failures": 0,
    "reference_set_index": None,
}


def _reorder(siblings: List[Any], changed: Optional[Any], order_attr: str) -> List[Any]:
    return normalize_order(
        siblings,
        changed,
        get_id=lambda member: member.id,
        get_order=lambda member: getattr(member, order_attr),
        set_order=lambda member, position: setattr(member, order_attr, position),
    )


def _apply_changes(row: Any, changes: Dict[str, Any], allowed: Tuple[str, ...]) -> None:
    for key in allowed:
        if key in changes:
            setattr(row, key, changes[key])


# ============ Ownership lookups ============

def get_owned_plan(db: Session, user_id: UUID, plan_id: UUID) -> TrainingPlan:
    plan = db.query(TrainingPlan).filter(
        TrainingPlan.id == plan_id,
        TrainingPlan.user_id == user_id,
    ).first()
    if not plan:
        raise ResourceNotFoundError("Training plan", plan_id)
    return plan


def _get_day(db: Session, plan: TrainingPlan, day_id: UUID) -> TrainingPlanDay:
    day = db.query(TrainingPlanDay).filter(TrainingPlanDay.id == day_id).first()
    if not day:
        raise ResourceNotFoundError("Training plan day", day_id)
    if day.plan_id != plan.id:
        raise OwnershipError(
            f"Day {day_id} does not belong to plan {plan.id}.",
            context={"plan_day_id": str(day_id), "plan_id": str(plan.id)},
        )
    return day


def _get_placement(db: Session, day: TrainingPlanDay, plan_exercise_id: UUID) -> TrainingPlanExercise:
    placement = db.query(TrainingPlanExercise).filter(TrainingPlanExercise.id == plan_exercise_id).first()
    if not placement:
        raise ResourceNotFoundError("Training plan exercise", plan_exercise_id)
    if placement.plan_day_id != day.id:
        raise OwnershipError(
            f"Plan exercise {plan_exercise_id} does not belong to day {day.id}.",
            context={"plan_exercise_id": str(plan_exercise_id), "plan_day_id": str(day.id)},
        )
    return placement


def _get_plan_set(db: Session, placement: TrainingPlanExercise, set_id: UUID) -> TrainingPlanExerciseSet:
    plan_set = db.query(TrainingPlanExerciseSet).filter(TrainingPlanExerciseSet.id == set_id).first()
    if not plan_set:
        raise ResourceNotFoundError("Training plan exercise set", set_id)
    if plan_set.plan_exercise_id != placement.id:
        raise OwnershipError(
            f"Set {set_id} does not belong to plan exercise {placement.id}.",
            context={"set_id": str(set_id), "plan_exercise_id": str(placement.id)},
        )
    return plan_set


def _require_exercise(db: Session, exercise_id: UUID) -> Exercise:
    exercise = db.query(Exercise).filter(Exercise.id == exercise_id).first()
    if not exercise:
        raise ResourceNotFoundError("Exercise", exercise_id)
    return exercise


def get_day(db: Session, user_id: UUID, plan_id: UUID, day_id: UUID) -> TrainingPlanDay:
    return _get_day(db, get_owned_plan(db, user_id, plan_id), day_id)


def get_placement(db: Session, user_id: UUID, plan_id: UUID, day_id: UUID, plan_exercise_id: UUID) -> TrainingPlanExercise:
    return _get_placement(db, get_day(db, user_id, plan_id, day_id), plan_exercise_id)


def get_plan_set(
    db: Session, user_id: UUID, plan_id: UUID, day_id: UUID, plan_exercise_id: UUID, set_id: UUID
) -> TrainingPlanExerciseSet:
    return _get_plan_set(db, get_placement(db, user_id, plan_id, day_id, plan_exercise_id), set_id)


# ============ Plans ============

def list_plans(
    db: Session,
    user_id: UUID,
    limit: int,
    offset: int = 0,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[TrainingPlan], int]:
    query = db.query(TrainingPlan).filter(TrainingPlan.user_id == user_id)
    total = query.count()

    sort_field = PLAN_SORT_FIELDS.get(sort_by, TrainingPlan.created_at)
    direction = asc if sort_order.lower() == "asc" else desc
    plans = query.order_by(direction(sort_field), TrainingPlan.id).offset(offset).limit(limit).all()
    return plans, total


def get_plan(db: Session, user_id: UUID, plan_id: UUID) -> TrainingPlan:
    """Load a plan with its whole ordered structure and its progressions."""
    plan = db.query(TrainingPlan).options(
        selectinload(TrainingPlan.days)
        .selectinload(TrainingPlanDay.exercises)
        .selectinload(TrainingPlanExercise.sets),
        selectinload(TrainingPlan.progressions),
    ).filter(
        TrainingPlan.id == plan_id,
        TrainingPlan.user_id == user_id,
    ).first()
    if not plan:
        raise ResourceNotFoundError("Training plan", plan_id)
    return plan


def create_plan(
    db: Session,
    user_id: UUID,
    name: str,
    description: Optional[str] = None,
    days: Optional[List[Dict[str, Any]]] = None,
) -> TrainingPlan:
    """
    Create a plan, optionally with nested days, placements and sets.

    Nested collections are numbered by their position in the request.
    """
    plan = TrainingPlan(id=uuid.uuid4(), user_id=user_id, name=name, description=description)

    for day_position, day_data in enumerate(days or [], start=1):
        day = TrainingPlanDay(
            id=uuid.uuid4(),
            name=day_data["name"],
            description=day_data.get("description"),
            order_index=day_position,
        )
        for exercise_position, exercise_data in enumerate(day_data.get("exercises") or [], start=1):
            _require_exercise(db, exercise_data["exercise_id"])
            placement = TrainingPlanExercise(
                id=uuid.uuid4(),
                exercise_id=exercise_data["exercise_id"],
                order_index=exercise_position,
            )
            for set_position, set_data in enumerate(exercise_data.get("sets") or [], start=1):
                placement.sets.append(TrainingPlanExerciseSet(
                    id=uuid.uuid4(),
                    set_index=set_position,
                    expected_reps=set_data["expected_reps"],
                    expected_weight=set_data["expected_weight"],
                ))
            day.exercises.append(placement)
        plan.days.append(day)

    UnitOfWork(db).add("training_plans", [plan]).commit()
    logger.info(
        "Training plan created",
        extra={"extra_fields": {"plan_id": str(plan.id), "user_id": str(user_id), "days": len(plan.days)}},
    )
    return get_plan(db, user_id, plan.id)


def update_plan(db: Session, user_id: UUID, plan_id: UUID, changes: Dict[str, Any]) -> TrainingPlan:
    plan = get_owned_plan(db, user_id, plan_id)
    _apply_changes(plan, changes, ("name", "description"))
    UnitOfWork(db).add("training_plans", [plan]).commit()
    return get_plan(db, user_id, plan_id)


def delete_plan(db: Session, user_id: UUID, plan_id: UUID) -> None:
    plan = get_owned_plan(db, user_id, plan_id)
    UnitOfWork(db).delete("training_plans", [plan]).commit()
    logger.info("Training plan deleted", extra={"extra_fields": {"plan_id": str(plan_id)}})


# ============ Days ============

def _sibling_days(db: Session, plan_id: UUID) -> List[TrainingPlanDay]:
    return db.query(TrainingPlanDay).filter(
        TrainingPlanDay.plan_id == plan_id
    ).order_by(TrainingPlanDay.order_index).all()


def list_days(db: Session, user_id: UUID, plan_id: UUID) -> List[TrainingPlanDay]:
    plan = get_owned_plan(db, user_id, plan_id)
    return _sibling_days(db, plan.id)


def create_day(
    db: Session,
    user_id: UUID,
    plan_id: UUID,
    name: str,
    description: Optional[str] = None,
    order_index: Optional[int] = None,
) -> TrainingPlanDay:
    plan = get_owned_plan(db, user_id, plan_id)
    day = TrainingPlanDay(
        id=uuid.uuid4(), plan_id=plan.id, name=name, description=description, order_index=order_index
    )
    siblings = _reorder(_sibling_days(db, plan.id), day, "order_index")
    UnitOfWork(db).add("training_plan_days", siblings).commit()
    return day


def update_day(db: Session, user_id: UUID, plan_id: UUID, day_id: UUID, changes: Dict[str, Any]) -> TrainingPlanDay:
    plan = get_owned_plan(db, user_id, plan_id)
    day = _get_day(db, plan, day_id)
    siblings = _sibling_days(db, plan.id)
    _apply_changes(day, changes, ("name", "description", "order_index"))
    UnitOfWork(db).add("training_plan_days", _reorder(siblings, day, "order_index")).commit()
    return day


def delete_day(db: Session, user_id: UUID, plan_id: UUID, day_id: UUID) -> None:
    plan = get_owned_plan(db, user_id, plan_id)
    day = _get_day(db, plan, day_id)
    remaining = [d for d in _sibling_days(db, plan.id) if d.id != day.id]
    (
        UnitOfWork(db)
        .delete("training_plan_days", [day])
        .add("training_plan_days", _reorder(remaining, None, "order_index"))
        .commit()
    )


# ============ Exercise placements ============

def _sibling_placements(db: Session, day_id: UUID) -> List[TrainingPlanExercise]:
    return db.query(TrainingPlanExercise).filter(
        TrainingPlanExercise.plan_day_id == day_id
    ).order_by(TrainingPlanExercise.order_index).all()


def list_placements(db: Session, user_id: UUID, plan_id: UUID, day_id: UUID) -> List[TrainingPlanExercise]:
    day = get_day(db, user_id, plan_id, day_id)
    return _sibling_placements(db, day.id)


def create_placement(
    db: Session,
    user_id: UUID,
    plan_id: UUID,
    day_id: UUID,
    exercise_id: UUID,
    order_index: Optional[int] = None,
    sets: Optional[List[Dict[str, Any]]] = None,
) -> TrainingPlanExercise:
    day = get_day(db, user_id, plan_id, day_id)
    _require_exercise(db, exercise_id)

    placement = TrainingPlanExercise(
        id=uuid.uuid4(), plan_day_id=day.id, exercise_id=exercise_id, order_index=order_index
    )
    for set_position, set_data in enumerate(sets or [], start=1):
        placement.sets.append(TrainingPlanExerciseSet(
            id=uuid.uuid4(),
            set_index=set_position,
            expected_reps=set_data["expected_reps"],
            expected_weight=set_data["expected_weight"],
        ))

    siblings = _reorder(_sibling_placements(db, day.id), placement, "order_index")
    UnitOfWork(db).add("training_plan_exercises", siblings).commit()
    return placement


def update_placement(
    db: Session, user_id: UUID, plan_id: UUID, day_id: UUID, plan_exercise_id: UUID, changes: Dict[str, Any]
) -> TrainingPlanExercise:
    day = get_day(db, user_id, plan_id, day_id)
    placement = _get_placement(db, day, plan_exercise_id)
    if changes.get("exercise_id") is not None:
        _require_exercise(db, changes["exercise_id"])

    siblings = _sibling_placements(db, day.id)
    _apply_changes(placement, changes, ("exercise_id", "order_index"))
    UnitOfWork(db).add("training_plan_exercises", _reorder(siblings, placement, "order_index")).commit()
    return placement


def delete_placement(db: Session, user_id: UUID, plan_id: UUID, day_id: UUID, plan_exercise_id: UUID) -> None:
    day = get_day(db, user_id, plan_id, day_id)
    placement = _get_placement(db, day, plan_exercise_id)
    remaining = [p for p in _sibling_placements(db, day.id) if p.id != placement.id]
    (
        UnitOfWork(db)
        .delete("training_plan_exercises", [placement])
        .add("training_plan_exercises", _reorder(remaining, None, "order_index"))
        .commit()
    )


# ============ Planned sets ============

def _sibling_sets(db: Session, plan_exercise_id: UUID) -> List[TrainingPlanExerciseSet]:
    return db.query(TrainingPlanExerciseSet).filter(
        TrainingPlanExerciseSet.plan_exercise_id == plan_exercise_id
    ).order_by(TrainingPlanExerciseSet.set_index).all()


def list_plan_sets(
    db: Session, user_id: UUID, plan_id: UUID, day_id: UUID, plan_exercise_id: UUID
) -> List[TrainingPlanExerciseSet]:
    placement = get_placement(db, user_id, plan_id, day_id, plan_exercise_id)
    return _sibling_sets(db, placement.id)


def create_plan_set(
    db: Session,
    user_id: UUID,
    plan_id: UUID,
    day_id: UUID,
    plan_exercise_id: UUID,
    expected_reps: int,
    expected_weight: float,
    set_index: Optional[int] = None,
) -> TrainingPlanExerciseSet:
    placement = get_placement(db, user_id, plan_id, day_id, plan_exercise_id)
    plan_set = TrainingPlanExerciseSet(
        id=uuid.uuid4(),
        plan_exercise_id=placement.id,
        set_index=set_index,
        expected_reps=expected_reps,
        expected_weight=expected_weight,
    )
    siblings = _reorder(_sibling_sets(db, placement.id), plan_set, "set_index")
    UnitOfWork(db).add("training_plan_exercise_sets", siblings).commit()
    return plan_set


def update_plan_set(
    db: Session,
    user_id: UUID,
    plan_id: UUID,
    day_id: UUID,
    plan_exercise_id: UUID,
    set_id: UUID,
    changes: Dict[str, Any],
) -> TrainingPlanExerciseSet:
    placement = get_placement(db, user_id, plan_id, day_id, plan_exercise_id)
    plan_set = _get_plan_set(db, placement, set_id)
    siblings = _sibling_sets(db, placement.id)
    _apply_changes(plan_set, changes, ("expected_reps", "expected_weight", "set_index"))
    UnitOfWork(db).add("training_plan_exercise_sets", _reorder(siblings, plan_set, "set_index")).commit()
    return plan_set


def delete_plan_set(
    db: Session, user_id: UUID, plan_id: UUID, day_id: UUID, plan_exercise_id: UUID, set_id: UUID
) -> None:
    placement = get_placement(db, user_id, plan_id, day_id, plan_exercise_id)
    plan_set = _get_plan_set(db, placement, set_id)
    remaining = [s for s in _sibling_sets(db, placement.id) if s.id != plan_set.id]
    (
        UnitOfWork(db)
        .delete("training_plan_exercise_sets", [plan_set])
        .add("training_plan_exercise_sets", _reorder(remaining, None, "set_index"))
        .commit()
    )


# ============ Progressions ============

def list_progressions(db: Session, user_id: UUID, plan_id: UUID) -> List[TrainingPlanExerciseProgression]:
    plan = get_owned_plan(db, user_id, plan_id)
    return db.query(TrainingPlanExerciseProgression).filter(
        TrainingPlanExerciseProgression.plan_id == plan.id
    ).all()


def get_progression(db: Session, user_id: UUID, plan_id: UUID, exercise_id: UUID) -> TrainingPlanExerciseProgression:
    plan = get_owned_plan(db, user_id, plan_id)
    progression = db.query(TrainingPlanExerciseProgression).filter(
        TrainingPlanExerciseProgression.plan_id == plan.id,
        TrainingPlanExerciseProgression.exercise_id == exercise_id,
    ).first()
    if not progression:
        raise ResourceNotFoundError("Exercise progression", exercise_id)
    return progression


def upsert_progression(
    db: Session,
    user_id: UUID,
    plan_id: UUID,
    exercise_id: UUID,
    changes: Dict[str, Any],
    clock: Clock = utc_now,
) -> TrainingPlanExerciseProgression:
    """
    Create or replace the progression for one exercise in one plan.

    Fields left out of `changes` keep their stored value, or take the
    PROGRESSION_DEFAULTS for a new record. last_updated is always stamped.
    """
    plan = get_owned_plan(db, user_id, plan_id)
    _require_exercise(db, exercise_id)

    progression = db.query(TrainingPlanExerciseProgression).filter(
        TrainingPlanExerciseProgression.plan_id == plan.id,
        TrainingPlanExerciseProgression.exercise_id == exercise_id,
    ).first()
    if progression is None:
        progression = TrainingPlanExerciseProgression(id=uuid.uuid4(), plan_id=plan.id, exercise_id=exercise_id)
        for key, default in PROGRESSION_DEFAULTS.items():
            setattr(progression, key, default)

    for key in PROGRESSION_DEFAULTS:
        if key in changes and changes[key] is not None:
            value = changes[key]
            setattr(progression, key, value.value if isinstance(value, DeloadStrategy) else value)
    if "reference_set_index" in changes:
        progression.reference_set_index = changes["reference_set_index"]
    progression.last_updated = clock()

    UnitOfWork(db).add("training_plan_exercise_progressions", [progression]).commit()
    return progression


# ============ Activation ============

def ensure_plan_activatable(db: Session, user_id: UUID, plan_id: UUID) -> TrainingPlan:
    """
    A plan can be made active only when every exercise it uses has a
    progression. Raises PlanActivationError listing the exercises that do not.
    """
    plan = db.query(TrainingPlan).filter(
        TrainingPlan.id == plan_id,
        TrainingPlan.user_id == user_id,
    ).first()
    if not plan:
        raise PlanActivationError(
            f"Plan {plan_id} does not exist or is not owned by the user.",
            context={"plan_id": str(plan_id)},
        )

    used_exercise_ids = {
        row.exercise_id
        for row in db.query(TrainingPlanExercise.exercise_id).join(
            TrainingPlanDay, TrainingPlanExercise.plan_day_id == TrainingPlanDay.id
        ).filter(TrainingPlanDay.plan_id == plan.id)
    }
    covered_exercise_ids = {
        row.exercise_id
        for row in db.query(TrainingPlanExerciseProgression.exercise_id).filter(
            TrainingPlanExerciseProgression.plan_id == plan.id
        )
    }
    missing = sorted(str(exercise_id) for exercise_id in used_exercise_ids - covered_exercise_ids)
    if missing:
        raise PlanActivationError(
            f"Plan {plan_id} cannot be activated: {len(missing)} exercise(s) have no progression.",
            context={"plan_id": str(plan_id), "missing_exercise_ids": missing},
        )
    return plan
