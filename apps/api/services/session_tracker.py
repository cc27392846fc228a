"""
Session Tracker

Everything about a training session short of completing it:

- starting a session for the next day of a plan, with one PENDING set per
  planned set (weights pre-filled from the plan)
- listing, reading, editing and deleting sessions
- adding, editing and removing performed sets, numbered densely within
  each (session, placement) pair
- the per-set actions used while training: complete, fail, reset

Completion itself lives in services.session_completion.

Session status machine:
    PENDING -> IN_PROGRESS -> COMPLETED
    PENDING | IN_PROGRESS -> CANCELLED
COMPLETED and CANCELLED are terminal.
"""

import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import asc, desc
from sqlalchemy.orm import Session

from core.exceptions import OwnershipError, ResourceNotFoundError, SessionStateError
from models import (
    SessionSet,
    TrainingPlan,
    TrainingPlanDay,
    TrainingPlanExercise,
    TrainingSession,
)
from services.clock import Clock, utc_now
from services.index_order import normalize_order
from services.plan_editor import get_owned_plan
from services.progression import OPEN_SESSION_STATUSES, SessionStatus, SetStatus
from services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

OPEN_STATUS_VALUES = tuple(s.value for s in OPEN_SESSION_STATUSES)

# Transitions allowed through a plain update. COMPLETED is reached only
# through the completion endpoint.
ALLOWED_TRANSITIONS = {
    SessionStatus.PENDING.value: {SessionStatus.IN_PROGRESS.value, SessionStatus.CANCELLED.value},
    SessionStatus.IN_PROGRESS.value: {SessionStatus.CANCELLED.value},
    SessionStatus.COMPLETED.value: set(),
    SessionStatus.CANCELLED.value: set(),
}


def _status_value(status: Any) -> str:
    return status.value if isinstance(status, Enum) else status


def _reorder_sets(siblings: Sequence[SessionSet], changed: Optional[SessionSet]) -> List[SessionSet]:
    return normalize_order(
        siblings,
        changed,
        get_id=lambda s: s.id,
        get_order=lambda s: s.set_index,
        set_order=lambda s, position: setattr(s, "set_index", position),
    )


def _require_open(session: TrainingSession) -> None:
    if session.status not in OPEN_STATUS_VALUES:
        raise SessionStateError(
            f"Session {session.id} is {session.status}; its sets can no longer be changed.",
            context={"session_id": str(session.id), "status": session.status},
        )


# ============ Sessions ============

def get_owned_session(db: Session, user_id: UUID, session_id: UUID) -> TrainingSession:
    session = db.query(TrainingSession).filter(
        TrainingSession.id == session_id,
        TrainingSession.user_id == user_id,
    ).first()
    if not session:
        raise ResourceNotFoundError("Training session", session_id)
    return session


def ordered_session_sets(db: Session, session_id: UUID) -> List[SessionSet]:
    """Sets ordered by placement position within its day, then set_index."""
    return db.query(SessionSet).outerjoin(
        TrainingPlanExercise, SessionSet.plan_exercise_id == TrainingPlanExercise.id
    ).filter(
        SessionSet.session_id == session_id
    ).order_by(
        TrainingPlanExercise.order_index, SessionSet.plan_exercise_id, SessionSet.set_index
    ).all()


def list_sessions(
    db: Session,
    user_id: UUID,
    limit: int,
    offset: int = 0,
    statuses: Optional[List[str]] = None,
    plan_id: Optional[UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    sort_order: str = "desc",
) -> Tuple[List[TrainingSession], int]:
    query = db.query(TrainingSession).filter(TrainingSession.user_id == user_id)

    if statuses:
        query = query.filter(TrainingSession.status.in_([_status_value(s) for s in statuses]))
    if plan_id:
        query = query.filter(TrainingSession.plan_id == plan_id)
    if date_from:
        query = query.filter(TrainingSession.session_date >= date_from)
    if date_to:
        query = query.filter(TrainingSession.session_date <= date_to)

    total = query.count()
    direction = asc if sort_order.lower() == "asc" else desc
    sessions = query.order_by(
        direction(TrainingSession.session_date), TrainingSession.id
    ).offset(offset).limit(limit).all()
    return sessions, total


def _next_day(db: Session, user_id: UUID, plan: TrainingPlan, days: List[TrainingPlanDay]) -> TrainingPlanDay:
    """The day after the most recently completed one, wrapping; the first day otherwise."""
    last_completed = db.query(TrainingSession).filter(
        TrainingSession.user_id == user_id,
        TrainingSession.plan_id == plan.id,
        TrainingSession.status == SessionStatus.COMPLETED.value,
        TrainingSession.plan_day_id.isnot(None),
    ).order_by(desc(TrainingSession.session_date)).first()

    if last_completed is None:
        return days[0]

    for position, day in enumerate(days):
        if day.id == last_completed.plan_day_id:
            return days[(position + 1) % len(days)]
    return days[0]


def create_session(
    db: Session,
    user_id: UUID,
    plan_id: UUID,
    plan_day_id: Optional[UUID] = None,
    clock: Clock = utc_now,
) -> TrainingSession:
    """
    Start a new PENDING session.

    Open sessions of the same plan are cancelled. Every planned set of the
    chosen day gets a PENDING session set with the planned weight filled in.
    """
    plan = get_owned_plan(db, user_id, plan_id)
    days = db.query(TrainingPlanDay).filter(
        TrainingPlanDay.plan_id == plan.id
    ).order_by(TrainingPlanDay.order_index).all()
    if not days:
        raise SessionStateError(
            f"Plan {plan_id} has no days to train.",
            context={"plan_id": str(plan_id)},
        )

    if plan_day_id is not None:
        day = next((d for d in days if d.id == plan_day_id), None)
        if day is None:
            raise OwnershipError(
                f"Day {plan_day_id} does not belong to plan {plan_id}.",
                context={"plan_day_id": str(plan_day_id), "plan_id": str(plan_id)},
            )
    else:
        day = _next_day(db, user_id, plan, days)

    open_sessions = db.query(TrainingSession).filter(
        TrainingSession.user_id == user_id,
        TrainingSession.plan_id == plan.id,
        TrainingSession.status.in_(OPEN_STATUS_VALUES),
    ).all()
    for open_session in open_sessions:
        open_session.status = SessionStatus.CANCELLED.value

    session = TrainingSession(
        id=uuid.uuid4(),
        user_id=user_id,
        plan_id=plan.id,
        plan_day_id=day.id,
        session_date=clock(),
        status=SessionStatus.PENDING.value,
    )

    session_sets = []
    for placement in day.exercises:
        for plan_set in placement.sets:
            session_sets.append(SessionSet(
                id=uuid.uuid4(),
                session_id=session.id,
                plan_exercise_id=placement.id,
                set_index=plan_set.set_index,
                expected_reps=plan_set.expected_reps,
                actual_reps=None,
                actual_weight=plan_set.expected_weight,
                status=SetStatus.PENDING.value,
            ))

    (
        UnitOfWork(db)
        .add("training_sessions", open_sessions)
        .add("training_sessions", [session])
        .add("session_sets", session_sets)
        .commit()
    )
    logger.info(
        "Training session started",
        extra={"extra_fields": {
            "session_id": str(session.id),
            "plan_id": str(plan.id),
            "plan_day_id": str(day.id),
            "cancelled_sessions": len(open_sessions),
            "sets": len(session_sets),
        }},
    )
    return session


def update_session(db: Session, user_id: UUID, session_id: UUID, changes: Dict[str, Any]) -> TrainingSession:
    session = get_owned_session(db, user_id, session_id)

    if changes.get("status") is not None:
        new_status = _status_value(changes["status"])
        if new_status != session.status:
            if new_status not in ALLOWED_TRANSITIONS.get(session.status, set()):
                raise SessionStateError(
                    f"Session {session_id} cannot move from {session.status} to {new_status}.",
                    context={"session_id": str(session_id), "status": session.status, "requested": new_status},
                )
            session.status = new_status
    if changes.get("session_date") is not None:
        session.session_date = changes["session_date"]

    UnitOfWork(db).add("training_sessions", [session]).commit()
    return session


def delete_session(db: Session, user_id: UUID, session_id: UUID) -> None:
    session = get_owned_session(db, user_id, session_id)
    UnitOfWork(db).delete("training_sessions", [session]).commit()


# ============ Session sets ============

def _get_session_set(db: Session, session: TrainingSession, set_id: UUID) -> SessionSet:
    session_set = db.query(SessionSet).filter(SessionSet.id == set_id).first()
    if not session_set:
        raise ResourceNotFoundError("Session set", set_id)
    if session_set.session_id != session.id:
        raise OwnershipError(
            f"Set {set_id} does not belong to session {session.id}.",
            context={"set_id": str(set_id), "session_id": str(session.id)},
        )
    return session_set


def _sibling_session_sets(db: Session, session_id: UUID, plan_exercise_id: UUID) -> List[SessionSet]:
    return db.query(SessionSet).filter(
        SessionSet.session_id == session_id,
        SessionSet.plan_exercise_id == plan_exercise_id,
    ).order_by(SessionSet.set_index).all()


def _require_placement_in_plan(db: Session, session: TrainingSession, plan_exercise_id: UUID) -> None:
    placement = db.query(TrainingPlanExercise).filter(TrainingPlanExercise.id == plan_exercise_id).first()
    if not placement:
        raise ResourceNotFoundError("Training plan exercise", plan_exercise_id)
    if placement.day.plan_id != session.plan_id:
        raise OwnershipError(
            f"Plan exercise {plan_exercise_id} does not belong to plan {session.plan_id}.",
            context={"plan_exercise_id": str(plan_exercise_id), "plan_id": str(session.plan_id)},
        )


def get_session_set(db: Session, user_id: UUID, session_id: UUID, set_id: UUID) -> SessionSet:
    return _get_session_set(db, get_owned_session(db, user_id, session_id), set_id)


def list_session_sets(db: Session, user_id: UUID, session_id: UUID) -> List[SessionSet]:
    session = get_owned_session(db, user_id, session_id)
    return ordered_session_sets(db, session.id)


def create_session_set(
    db: Session,
    user_id: UUID,
    session_id: UUID,
    plan_exercise_id: UUID,
    set_index: Optional[int] = None,
    expected_reps: Optional[int] = None,
    actual_reps: Optional[int] = None,
    actual_weight: float = 0,
    status: Any = SetStatus.PENDING,
) -> SessionSet:
    session = get_owned_session(db, user_id, session_id)
    _require_open(session)
    _require_placement_in_plan(db, session, plan_exercise_id)

    session_set = SessionSet(
        id=uuid.uuid4(),
        session_id=session.id,
        plan_exercise_id=plan_exercise_id,
        set_index=set_index,
        expected_reps=expected_reps,
        actual_reps=actual_reps,
        actual_weight=actual_weight,
        status=_status_value(status),
    )
    siblings = _reorder_sets(_sibling_session_sets(db, session.id, plan_exercise_id), session_set)
    UnitOfWork(db).add("session_sets", siblings).commit()
    return session_set


def update_session_set(
    db: Session, user_id: UUID, session_id: UUID, set_id: UUID, changes: Dict[str, Any]
) -> SessionSet:
    session = get_owned_session(db, user_id, session_id)
    _require_open(session)
    session_set = _get_session_set(db, session, set_id)
    siblings = _sibling_session_sets(db, session.id, session_set.plan_exercise_id)

    for key in ("expected_reps", "actual_reps", "actual_weight", "completed_at", "set_index"):
        if key in changes:
            setattr(session_set, key, changes[key])
    if changes.get("status") is not None:
        session_set.status = _status_value(changes["status"])

    UnitOfWork(db).add("session_sets", _reorder_sets(siblings, session_set)).commit()
    return session_set


def delete_session_set(db: Session, user_id: UUID, session_id: UUID, set_id: UUID) -> None:
    session = get_owned_session(db, user_id, session_id)
    _require_open(session)
    session_set = _get_session_set(db, session, set_id)
    remaining = [
        s for s in _sibling_session_sets(db, session.id, session_set.plan_exercise_id)
        if s.id != session_set.id
    ]
    (
        UnitOfWork(db)
        .delete("session_sets", [session_set])
        .add("session_sets", _reorder_sets(remaining, None))
        .commit()
    )


# ============ Set actions ============

def _act_on_set(db: Session, user_id: UUID, session_id: UUID, set_id: UUID, clock: Clock, apply) -> SessionSet:
    session = get_owned_session(db, user_id, session_id)
    if session.status == SessionStatus.COMPLETED.value:
        raise SessionStateError(
            f"Session {session_id} is already completed.",
            context={"session_id": str(session_id), "status": session.status},
        )
    _require_open(session)
    session_set = _get_session_set(db, session, set_id)

    now = clock()
    apply(session_set, now)

    uow = UnitOfWork(db).add("session_sets", [session_set])
    if session.status == SessionStatus.PENDING.value:
        # First action on a session starts it
        session.status = SessionStatus.IN_PROGRESS.value
        session.session_date = now
        uow.add("training_sessions", [session])
    uow.commit()
    return session_set


def complete_set(db: Session, user_id: UUID, session_id: UUID, set_id: UUID, clock: Clock = utc_now) -> SessionSet:
    """Mark a set done exactly as planned."""
    def apply(session_set: SessionSet, now: datetime) -> None:
        session_set.status = SetStatus.COMPLETED.value
        session_set.actual_reps = session_set.expected_reps
        session_set.completed_at = now

    return _act_on_set(db, user_id, session_id, set_id, clock, apply)


def fail_set(
    db: Session, user_id: UUID, session_id: UUID, set_id: UUID, reps: Optional[int] = None, clock: Clock = utc_now
) -> SessionSet:
    """Mark a set failed with the reps actually achieved (0 when unknown)."""
    def apply(session_set: SessionSet, now: datetime) -> None:
        session_set.status = SetStatus.FAILED.value
        session_set.actual_reps = reps if reps is not None else 0
        session_set.completed_at = now

    return _act_on_set(db, user_id, session_id, set_id, clock, apply)


def reset_set(db: Session, user_id: UUID, session_id: UUID, set_id: UUID, clock: Clock = utc_now) -> SessionSet:
    def apply(session_set: SessionSet, now: datetime) -> None:
        session_set.status = SetStatus.PENDING.value
        session_set.actual_reps = None
        session_set.completed_at = None

    return _act_on_set(db, user_id, session_id, set_id, clock, apply)
