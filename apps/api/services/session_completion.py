"""
Session Completion

Closes an IN_PROGRESS training session:

1. load the session (scoped to the caller) and check its status
2. load its performed sets
3. load every placement in the plan that uses an exercise performed in the
   session, with the plan's progressions for those exercises
4. run the progression resolver
5. mark never-attempted sets SKIPPED
6. write skipped sets, new targets and new progression state, and move
   the session to COMPLETED only if it is still IN_PROGRESS, in one unit
   of work

Nothing is visible unless the whole batch commits. A second completion of
the same session fails on the status check, or, when it raced past that
check, on the guarded status update, instead of applying progression twice.
"""

import logging
from typing import Any, Dict, Iterable, List
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from core.exceptions import ResourceNotFoundError, SessionStateError
from models import (
    SessionSet,
    TrainingPlanDay,
    TrainingPlanExercise,
    TrainingPlanExerciseProgression,
    TrainingSession,
)
from services.clock import Clock, utc_now
from services.progression import (
    ExerciseProgression,
    PerformedSet,
    PlannedExercise,
    ProgressionResolution,
    SessionStatus,
    SetStatus,
    resolve_progressions,
)
from services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class SessionCompletionOrchestrator:
    """Coordinates one completion request for one user."""

    def __init__(self, db: Session, user_id: UUID, clock: Clock = utc_now):
        self.db = db
        self.user_id = user_id
        self.clock = clock

    def complete(self, session_id: UUID) -> TrainingSession:
        session = self._load_session(session_id)
        if session.status != SessionStatus.IN_PROGRESS.value:
            raise SessionStateError(
                f"Session {session_id} cannot be completed from status {session.status}; "
                f"it must be {SessionStatus.IN_PROGRESS.value}.",
                context={"session_id": str(session_id), "status": session.status},
            )

        session_sets = self._load_session_sets(session_id)
        placements = self._load_placements(session.plan_id, session_sets)
        progression_rows = self._load_progressions(
            session.plan_id, {placement.exercise_id for placement in placements}
        )

        resolution = resolve_progressions(
            [PerformedSet.from_model(s) for s in session_sets],
            [PlannedExercise.from_model(p) for p in placements],
            [ExerciseProgression.from_model(p) for p in progression_rows],
            clock=self.clock,
        )

        skipped = [s for s in session_sets if s.status == SetStatus.PENDING.value]
        for session_set in skipped:
            session_set.status = SetStatus.SKIPPED.value

        uow = UnitOfWork(self.db)
        uow.add("session_sets", skipped)
        uow.add("plan_exercise_sets", self._apply_set_targets(placements, resolution))
        uow.add("progressions", self._apply_progression_state(progression_rows, resolution))
        # Re-checks IN_PROGRESS at write time; a completion that committed
        # after our read leaves this matching no row.
        uow.update_where(
            "sessions",
            self.db.query(TrainingSession).filter(
                TrainingSession.id == session_id,
                TrainingSession.status == SessionStatus.IN_PROGRESS.value,
            ),
            {TrainingSession.status: SessionStatus.COMPLETED.value},
            on_stale=lambda: SessionStateError(
                f"Session {session_id} was completed or changed by another request.",
                context={"session_id": str(session_id)},
            ),
        )
        uow.commit()

        logger.info(
            "Session completed",
            extra={"extra_fields": {
                "session_id": str(session_id),
                "user_id": str(self.user_id),
                "skipped_sets": len(skipped),
                "updated_sets": len(resolution.sets_to_update),
                "updated_progressions": len(resolution.progressions_to_update),
            }},
        )
        return session

    # ---- reads ----

    def _load_session(self, session_id: UUID) -> TrainingSession:
        session = self.db.query(TrainingSession).filter(
            TrainingSession.id == session_id,
            TrainingSession.user_id == self.user_id,
        ).first()
        if not session:
            raise ResourceNotFoundError("Training session", session_id)
        return session

    def _load_session_sets(self, session_id: UUID) -> List[SessionSet]:
        return self.db.query(SessionSet).filter(
            SessionSet.session_id == session_id,
        ).order_by(SessionSet.plan_exercise_id, SessionSet.set_index).all()

    def _load_placements(self, plan_id: UUID, session_sets: List[SessionSet]) -> List[TrainingPlanExercise]:
        """All placements in the plan whose exercise was touched by the session."""
        placement_ids = {s.plan_exercise_id for s in session_sets}
        if not placement_ids:
            return []

        exercise_ids = {
            row.exercise_id
            for row in self.db.query(TrainingPlanExercise.exercise_id).filter(
                TrainingPlanExercise.id.in_(placement_ids)
            )
        }
        if not exercise_ids:
            return []

        return self.db.query(TrainingPlanExercise).join(
            TrainingPlanDay, TrainingPlanExercise.plan_day_id == TrainingPlanDay.id
        ).filter(
            TrainingPlanDay.plan_id == plan_id,
            TrainingPlanExercise.exercise_id.in_(exercise_ids),
        ).options(
            selectinload(TrainingPlanExercise.sets)
        ).order_by(
            TrainingPlanDay.order_index, TrainingPlanExercise.order_index
        ).all()

    def _load_progressions(self, plan_id: UUID, exercise_ids: Iterable[Any]) -> List[TrainingPlanExerciseProgression]:
        exercise_ids = set(exercise_ids)
        if not exercise_ids:
            return []
        return self.db.query(TrainingPlanExerciseProgression).filter(
            TrainingPlanExerciseProgression.plan_id == plan_id,
            TrainingPlanExerciseProgression.exercise_id.in_(exercise_ids),
        ).all()

    # ---- write-back ----

    def _apply_set_targets(self, placements, resolution: ProgressionResolution):
        rows: Dict[Any, Any] = {s.id: s for placement in placements for s in placement.sets}
        changed = []
        for resolved in resolution.sets_to_update:
            row = rows[resolved.id]
            if row.expected_weight != resolved.expected_weight:
                row.expected_weight = resolved.expected_weight
                changed.append(row)
        return changed

    def _apply_progression_state(self, progression_rows, resolution: ProgressionResolution):
        rows: Dict[Any, Any] = {p.id: p for p in progression_rows}
        changed = []
        for resolved in resolution.progressions_to_update:
            row = rows[resolved.id]
            row.consecutive_failures = resolved.consecutive_failures
            row.last_updated = resolved.last_updated
            changed.append(row)
        return changed


def complete_session(db: Session, user_id: UUID, session_id: UUID, clock: Clock = utc_now) -> TrainingSession:
    """Complete one session. See SessionCompletionOrchestrator."""
    return SessionCompletionOrchestrator(db, user_id, clock=clock).complete(session_id)
