"""
Training Sessions API Router

Endpoints for:
- Starting a session on the next day of a plan
- Listing, viewing, editing and deleting sessions
- Recording performed sets (CRUD and the complete/fail/reset actions)
- Completing a session, which applies progression to the plan
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from core.auth import get_current_user_id
from core.config import settings
from core.database import get_db
from models import TrainingSession
from schemas import (
    SessionSetCreate,
    SessionSetListResponse,
    SessionSetResponse,
    SessionSetUpdate,
    TrainingSessionCreate,
    TrainingSessionListResponse,
    TrainingSessionResponse,
    TrainingSessionSummary,
    TrainingSessionUpdate,
)
from services import session_tracker
from services.progression import SessionStatus
from services.session_completion import complete_session as run_session_completion

router = APIRouter(prefix="/v1/training-sessions", tags=["Training Sessions"])


def _session_response(db: Session, session: TrainingSession) -> TrainingSessionResponse:
    summary = TrainingSessionSummary.model_validate(session)
    return TrainingSessionResponse(
        **summary.model_dump(),
        sets=[SessionSetResponse.model_validate(s) for s in session_tracker.ordered_session_sets(db, session.id)],
    )


# ============ Sessions ============

@router.get("", response_model=TrainingSessionListResponse)
async def list_sessions(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    status_filter: Optional[List[SessionStatus]] = Query(None, alias="status"),
    plan_id: Optional[UUID] = Query(None),
    date_from: Optional[datetime] = Query(None, description="Sessions on or after (ISO format)"),
    date_to: Optional[datetime] = Query(None, description="Sessions on or before (ISO format)"),
    sort_order: str = Query("desc", description="Sort order by session_date: asc or desc"),
):
    sessions, total = session_tracker.list_sessions(
        db, user_id, limit, offset,
        statuses=status_filter,
        plan_id=plan_id,
        date_from=date_from,
        date_to=date_to,
        sort_order=sort_order,
    )
    return TrainingSessionListResponse(
        data=[TrainingSessionSummary.model_validate(s) for s in sessions],
        total_count=total,
    )


@router.post("", response_model=TrainingSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: TrainingSessionCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Start a session.

    Without `plan_day_id` the day after the last completed session's day is
    used (wrapping to the first). Open sessions of the plan are cancelled.
    """
    session = session_tracker.create_session(db, user_id, request.plan_id, request.plan_day_id)
    return _session_response(db, session)


@router.get("/{session_id}", response_model=TrainingSessionResponse)
async def get_session(
    session_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    session = session_tracker.get_owned_session(db, user_id, session_id)
    return _session_response(db, session)


@router.put("/{session_id}", response_model=TrainingSessionResponse)
async def update_session(
    session_id: UUID,
    request: TrainingSessionUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    session = session_tracker.update_session(db, user_id, session_id, request.model_dump(exclude_unset=True))
    return _session_response(db, session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    session_tracker.delete_session(db, user_id, session_id)


@router.post("/{session_id}/complete", response_model=TrainingSessionResponse)
async def complete_session(
    session_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Complete an IN_PROGRESS session.

    Unattempted sets become SKIPPED and the plan's targets and progression
    counters are updated, all in one transaction.
    """
    session = run_session_completion(db, user_id, session_id)
    return _session_response(db, session)


# ============ Session sets ============

@router.get("/{session_id}/sets", response_model=SessionSetListResponse)
async def list_session_sets(
    session_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    session_sets = session_tracker.list_session_sets(db, user_id, session_id)
    return SessionSetListResponse(
        data=[SessionSetResponse.model_validate(s) for s in session_sets],
        total_count=len(session_sets),
    )


@router.post("/{session_id}/sets", response_model=SessionSetResponse, status_code=status.HTTP_201_CREATED)
async def create_session_set(
    session_id: UUID,
    request: SessionSetCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return session_tracker.create_session_set(
        db, user_id, session_id,
        plan_exercise_id=request.plan_exercise_id,
        set_index=request.set_index,
        expected_reps=request.expected_reps,
        actual_reps=request.actual_reps,
        actual_weight=request.actual_weight,
        status=request.status,
    )


@router.get("/{session_id}/sets/{set_id}", response_model=SessionSetResponse)
async def get_session_set(
    session_id: UUID,
    set_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return session_tracker.get_session_set(db, user_id, session_id, set_id)


@router.put("/{session_id}/sets/{set_id}", response_model=SessionSetResponse)
async def update_session_set(
    session_id: UUID,
    set_id: UUID,
    request: SessionSetUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return session_tracker.update_session_set(
        db, user_id, session_id, set_id, request.model_dump(exclude_unset=True)
    )


@router.delete("/{session_id}/sets/{set_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session_set(
    session_id: UUID,
    set_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    session_tracker.delete_session_set(db, user_id, session_id, set_id)


# ============ Set actions ============

@router.patch("/{session_id}/sets/{set_id}/complete", response_model=SessionSetResponse)
async def complete_set(
    session_id: UUID,
    set_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Mark a set done as planned. Starts the session if it is still PENDING."""
    return session_tracker.complete_set(db, user_id, session_id, set_id)


@router.patch("/{session_id}/sets/{set_id}/fail", response_model=SessionSetResponse)
async def fail_set(
    session_id: UUID,
    set_id: UUID,
    reps: Optional[int] = Query(None, ge=0, description="Reps actually achieved"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return session_tracker.fail_set(db, user_id, session_id, set_id, reps=reps)


@router.patch("/{session_id}/sets/{set_id}/reset", response_model=SessionSetResponse)
async def reset_set(
    session_id: UUID,
    set_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return session_tracker.reset_set(db, user_id, session_id, set_id)
