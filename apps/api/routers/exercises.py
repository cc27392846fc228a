"""
Exercises API Router

The exercise catalogue is global: every user can read it and add new
entries, nobody can edit or remove existing ones through the API.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import asc, desc
from sqlalchemy.orm import Session
from uuid import UUID
import logging
import uuid

from core.auth import get_current_user_id
from core.config import settings
from core.database import get_db
from core.exceptions import ConflictError, ForbiddenError, NotFoundError
from models import Exercise
from schemas import ExerciseCreate, ExerciseListResponse, ExerciseResponse, ExerciseUpdate
from services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/exercises", tags=["Exercises"])


@router.get("", response_model=ExerciseListResponse)
async def list_exercises(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    sort_order: str = Query("asc", description="Sort order by name: asc or desc"),
):
    query = db.query(Exercise)
    total = query.count()
    direction = asc if sort_order.lower() == "asc" else desc
    exercises = query.order_by(direction(Exercise.name)).offset(offset).limit(limit).all()
    return ExerciseListResponse(
        data=[ExerciseResponse.model_validate(e) for e in exercises],
        total_count=total,
    )


@router.get("/{exercise_id}", response_model=ExerciseResponse)
async def get_exercise(
    exercise_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    exercise = db.query(Exercise).filter(Exercise.id == exercise_id).first()
    if not exercise:
        raise NotFoundError("Exercise", str(exercise_id))
    return exercise


@router.post("", response_model=ExerciseResponse, status_code=status.HTTP_201_CREATED)
async def create_exercise(
    request: ExerciseCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Add an exercise to the catalogue. Names are unique."""
    existing = db.query(Exercise).filter(Exercise.name == request.name).first()
    if existing:
        raise ConflictError(f"Exercise already exists: {request.name}")

    exercise = Exercise(id=uuid.uuid4(), name=request.name, description=request.description)
    UnitOfWork(db).add("exercises", [exercise]).commit()
    logger.info(
        "Exercise created",
        extra={"extra_fields": {"exercise_id": str(exercise.id), "user_id": str(user_id)}},
    )
    return exercise


@router.put("/{exercise_id}", response_model=ExerciseResponse)
async def update_exercise(
    exercise_id: UUID,
    request: ExerciseUpdate,
    user_id: UUID = Depends(get_current_user_id),
):
    raise ForbiddenError("Exercises are shared and cannot be edited")


@router.delete("/{exercise_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exercise(
    exercise_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
):
    raise ForbiddenError("Exercises are shared and cannot be deleted")
