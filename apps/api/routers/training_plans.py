"""
Training Plans API Router

Endpoints for:
- Creating, viewing, editing and deleting training plans
- Ordered days, exercise placements and planned sets inside a plan
- Per-exercise progression rules

Everything is scoped to the authenticated user. Ordering of nested
collections is handled by the plan editor; clients only state the
position they want.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from uuid import UUID

from core.auth import get_current_user_id
from core.config import settings
from core.database import get_db
from schemas import (
    PlanDayCreate,
    PlanDayListResponse,
    PlanDayResponse,
    PlanDayUpdate,
    PlanExerciseCreate,
    PlanExerciseListResponse,
    PlanExerciseResponse,
    PlanExerciseUpdate,
    PlanSetCreate,
    PlanSetListResponse,
    PlanSetResponse,
    PlanSetUpdate,
    ProgressionListResponse,
    ProgressionResponse,
    ProgressionUpsert,
    TrainingPlanCreate,
    TrainingPlanListResponse,
    TrainingPlanResponse,
    TrainingPlanSummary,
    TrainingPlanUpdate,
)
from services import plan_editor

router = APIRouter(prefix="/v1/training-plans", tags=["Training Plans"])


# ============ Plans ============

@router.get("", response_model=TrainingPlanListResponse)
async def list_plans(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    sort_by: str = Query("created_at", description="Sort field: created_at, name"),
    sort_order: str = Query("desc", description="Sort order: asc or desc"),
):
    """List the user's plans (summaries only)."""
    plans, total = plan_editor.list_plans(db, user_id, limit, offset, sort_by, sort_order)
    return TrainingPlanListResponse(
        data=[TrainingPlanSummary.model_validate(p) for p in plans],
        total_count=total,
    )


@router.post("", response_model=TrainingPlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    request: TrainingPlanCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Create a plan, optionally with nested days, exercises and sets."""
    payload = request.model_dump()
    plan = plan_editor.create_plan(
        db, user_id, name=payload["name"], description=payload["description"], days=payload["days"]
    )
    return TrainingPlanResponse.model_validate(plan)


@router.get("/{plan_id}", response_model=TrainingPlanResponse)
async def get_plan(
    plan_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Get a plan with its ordered days, exercises, sets and its progressions."""
    return TrainingPlanResponse.model_validate(plan_editor.get_plan(db, user_id, plan_id))


@router.put("/{plan_id}", response_model=TrainingPlanResponse)
async def update_plan(
    plan_id: UUID,
    request: TrainingPlanUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    plan = plan_editor.update_plan(db, user_id, plan_id, request.model_dump(exclude_unset=True))
    return TrainingPlanResponse.model_validate(plan)


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plan(
    plan_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Delete a plan and everything under it, including its sessions."""
    plan_editor.delete_plan(db, user_id, plan_id)


# ============ Days ============

@router.get("/{plan_id}/days", response_model=PlanDayListResponse)
async def list_days(
    plan_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    days = plan_editor.list_days(db, user_id, plan_id)
    return PlanDayListResponse(
        data=[PlanDayResponse.model_validate(d) for d in days],
        total_count=len(days),
    )


@router.post("/{plan_id}/days", response_model=PlanDayResponse, status_code=status.HTTP_201_CREATED)
async def create_day(
    plan_id: UUID,
    request: PlanDayCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Add a day to a plan.

    `order_index` is the requested position; omitted appends, out-of-range
    values are clamped. Sibling days are re-numbered around it.
    """
    day = plan_editor.create_day(
        db, user_id, plan_id,
        name=request.name,
        description=request.description,
        order_index=request.order_index,
    )
    for exercise in request.exercises:
        plan_editor.create_placement(
            db, user_id, plan_id, day.id,
            exercise_id=exercise.exercise_id,
            sets=[s.model_dump() for s in exercise.sets],
        )
    return PlanDayResponse.model_validate(plan_editor.get_day(db, user_id, plan_id, day.id))


@router.get("/{plan_id}/days/{day_id}", response_model=PlanDayResponse)
async def get_day(
    plan_id: UUID,
    day_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return PlanDayResponse.model_validate(plan_editor.get_day(db, user_id, plan_id, day_id))


@router.put("/{plan_id}/days/{day_id}", response_model=PlanDayResponse)
async def update_day(
    plan_id: UUID,
    day_id: UUID,
    request: PlanDayUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Rename, re-describe or move a day."""
    day = plan_editor.update_day(db, user_id, plan_id, day_id, request.model_dump(exclude_unset=True))
    return PlanDayResponse.model_validate(day)


@router.delete("/{plan_id}/days/{day_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_day(
    plan_id: UUID,
    day_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    plan_editor.delete_day(db, user_id, plan_id, day_id)


# ============ Exercise placements ============

@router.get("/{plan_id}/days/{day_id}/exercises", response_model=PlanExerciseListResponse)
async def list_placements(
    plan_id: UUID,
    day_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    placements = plan_editor.list_placements(db, user_id, plan_id, day_id)
    return PlanExerciseListResponse(
        data=[PlanExerciseResponse.model_validate(p) for p in placements],
        total_count=len(placements),
    )


@router.post(
    "/{plan_id}/days/{day_id}/exercises",
    response_model=PlanExerciseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_placement(
    plan_id: UUID,
    day_id: UUID,
    request: PlanExerciseCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Place a catalogue exercise on a day, optionally with its planned sets."""
    placement = plan_editor.create_placement(
        db, user_id, plan_id, day_id,
        exercise_id=request.exercise_id,
        order_index=request.order_index,
        sets=[s.model_dump() for s in request.sets],
    )
    return PlanExerciseResponse.model_validate(placement)


@router.get("/{plan_id}/days/{day_id}/exercises/{plan_exercise_id}", response_model=PlanExerciseResponse)
async def get_placement(
    plan_id: UUID,
    day_id: UUID,
    plan_exercise_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return PlanExerciseResponse.model_validate(
        plan_editor.get_placement(db, user_id, plan_id, day_id, plan_exercise_id)
    )


@router.put("/{plan_id}/days/{day_id}/exercises/{plan_exercise_id}", response_model=PlanExerciseResponse)
async def update_placement(
    plan_id: UUID,
    day_id: UUID,
    plan_exercise_id: UUID,
    request: PlanExerciseUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    placement = plan_editor.update_placement(
        db, user_id, plan_id, day_id, plan_exercise_id, request.model_dump(exclude_unset=True)
    )
    return PlanExerciseResponse.model_validate(placement)


@router.delete(
    "/{plan_id}/days/{day_id}/exercises/{plan_exercise_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_placement(
    plan_id: UUID,
    day_id: UUID,
    plan_exercise_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    plan_editor.delete_placement(db, user_id, plan_id, day_id, plan_exercise_id)


# ============ Planned sets ============

@router.get(
    "/{plan_id}/days/{day_id}/exercises/{plan_exercise_id}/sets",
    response_model=PlanSetListResponse,
)
async def list_plan_sets(
    plan_id: UUID,
    day_id: UUID,
    plan_exercise_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    plan_sets = plan_editor.list_plan_sets(db, user_id, plan_id, day_id, plan_exercise_id)
    return PlanSetListResponse(
        data=[PlanSetResponse.model_validate(s) for s in plan_sets],
        total_count=len(plan_sets),
    )


@router.post(
    "/{plan_id}/days/{day_id}/exercises/{plan_exercise_id}/sets",
    response_model=PlanSetResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_plan_set(
    plan_id: UUID,
    day_id: UUID,
    plan_exercise_id: UUID,
    request: PlanSetCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return plan_editor.create_plan_set(
        db, user_id, plan_id, day_id, plan_exercise_id,
        expected_reps=request.expected_reps,
        expected_weight=request.expected_weight,
        set_index=request.set_index,
    )


@router.get(
    "/{plan_id}/days/{day_id}/exercises/{plan_exercise_id}/sets/{set_id}",
    response_model=PlanSetResponse,
)
async def get_plan_set(
    plan_id: UUID,
    day_id: UUID,
    plan_exercise_id: UUID,
    set_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return plan_editor.get_plan_set(db, user_id, plan_id, day_id, plan_exercise_id, set_id)


@router.put(
    "/{plan_id}/days/{day_id}/exercises/{plan_exercise_id}/sets/{set_id}",
    response_model=PlanSetResponse,
)
async def update_plan_set(
    plan_id: UUID,
    day_id: UUID,
    plan_exercise_id: UUID,
    set_id: UUID,
    request: PlanSetUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return plan_editor.update_plan_set(
        db, user_id, plan_id, day_id, plan_exercise_id, set_id, request.model_dump(exclude_unset=True)
    )


@router.delete(
    "/{plan_id}/days/{day_id}/exercises/{plan_exercise_id}/sets/{set_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_plan_set(
    plan_id: UUID,
    day_id: UUID,
    plan_exercise_id: UUID,
    set_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    plan_editor.delete_plan_set(db, user_id, plan_id, day_id, plan_exercise_id, set_id)


# ============ Progressions ============

@router.get("/{plan_id}/progressions", response_model=ProgressionListResponse)
async def list_progressions(
    plan_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    progressions = plan_editor.list_progressions(db, user_id, plan_id)
    return ProgressionListResponse(
        data=[ProgressionResponse.model_validate(p) for p in progressions],
        total_count=len(progressions),
    )


@router.get("/{plan_id}/progressions/{exercise_id}", response_model=ProgressionResponse)
async def get_progression(
    plan_id: UUID,
    exercise_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return plan_editor.get_progression(db, user_id, plan_id, exercise_id)


@router.put("/{plan_id}/progressions/{exercise_id}", response_model=ProgressionResponse)
async def upsert_progression(
    plan_id: UUID,
    exercise_id: UUID,
    request: ProgressionUpsert,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Create or overwrite the progression rule for one exercise in this plan."""
    return plan_editor.upsert_progression(
        db, user_id, plan_id, exercise_id, request.model_dump(exclude_unset=True)
    )
