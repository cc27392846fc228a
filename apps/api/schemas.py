from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from uuid import UUID
from typing import Optional, List

from services.progression import DeloadStrategy, SessionStatus, SetStatus


def _reject_null(value):
    # Partial updates may omit a field; an explicit null on a required column is a client error.
    if value is None:
        raise ValueError("may be omitted but not set to null")
    return value


# ============ Exercises ============

class ExerciseCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class ExerciseUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ExerciseResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ExerciseListResponse(BaseModel):
    data: List[ExerciseResponse]
    total_count: int


# ============ Plan sets ============

class PlanSetCreate(BaseModel):
    expected_reps: int = Field(..., ge=0)
    expected_weight: float = Field(..., ge=0)
    set_index: Optional[int] = None  # None appends


class PlanSetUpdate(BaseModel):
    expected_reps: Optional[int] = Field(None, ge=0)
    expected_weight: Optional[float] = Field(None, ge=0)
    set_index: Optional[int] = None

    @field_validator('expected_reps', 'expected_weight')
    @classmethod
    def not_null(cls, v):
        return _reject_null(v)


class PlanSetResponse(BaseModel):
    id: UUID
    plan_exercise_id: UUID
    set_index: int
    expected_reps: int
    expected_weight: float

    model_config = ConfigDict(from_attributes=True)


# ============ Plan exercises (placements) ============

class PlanExerciseCreate(BaseModel):
    exercise_id: UUID
    order_index: Optional[int] = None
    sets: List[PlanSetCreate] = []


class PlanExerciseUpdate(BaseModel):
    exercise_id: Optional[UUID] = None
    order_index: Optional[int] = None

    @field_validator('exercise_id')
    @classmethod
    def not_null(cls, v):
        return _reject_null(v)


class PlanExerciseResponse(BaseModel):
    id: UUID
    plan_day_id: UUID
    exercise_id: UUID
    order_index: int
    exercise: Optional[ExerciseResponse] = None
    sets: List[PlanSetResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ============ Plan days ============

class PlanDayCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    order_index: Optional[int] = None
    exercises: List[PlanExerciseCreate] = []


class PlanDayUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    order_index: Optional[int] = None

    @field_validator('name')
    @classmethod
    def not_null(cls, v):
        return _reject_null(v)


class PlanDayResponse(BaseModel):
    id: UUID
    plan_id: UUID
    name: str
    description: Optional[str] = None
    order_index: int
    exercises: List[PlanExerciseResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ============ Progressions ============

class ProgressionUpsert(BaseModel):
    """Omitted fields keep their stored value (or the defaults for a new record)."""
    weight_increment: Optional[float] = Field(None, gt=0)
    failure_count_for_deload: Optional[int] = Field(None, gt=0)
    deload_percentage: Optional[float] = Field(None, ge=0, le=100)
    deload_strategy: Optional[DeloadStrategy] = None
    reference_set_index: Optional[int] = Field(None, ge=1)
    consecutive_failures: Optional[int] = Field(None, ge=0)


class ProgressionResponse(BaseModel):
    id: UUID
    plan_id: UUID
    exercise_id: UUID
    weight_increment: float
    failure_count_for_deload: int
    deload_percentage: float
    deload_strategy: str
    reference_set_index: Optional[int] = None
    consecutive_failures: int
    last_updated: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProgressionListResponse(BaseModel):
    data: List[ProgressionResponse]
    total_count: int


# ============ Training plans ============

class TrainingPlanCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    days: List[PlanDayCreate] = []


class TrainingPlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None

    @field_validator('name')
    @classmethod
    def not_null(cls, v):
        return _reject_null(v)


class TrainingPlanSummary(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TrainingPlanResponse(TrainingPlanSummary):
    days: List[PlanDayResponse] = []
    progressions: List[ProgressionResponse] = []


class TrainingPlanListResponse(BaseModel):
    data: List[TrainingPlanSummary]
    total_count: int


class PlanDayListResponse(BaseModel):
    data: List[PlanDayResponse]
    total_count: int


class PlanExerciseListResponse(BaseModel):
    data: List[PlanExerciseResponse]
    total_count: int


class PlanSetListResponse(BaseModel):
    data: List[PlanSetResponse]
    total_count: int


# ============ Sessions ============

class SessionSetCreate(BaseModel):
    plan_exercise_id: UUID
    set_index: Optional[int] = None
    expected_reps: Optional[int] = Field(None, ge=0)
    actual_reps: Optional[int] = Field(None, ge=0)
    actual_weight: float = Field(0, ge=0)
    status: SetStatus = SetStatus.PENDING


class SessionSetUpdate(BaseModel):
    set_index: Optional[int] = None
    expected_reps: Optional[int] = Field(None, ge=0)
    actual_reps: Optional[int] = Field(None, ge=0)
    actual_weight: Optional[float] = Field(None, ge=0)
    status: Optional[SetStatus] = None
    completed_at: Optional[datetime] = None

    @field_validator('actual_weight')
    @classmethod
    def not_null(cls, v):
        return _reject_null(v)


class SessionSetResponse(BaseModel):
    id: UUID
    session_id: UUID
    plan_exercise_id: UUID
    set_index: int
    expected_reps: Optional[int] = None
    actual_reps: Optional[int] = None
    actual_weight: float
    status: str
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SessionSetListResponse(BaseModel):
    data: List[SessionSetResponse]
    total_count: int


class TrainingSessionCreate(BaseModel):
    plan_id: UUID
    plan_day_id: Optional[UUID] = None  # None picks the next day in rotation


class TrainingSessionUpdate(BaseModel):
    status: Optional[SessionStatus] = None
    session_date: Optional[datetime] = None


class TrainingSessionSummary(BaseModel):
    id: UUID
    user_id: UUID
    plan_id: UUID
    plan_day_id: Optional[UUID] = None
    session_date: Optional[datetime] = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class TrainingSessionResponse(TrainingSessionSummary):
    sets: List[SessionSetResponse] = []


class TrainingSessionListResponse(BaseModel):
    data: List[TrainingSessionSummary]
    total_count: int


# ============ User profiles ============

class UserProfileUpsert(BaseModel):
    first_name: Optional[str] = None
    active_plan_id: Optional[UUID] = None


class UserProfileResponse(BaseModel):
    id: UUID
    first_name: str
    active_plan_id: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)
