from sqlalchemy import Column, Integer, CheckConstraint, Float, DateTime, ForeignKey, Text, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
import uuid


class UserProfile(Base):
    """
    Per-user settings. The id is the identity provider's user id.

    active_plan_id marks the plan the user is currently training on.
    A plan can only become active once every exercise in it has a
    progression (see services.plan_editor.ensure_plan_activatable).
    """
    __tablename__ = "user_profile"

    id = Column(Uuid(as_uuid=True), primary_key=True)
    first_name = Column(Text, nullable=False, default="")
    active_plan_id = Column(Uuid(as_uuid=True), ForeignKey("training_plan.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Exercise(Base):
    """Global exercise catalogue shared by all users (e.g. "Back Squat")."""
    __tablename__ = "exercise"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False, unique=True)
    description = Column(Text, nullable=True)


class TrainingPlan(Base):
    """
    A user-authored workout template.

    Structure: ordered days → ordered exercises → ordered sets.
    Progression rules hang off the plan, one per global exercise.
    """
    __tablename__ = "training_plan"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False)  # Index in __table_args__
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    days = relationship(
        "TrainingPlanDay",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="TrainingPlanDay.order_index",
    )
    progressions = relationship(
        "TrainingPlanExerciseProgression",
        back_populates="plan",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_training_plan_user_id", "user_id"),
    )


class TrainingPlanDay(Base):
    __tablename__ = "training_plan_day"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id = Column(Uuid(as_uuid=True), ForeignKey("training_plan.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False)

    plan = relationship("TrainingPlan", back_populates="days")
    exercises = relationship(
        "TrainingPlanExercise",
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="TrainingPlanExercise.order_index",
    )

    __table_args__ = (
        CheckConstraint("order_index >= 1", name="ck_training_plan_day_order_index_positive"),
        Index("ix_training_plan_day_plan_id", "plan_id"),
    )


class TrainingPlanExercise(Base):
    """
    One placement of a global exercise inside one plan day.

    The same exercise may be placed on several days; all placements share
    the plan's single progression for that exercise.
    """
    __tablename__ = "training_plan_exercise"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_day_id = Column(Uuid(as_uuid=True), ForeignKey("training_plan_day.id", ondelete="CASCADE"), nullable=False)
    exercise_id = Column(Uuid(as_uuid=True), ForeignKey("exercise.id"), nullable=False)
    order_index = Column(Integer, nullable=False)

    day = relationship("TrainingPlanDay", back_populates="exercises")
    exercise = relationship("Exercise")
    sets = relationship(
        "TrainingPlanExerciseSet",
        back_populates="plan_exercise",
        cascade="all, delete-orphan",
        order_by="TrainingPlanExerciseSet.set_index",
    )

    __table_args__ = (
        CheckConstraint("order_index >= 1", name="ck_training_plan_exercise_order_index_positive"),
        Index("ix_training_plan_exercise_day_id", "plan_day_id"),
        Index("ix_training_plan_exercise_exercise_id", "exercise_id"),
    )


class TrainingPlanExerciseSet(Base):
    """Target for one set of a placement: reps at weight."""
    __tablename__ = "training_plan_exercise_set"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_exercise_id = Column(Uuid(as_uuid=True), ForeignKey("training_plan_exercise.id", ondelete="CASCADE"), nullable=False)
    set_index = Column(Integer, nullable=False)
    expected_reps = Column(Integer, nullable=False)
    expected_weight = Column(Float, nullable=False)

    plan_exercise = relationship("TrainingPlanExercise", back_populates="sets")

    __table_args__ = (
        CheckConstraint("set_index >= 1", name="ck_training_plan_exercise_set_index_positive"),
        CheckConstraint("expected_reps >= 0", name="ck_training_plan_exercise_set_reps_non_negative"),
        CheckConstraint("expected_weight >= 0", name="ck_training_plan_exercise_set_weight_non_negative"),
        Index("ix_training_plan_exercise_set_plan_exercise_id", "plan_exercise_id"),
    )


class TrainingPlanExerciseProgression(Base):
    """
    How the target weight of one exercise evolves within one plan.

    Mutated automatically when a session completes and manually via upsert.
    """
    __tablename__ = "training_plan_exercise_progression"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id = Column(Uuid(as_uuid=True), ForeignKey("training_plan.id", ondelete="CASCADE"), nullable=False)
    exercise_id = Column(Uuid(as_uuid=True), ForeignKey("exercise.id"), nullable=False)
    weight_increment = Column(Float, nullable=False, default=0)
    failure_count_for_deload = Column(Integer, nullable=False, default=0)
    deload_percentage = Column(Float, nullable=False, default=0)
    deload_strategy = Column(Text, nullable=False, default="PROPORTIONAL")  # 'PROPORTIONAL', 'REFERENCE_SET', 'CUSTOM'
    reference_set_index = Column(Integer, nullable=True)
    consecutive_failures = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime(timezone=True), nullable=True)

    plan = relationship("TrainingPlan", back_populates="progressions")

    __table_args__ = (
        UniqueConstraint("plan_id", "exercise_id", name="uq_progression_plan_exercise"),
        CheckConstraint("consecutive_failures >= 0", name="ck_progression_failures_non_negative"),
        CheckConstraint(
            "deload_percentage >= 0 AND deload_percentage <= 100",
            name="ck_progression_deload_percentage_range",
        ),
    )


class TrainingSession(Base):
    """
    One concrete attempt at one day of a plan.

    Status: 'PENDING' → 'IN_PROGRESS' → 'COMPLETED', or 'CANCELLED'.
    """
    __tablename__ = "training_session"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False)
    plan_id = Column(Uuid(as_uuid=True), ForeignKey("training_plan.id", ondelete="CASCADE"), nullable=False)
    plan_day_id = Column(Uuid(as_uuid=True), ForeignKey("training_plan_day.id", ondelete="SET NULL"), nullable=True)
    session_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(Text, nullable=False, default="PENDING")

    sets = relationship(
        "SessionSet",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionSet.set_index",
    )

    __table_args__ = (
        Index("ix_training_session_user_id", "user_id"),
        Index("ix_training_session_plan_status", "plan_id", "status"),
    )


class SessionSet(Base):
    """One performed (or skipped) instance of a plan set within a session."""
    __tablename__ = "session_set"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("training_session.id", ondelete="CASCADE"), nullable=False)
    plan_exercise_id = Column(Uuid(as_uuid=True), ForeignKey("training_plan_exercise.id", ondelete="CASCADE"), nullable=False)
    set_index = Column(Integer, nullable=False)
    expected_reps = Column(Integer, nullable=True)
    actual_reps = Column(Integer, nullable=True)
    actual_weight = Column(Float, nullable=False, default=0)
    status = Column(Text, nullable=False, default="PENDING")  # 'PENDING', 'COMPLETED', 'FAILED', 'SKIPPED'
    completed_at = Column(DateTime(timezone=True), nullable=True)

    session = relationship("TrainingSession", back_populates="sets")

    __table_args__ = (
        CheckConstraint("set_index >= 1", name="ck_session_set_index_positive"),
        Index("ix_session_set_session_exercise", "session_id", "plan_exercise_id"),
    )
