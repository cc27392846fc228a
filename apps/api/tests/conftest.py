"""
Pytest configuration and fixtures

IMPORTANT: Tests run against an in-memory SQLite database. The schema is
created before and dropped after every test, so nothing leaks between
tests. The environment is pinned before any application module is
imported so settings never point at a real database.
"""
import pytest
import sys
import os
import uuid
from datetime import datetime, timedelta, timezone

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest-only-0123456789")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("ENVIRONMENT", "test")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from main import app
from core.database import Base, SessionLocal, engine, get_db
from core.security import create_access_token
from models import (
    Exercise,
    SessionSet,
    TrainingPlan,
    TrainingPlanDay,
    TrainingPlanExercise,
    TrainingPlanExerciseProgression,
    TrainingPlanExerciseSet,
    TrainingSession,
)


@pytest.fixture(autouse=True)
def _schema():
    """Fresh schema for every test."""
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(db_session):
    """TestClient sharing the test's DB session via dependency override."""
    def _override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id):
    token = create_access_token(data={"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers():
    token = create_access_token(data={"sub": str(uuid.uuid4())})
    return {"Authorization": f"Bearer {token}"}


class FixedClock:
    """Deterministic clock: returns `now`, advancing by `step` per call."""

    def __init__(self, start=None, step=timedelta(seconds=0)):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def make_exercise(db_session):
    def _make(name=None, description=None):
        exercise = Exercise(id=uuid.uuid4(), name=name or f"Exercise {uuid.uuid4().hex[:8]}", description=description)
        db_session.add(exercise)
        db_session.commit()
        return exercise
    return _make


@pytest.fixture
def make_plan(db_session):
    """
    Build a plan from a compact layout.

    days: list of days; each day is a list of (exercise, [(reps, weight), ...]).
    """
    def _make(user_id, days, name="Test Plan"):
        plan = TrainingPlan(id=uuid.uuid4(), user_id=user_id, name=name)
        for day_position, placements in enumerate(days, start=1):
            day = TrainingPlanDay(id=uuid.uuid4(), name=f"Day {day_position}", order_index=day_position)
            for placement_position, (exercise, sets) in enumerate(placements, start=1):
                placement = TrainingPlanExercise(
                    id=uuid.uuid4(), exercise_id=exercise.id, order_index=placement_position
                )
                for set_position, (reps, weight) in enumerate(sets, start=1):
                    placement.sets.append(TrainingPlanExerciseSet(
                        id=uuid.uuid4(), set_index=set_position, expected_reps=reps, expected_weight=weight
                    ))
                day.exercises.append(placement)
            plan.days.append(day)
        db_session.add(plan)
        db_session.commit()
        return plan
    return _make


@pytest.fixture
def make_progression(db_session):
    def _make(plan, exercise, **fields):
        values = {
            "weight_increment": 2.5,
            "failure_count_for_deload": 3,
            "deload_percentage": 10.0,
            "deload_strategy": "PROPORTIONAL",
            "consecutive_failures": 0,
        }
        values.update(fields)
        progression = TrainingPlanExerciseProgression(
            id=uuid.uuid4(), plan_id=plan.id, exercise_id=exercise.id, **values
        )
        db_session.add(progression)
        db_session.commit()
        return progression
    return _make


@pytest.fixture
def make_session(db_session):
    """
    Create a session on one plan day with one session set per planned set.

    `performed` maps (placement_index, set_index) -> (status, actual_reps, actual_weight);
    sets not listed stay PENDING.
    """
    def _make(plan, day_index=0, status="IN_PROGRESS", performed=None, session_date=None):
        day = plan.days[day_index]
        session = TrainingSession(
            id=uuid.uuid4(),
            user_id=plan.user_id,
            plan_id=plan.id,
            plan_day_id=day.id,
            status=status,
            session_date=session_date or datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc),
        )
        db_session.add(session)
        for placement_index, placement in enumerate(day.exercises):
            for plan_set in placement.sets:
                set_status, reps, weight = (performed or {}).get(
                    (placement_index, plan_set.set_index), ("PENDING", None, plan_set.expected_weight)
                )
                db_session.add(SessionSet(
                    id=uuid.uuid4(),
                    session_id=session.id,
                    plan_exercise_id=placement.id,
                    set_index=plan_set.set_index,
                    expected_reps=plan_set.expected_reps,
                    actual_reps=reps,
                    actual_weight=weight,
                    status=set_status,
                ))
        db_session.commit()
        return session
    return _make
