"""
Tests for the session tracker

Day rotation, open-session cancellation, pre-filled sets, per-set actions
and dense numbering of performed sets.
"""
import uuid
from datetime import datetime, timezone

import pytest

from core.exceptions import OwnershipError, ResourceNotFoundError, SessionStateError
from models import SessionSet, TrainingSession
from services import session_tracker


@pytest.fixture
def three_day_plan(user_id, make_exercise, make_plan):
    squat = make_exercise("Back Squat")
    bench = make_exercise("Bench Press")
    return make_plan(user_id, [
        [(squat, [(5, 100), (5, 100)]), (bench, [(5, 60)])],
        [(bench, [(3, 70)])],
        [(squat, [(1, 140)])],
    ])


def _set_numbers(db_session, session_id, plan_exercise_id):
    return [
        s.set_index for s in db_session.query(SessionSet).filter(
            SessionSet.session_id == session_id,
            SessionSet.plan_exercise_id == plan_exercise_id,
        ).order_by(SessionSet.set_index)
    ]


class TestCreateSession:
    """Starting a session"""

    def test_first_session_uses_first_day(self, db_session, user_id, clock, three_day_plan):
        session = session_tracker.create_session(db_session, user_id, three_day_plan.id, clock=clock)

        assert session.plan_day_id == three_day_plan.days[0].id
        assert session.status == "PENDING"
        assert session.session_date == clock.now

    def test_sets_are_prefilled_from_plan(self, db_session, user_id, clock, three_day_plan):
        session = session_tracker.create_session(db_session, user_id, three_day_plan.id, clock=clock)

        sets = session_tracker.ordered_session_sets(db_session, session.id)
        assert [(s.set_index, s.expected_reps, s.actual_weight, s.status) for s in sets] == [
            (1, 5, 100, "PENDING"),
            (2, 5, 100, "PENDING"),
            (1, 5, 60, "PENDING"),
        ]
        assert all(s.actual_reps is None for s in sets)

    def test_rotates_after_last_completed_day(self, db_session, user_id, clock, three_day_plan, make_session):
        make_session(three_day_plan, day_index=0, status="COMPLETED",
                     session_date=datetime(2024, 1, 1, tzinfo=timezone.utc))
        make_session(three_day_plan, day_index=1, status="COMPLETED",
                     session_date=datetime(2024, 1, 3, tzinfo=timezone.utc))

        session = session_tracker.create_session(db_session, user_id, three_day_plan.id, clock=clock)

        assert session.plan_day_id == three_day_plan.days[2].id

    def test_rotation_wraps_to_first_day(self, db_session, user_id, clock, three_day_plan, make_session):
        make_session(three_day_plan, day_index=2, status="COMPLETED")

        session = session_tracker.create_session(db_session, user_id, three_day_plan.id, clock=clock)

        assert session.plan_day_id == three_day_plan.days[0].id

    def test_cancelled_sessions_do_not_advance_rotation(self, db_session, user_id, clock, three_day_plan, make_session):
        make_session(three_day_plan, day_index=0, status="CANCELLED")

        session = session_tracker.create_session(db_session, user_id, three_day_plan.id, clock=clock)

        assert session.plan_day_id == three_day_plan.days[0].id

    def test_explicit_day(self, db_session, user_id, clock, three_day_plan):
        day = three_day_plan.days[1]
        session = session_tracker.create_session(db_session, user_id, three_day_plan.id, plan_day_id=day.id, clock=clock)

        assert session.plan_day_id == day.id

    def test_day_of_another_plan_is_rejected(self, db_session, user_id, clock, three_day_plan, make_plan):
        other = make_plan(user_id, [[]])

        with pytest.raises(OwnershipError):
            session_tracker.create_session(
                db_session, user_id, three_day_plan.id, plan_day_id=other.days[0].id, clock=clock
            )

    def test_open_sessions_are_cancelled(self, db_session, user_id, clock, three_day_plan, make_session):
        pending = make_session(three_day_plan, status="PENDING")
        in_progress = make_session(three_day_plan, status="IN_PROGRESS")
        completed = make_session(three_day_plan, status="COMPLETED")

        session_tracker.create_session(db_session, user_id, three_day_plan.id, clock=clock)

        statuses = {
            s.id: s.status for s in db_session.query(TrainingSession).filter(
                TrainingSession.id.in_([pending.id, in_progress.id, completed.id])
            )
        }
        assert statuses == {pending.id: "CANCELLED", in_progress.id: "CANCELLED", completed.id: "COMPLETED"}

    def test_plan_without_days_is_rejected(self, db_session, user_id, clock, make_plan):
        plan = make_plan(user_id, [])

        with pytest.raises(SessionStateError):
            session_tracker.create_session(db_session, user_id, plan.id, clock=clock)

    def test_foreign_plan_is_not_found(self, db_session, clock, three_day_plan):
        with pytest.raises(ResourceNotFoundError):
            session_tracker.create_session(db_session, uuid.uuid4(), three_day_plan.id, clock=clock)


class TestSetActions:
    """complete / fail / reset"""

    def test_complete_copies_expected_reps(self, db_session, user_id, clock, three_day_plan):
        session = session_tracker.create_session(db_session, user_id, three_day_plan.id, clock=clock)
        first = session_tracker.ordered_session_sets(db_session, session.id)[0]

        result = session_tracker.complete_set(db_session, user_id, session.id, first.id, clock=clock)

        assert result.status == "COMPLETED"
        assert result.actual_reps == 5
        assert result.completed_at == clock.now

    def test_first_action_starts_the_session(self, db_session, user_id, three_day_plan):
        start = datetime(2024, 2, 1, 8, 0, tzinfo=timezone.utc)
        later = datetime(2024, 2, 1, 9, 15, tzinfo=timezone.utc)
        session = session_tracker.create_session(db_session, user_id, three_day_plan.id, clock=lambda: start)
        first = session_tracker.ordered_session_sets(db_session, session.id)[0]

        session_tracker.fail_set(db_session, user_id, session.id, first.id, reps=3, clock=lambda: later)

        db_session.refresh(session)
        assert session.status == "IN_PROGRESS"
        assert session.session_date.replace(tzinfo=timezone.utc) == later

    def test_fail_defaults_reps_to_zero(self, db_session, user_id, clock, three_day_plan):
        session = session_tracker.create_session(db_session, user_id, three_day_plan.id, clock=clock)
        first = session_tracker.ordered_session_sets(db_session, session.id)[0]

        result = session_tracker.fail_set(db_session, user_id, session.id, first.id, clock=clock)

        assert result.status == "FAILED"
        assert result.actual_reps == 0

    def test_reset_clears_the_result(self, db_session, user_id, clock, three_day_plan):
        session = session_tracker.create_session(db_session, user_id, three_day_plan.id, clock=clock)
        first = session_tracker.ordered_session_sets(db_session, session.id)[0]
        session_tracker.complete_set(db_session, user_id, session.id, first.id, clock=clock)

        result = session_tracker.reset_set(db_session, user_id, session.id, first.id, clock=clock)

        assert result.status == "PENDING"
        assert result.actual_reps is None
        assert result.completed_at is None

    @pytest.mark.parametrize("status", ["COMPLETED", "CANCELLED"])
    def test_closed_session_rejects_actions(self, db_session, user_id, clock, three_day_plan, make_session, status):
        session = make_session(three_day_plan, status=status)
        first = session_tracker.ordered_session_sets(db_session, session.id)[0]

        with pytest.raises(SessionStateError):
            session_tracker.complete_set(db_session, user_id, session.id, first.id, clock=clock)

    def test_set_of_another_session_is_an_ownership_error(self, db_session, user_id, clock, three_day_plan, make_session):
        session = make_session(three_day_plan)
        other = make_session(three_day_plan)
        foreign = session_tracker.ordered_session_sets(db_session, other.id)[0]

        with pytest.raises(OwnershipError):
            session_tracker.complete_set(db_session, user_id, session.id, foreign.id, clock=clock)


class TestSessionSetNumbering:
    """set_index is dense per (session, placement)"""

    def test_insert_at_front_shifts_followers(self, db_session, user_id, three_day_plan, make_session):
        session = make_session(three_day_plan)
        squat_placement = three_day_plan.days[0].exercises[0]

        created = session_tracker.create_session_set(
            db_session, user_id, session.id, squat_placement.id, set_index=1, expected_reps=10, actual_weight=60
        )

        assert created.set_index == 1
        assert _set_numbers(db_session, session.id, squat_placement.id) == [1, 2, 3]
        # The other placement is untouched
        bench_placement = three_day_plan.days[0].exercises[1]
        assert _set_numbers(db_session, session.id, bench_placement.id) == [1]

    def test_delete_recompacts(self, db_session, user_id, three_day_plan, make_session):
        session = make_session(three_day_plan)
        squat_placement = three_day_plan.days[0].exercises[0]
        first = session_tracker.ordered_session_sets(db_session, session.id)[0]

        session_tracker.delete_session_set(db_session, user_id, session.id, first.id)

        assert _set_numbers(db_session, session.id, squat_placement.id) == [1]

    def test_placement_from_another_plan_is_rejected(self, db_session, user_id, make_exercise, make_plan, three_day_plan, make_session):
        session = make_session(three_day_plan)
        other = make_plan(user_id, [[(make_exercise(), [(5, 20)])]])

        with pytest.raises(OwnershipError):
            session_tracker.create_session_set(
                db_session, user_id, session.id, other.days[0].exercises[0].id, actual_weight=20
            )

    def test_closed_session_rejects_edits(self, db_session, user_id, three_day_plan, make_session):
        session = make_session(three_day_plan, status="COMPLETED")
        first = session_tracker.ordered_session_sets(db_session, session.id)[0]

        with pytest.raises(SessionStateError):
            session_tracker.update_session_set(db_session, user_id, session.id, first.id, {"actual_reps": 4})


class TestSessionUpdates:
    """Status transitions through a plain update"""

    def test_pending_to_in_progress(self, db_session, user_id, three_day_plan, make_session):
        session = make_session(three_day_plan, status="PENDING")

        updated = session_tracker.update_session(db_session, user_id, session.id, {"status": "IN_PROGRESS"})

        assert updated.status == "IN_PROGRESS"

    def test_completed_only_through_completion(self, db_session, user_id, three_day_plan, make_session):
        session = make_session(three_day_plan, status="IN_PROGRESS")

        with pytest.raises(SessionStateError):
            session_tracker.update_session(db_session, user_id, session.id, {"status": "COMPLETED"})

    def test_cancelled_is_terminal(self, db_session, user_id, three_day_plan, make_session):
        session = make_session(three_day_plan, status="CANCELLED")

        with pytest.raises(SessionStateError):
            session_tracker.update_session(db_session, user_id, session.id, {"status": "IN_PROGRESS"})

    def test_list_filters_by_status(self, db_session, user_id, three_day_plan, make_session):
        make_session(three_day_plan, status="COMPLETED")
        make_session(three_day_plan, status="CANCELLED")
        make_session(three_day_plan, status="IN_PROGRESS")

        sessions, total = session_tracker.list_sessions(
            db_session, user_id, limit=10, statuses=["COMPLETED", "IN_PROGRESS"]
        )

        assert total == 2
        assert {s.status for s in sessions} == {"COMPLETED", "IN_PROGRESS"}
