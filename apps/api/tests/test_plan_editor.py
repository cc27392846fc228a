"""
Tests for the plan editor service

Ordering of days, placements and sets, ownership checks, progression
upsert defaults and the plan activation check.
"""
import uuid
import pytest

from core.exceptions import OwnershipError, PlanActivationError, ResourceNotFoundError
from models import TrainingPlanDay, TrainingPlanExerciseSet
from services import plan_editor


def _day_names(db_session, plan_id):
    return [
        (d.name, d.order_index)
        for d in db_session.query(TrainingPlanDay).filter(
            TrainingPlanDay.plan_id == plan_id
        ).order_by(TrainingPlanDay.order_index)
    ]


class TestPlans:
    """Plan CRUD"""

    def test_create_nested_plan_numbers_by_position(self, db_session, user_id, make_exercise):
        squat = make_exercise("Back Squat")
        bench = make_exercise("Bench Press")

        plan = plan_editor.create_plan(db_session, user_id, "5x5", days=[
            {"name": "A", "exercises": [
                {"exercise_id": squat.id, "sets": [
                    {"expected_reps": 5, "expected_weight": 100},
                    {"expected_reps": 5, "expected_weight": 100},
                ]},
                {"exercise_id": bench.id, "sets": [{"expected_reps": 5, "expected_weight": 60}]},
            ]},
            {"name": "B", "exercises": []},
        ])

        assert [(d.name, d.order_index) for d in plan.days] == [("A", 1), ("B", 2)]
        assert [p.order_index for p in plan.days[0].exercises] == [1, 2]
        assert [s.set_index for s in plan.days[0].exercises[0].sets] == [1, 2]

    def test_create_with_unknown_exercise_fails(self, db_session, user_id):
        with pytest.raises(ResourceNotFoundError):
            plan_editor.create_plan(db_session, user_id, "Bad", days=[
                {"name": "A", "exercises": [{"exercise_id": uuid.uuid4(), "sets": []}]},
            ])

    def test_plan_of_other_user_is_not_found(self, db_session, user_id, make_plan):
        plan = make_plan(user_id, [])

        with pytest.raises(ResourceNotFoundError):
            plan_editor.get_plan(db_session, uuid.uuid4(), plan.id)

    def test_list_is_scoped_and_paged(self, db_session, user_id, make_plan):
        for name in ["C", "A", "B"]:
            make_plan(user_id, [], name=name)
        make_plan(uuid.uuid4(), [], name="Other")

        plans, total = plan_editor.list_plans(db_session, user_id, limit=2, sort_by="name", sort_order="asc")

        assert total == 3
        assert [p.name for p in plans] == ["A", "B"]

    def test_delete_cascades(self, db_session, user_id, make_exercise, make_plan):
        squat = make_exercise()
        plan = make_plan(user_id, [[(squat, [(5, 100)])]])

        plan_editor.delete_plan(db_session, user_id, plan.id)

        assert db_session.query(TrainingPlanExerciseSet).count() == 0


class TestDayOrdering:
    """Days are always numbered 1..N"""

    def test_insert_at_front(self, db_session, user_id, make_plan):
        plan = make_plan(user_id, [[], []])

        plan_editor.create_day(db_session, user_id, plan.id, "Warmup", order_index=1)

        assert _day_names(db_session, plan.id) == [("Warmup", 1), ("Day 1", 2), ("Day 2", 3)]

    def test_append_by_default(self, db_session, user_id, make_plan):
        plan = make_plan(user_id, [[]])

        plan_editor.create_day(db_session, user_id, plan.id, "Extra")

        assert _day_names(db_session, plan.id) == [("Day 1", 1), ("Extra", 2)]

    def test_move_day(self, db_session, user_id, make_plan):
        plan = make_plan(user_id, [[], [], []])
        first = plan.days[0]

        plan_editor.update_day(db_session, user_id, plan.id, first.id, {"order_index": 3})

        assert _day_names(db_session, plan.id) == [("Day 2", 1), ("Day 3", 2), ("Day 1", 3)]

    def test_rename_keeps_position(self, db_session, user_id, make_plan):
        plan = make_plan(user_id, [[], []])

        plan_editor.update_day(db_session, user_id, plan.id, plan.days[1].id, {"name": "Heavy"})

        assert _day_names(db_session, plan.id) == [("Day 1", 1), ("Heavy", 2)]

    def test_delete_recompacts(self, db_session, user_id, make_plan):
        plan = make_plan(user_id, [[], [], []])

        plan_editor.delete_day(db_session, user_id, plan.id, plan.days[0].id)

        assert _day_names(db_session, plan.id) == [("Day 2", 1), ("Day 3", 2)]

    def test_day_of_another_plan_is_an_ownership_error(self, db_session, user_id, make_plan):
        plan = make_plan(user_id, [[]])
        other = make_plan(user_id, [[]])

        with pytest.raises(OwnershipError):
            plan_editor.get_day(db_session, user_id, plan.id, other.days[0].id)


class TestSetOrdering:
    """Planned sets within a placement"""

    def test_insert_and_delete_sets(self, db_session, user_id, make_exercise, make_plan):
        squat = make_exercise()
        plan = make_plan(user_id, [[(squat, [(5, 100), (5, 100)])]])
        day = plan.days[0]
        placement = day.exercises[0]

        warmup = plan_editor.create_plan_set(
            db_session, user_id, plan.id, day.id, placement.id, expected_reps=10, expected_weight=60, set_index=0
        )
        assert warmup.set_index == 1
        sets = plan_editor.list_plan_sets(db_session, user_id, plan.id, day.id, placement.id)
        assert [(s.set_index, s.expected_weight) for s in sets] == [(1, 60), (2, 100), (3, 100)]

        plan_editor.delete_plan_set(db_session, user_id, plan.id, day.id, placement.id, warmup.id)
        sets = plan_editor.list_plan_sets(db_session, user_id, plan.id, day.id, placement.id)
        assert [s.set_index for s in sets] == [1, 2]

    def test_set_of_another_placement_is_an_ownership_error(self, db_session, user_id, make_exercise, make_plan):
        squat = make_exercise()
        bench = make_exercise()
        plan = make_plan(user_id, [[(squat, [(5, 100)]), (bench, [(5, 60)])]])
        day = plan.days[0]

        with pytest.raises(OwnershipError):
            plan_editor.get_plan_set(
                db_session, user_id, plan.id, day.id, day.exercises[0].id, day.exercises[1].sets[0].id
            )


class TestProgressionUpsert:
    """Manual progression edits"""

    def test_new_progression_gets_defaults(self, db_session, user_id, clock, make_exercise, make_plan):
        squat = make_exercise()
        plan = make_plan(user_id, [[(squat, [(5, 100)])]])

        progression = plan_editor.upsert_progression(
            db_session, user_id, plan.id, squat.id, {"weight_increment": 2.5}, clock=clock
        )

        assert progression.weight_increment == 2.5
        assert progression.failure_count_for_deload == 0
        assert progression.deload_percentage == 0
        assert progression.deload_strategy == "PROPORTIONAL"
        assert progression.consecutive_failures == 0
        assert progression.last_updated == clock.now

    def test_update_keeps_unspecified_fields(self, db_session, user_id, clock, make_exercise, make_plan, make_progression):
        squat = make_exercise()
        plan = make_plan(user_id, [[(squat, [(5, 100)])]])
        make_progression(plan, squat, weight_increment=5, failure_count_for_deload=3, consecutive_failures=2)

        progression = plan_editor.upsert_progression(
            db_session, user_id, plan.id, squat.id, {"deload_percentage": 15}, clock=clock
        )

        assert progression.weight_increment == 5
        assert progression.failure_count_for_deload == 3
        assert progression.consecutive_failures == 2
        assert progression.deload_percentage == 15


class TestPlanActivation:
    """Every exercise needs a progression"""

    def test_missing_progressions_are_listed(self, db_session, user_id, make_exercise, make_plan, make_progression):
        squat = make_exercise()
        bench = make_exercise()
        plan = make_plan(user_id, [[(squat, [(5, 100)]), (bench, [(5, 60)])]])
        make_progression(plan, squat)

        with pytest.raises(PlanActivationError) as exc_info:
            plan_editor.ensure_plan_activatable(db_session, user_id, plan.id)

        assert exc_info.value.context["missing_exercise_ids"] == [str(bench.id)]

    def test_fully_configured_plan_passes(self, db_session, user_id, make_exercise, make_plan, make_progression):
        squat = make_exercise()
        plan = make_plan(user_id, [[(squat, [(5, 100)])], [(squat, [(3, 110)])]])
        make_progression(plan, squat)

        assert plan_editor.ensure_plan_activatable(db_session, user_id, plan.id).id == plan.id

    def test_foreign_plan_cannot_be_activated(self, db_session, user_id, make_plan):
        plan = make_plan(uuid.uuid4(), [])

        with pytest.raises(PlanActivationError):
            plan_editor.ensure_plan_activatable(db_session, user_id, plan.id)
