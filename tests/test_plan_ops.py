from datetime import date

import pytest

from taperpath.errors import StepNotFound
from taperpath.plan_ops import current_step, extend_step, next_due, set_day, toggle_day


def test_toggle_marks_and_unmarks(diazepam_plan):
    plan = toggle_day(diazepam_plan, "step-1", 0)
    assert plan.step("step-1").completed_days[0] is True
    assert diazepam_plan.step("step-1").completed_days[0] is False

    plan = toggle_day(plan, "step-1", 0)
    assert plan.step("step-1").completed_days[0] is False


def test_step_completion_follows_days(diazepam_plan):
    plan = diazepam_plan
    for i in range(7):
        plan = toggle_day(plan, "step-1", i)
    assert plan.step("step-1").is_completed

    plan = toggle_day(plan, "step-1", 3)
    assert not plan.step("step-1").is_completed


def test_toggle_leaves_doses_alone(diazepam_plan):
    plan = toggle_day(diazepam_plan, "step-2", 4)
    before, after = diazepam_plan.step("step-2"), plan.step("step-2")
    assert after.schedule == before.schedule
    assert after.phase is before.phase
    assert after.duration_days == before.duration_days


def test_set_day_is_noop_when_unchanged(diazepam_plan):
    assert set_day(diazepam_plan, "step-1", 0, False) is diazepam_plan


@pytest.mark.parametrize("day_index", [-1, 7])
def test_toggle_rejects_out_of_range_day(diazepam_plan, day_index):
    with pytest.raises(IndexError):
        toggle_day(diazepam_plan, "step-1", day_index)


def test_unknown_step_raises(diazepam_plan):
    with pytest.raises(StepNotFound) as exc_info:
        toggle_day(diazepam_plan, "step-0", 0)
    assert "step-0" in str(exc_info.value)
    with pytest.raises(KeyError):
        extend_step(diazepam_plan, "nope")


def test_extend_step(diazepam_plan):
    plan = extend_step(diazepam_plan, "step-2")
    step = plan.step("step-2")
    assert step.duration_days == 8
    assert step.completed_days == (False,) * 8
    assert step.global_day_start == 8
    assert plan.step("step-3").global_day_start == 16
    assert plan.steps[-1].global_day_start == 198
    assert plan.total_days == diazepam_plan.total_days + 1
    assert plan.step("step-1") == diazepam_plan.step("step-1")


def test_extend_keeps_progress_and_reopens_step(diazepam_plan):
    plan = diazepam_plan
    for i in range(7):
        plan = toggle_day(plan, "step-1", i)
    plan = extend_step(plan, "step-1")
    assert plan.step("step-1").completed_days == (True,) * 7 + (False,)
    assert not plan.step("step-1").is_completed


def test_next_due_and_current_step(diazepam_plan):
    due = next_due(diazepam_plan)
    assert (due.step.id, due.day_index, due.date) == ("step-1", 0, date(2024, 1, 1))
    assert current_step(diazepam_plan).id == "step-1"

    plan = diazepam_plan
    for i in range(7):
        plan = toggle_day(plan, "step-1", i)
    plan = toggle_day(plan, "step-2", 0)
    due = next_due(plan)
    assert (due.step.id, due.day_index, due.date) == ("step-2", 1, date(2024, 1, 9))
    assert current_step(plan).id == "step-2"


def test_next_due_none_when_finished(diazepam_plan):
    plan = diazepam_plan
    for step in plan.steps:
        for i in range(step.duration_days):
            plan = set_day(plan, step.id, i, True)
    assert next_due(plan) is None
    assert current_step(plan) is None
