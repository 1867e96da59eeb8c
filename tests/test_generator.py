"""Tests for taper schedule generation."""

from datetime import date
from fractions import Fraction

import pytest

from conftest import make_plan
from taperpath.errors import InvalidPlanInput, ScheduleNotConverged
from taperpath.generator import (
    custom_weekly_cut_mcg,
    generate_plan,
    reduction_amount_mcg,
    step_duration_days,
)
from taperpath.medications import Medication
from taperpath.models import Metabolism, Phase, TaperSpeed


def _doses(plan):
    return [(s.schedule.original_mg, s.schedule.diazepam_mg) for s in plan.steps]


# --- Step duration ---


def test_default_step_is_one_week():
    assert step_duration_days(TaperSpeed.ASHTON, 40, Metabolism.AVERAGE) == 7


@pytest.mark.parametrize(
    "speed,age,metabolism",
    [
        (TaperSpeed.SLOW, 40, Metabolism.AVERAGE),
        (TaperSpeed.ASHTON, 66, Metabolism.AVERAGE),
        (TaperSpeed.MODERATE, 30, Metabolism.SLOW),
    ],
)
def test_extended_step_is_two_weeks(speed, age, metabolism):
    assert step_duration_days(speed, age, metabolism) == 14


def test_age_65_is_not_elderly():
    assert step_duration_days(TaperSpeed.ASHTON, 65, Metabolism.FAST) == 7


# --- Reduction amounts ---


def test_ashton_thresholds():
    assert reduction_amount_mcg(TaperSpeed.ASHTON, 60_000) == 5_000
    assert reduction_amount_mcg(TaperSpeed.ASHTON, 50_000) == 5_000
    assert reduction_amount_mcg(TaperSpeed.ASHTON, 20_000) == 2_000
    assert reduction_amount_mcg(TaperSpeed.ASHTON, 15_000) == 1_000
    assert reduction_amount_mcg(TaperSpeed.ASHTON, 9_500) == 500


def test_percentage_cuts_have_minimum():
    assert reduction_amount_mcg(TaperSpeed.MODERATE, 20_000) == 2_000
    assert reduction_amount_mcg(TaperSpeed.SLOW, 20_000) == 1_000
    assert reduction_amount_mcg(TaperSpeed.MODERATE, 3_000) == 500


def test_custom_requires_weekly_cut():
    with pytest.raises(ValueError):
        reduction_amount_mcg(TaperSpeed.CUSTOM, 10_000)
    assert reduction_amount_mcg(TaperSpeed.CUSTOM, 10_000, Fraction(700)) == 700


def test_custom_weekly_cut_is_linear_ramp():
    cut = custom_weekly_cut_mcg(10_000, date(2024, 1, 8), date(2024, 3, 11))
    assert cut == Fraction(10_000 * 7, 63)


def test_custom_weekly_cut_never_divides_by_zero():
    assert custom_weekly_cut_mcg(1_000, date(2024, 1, 8), date(2024, 1, 8)) == 7_000


# --- Direct diazepam plans ---


def test_diazepam_ashton_plan_shape(diazepam_plan):
    plan = diazepam_plan
    assert not plan.is_diazepam_crossover
    assert len(plan.steps) == 29
    assert plan.total_days == 203
    assert all(s.duration_days == 7 for s in plan.steps)

    first = plan.steps[0]
    assert first.phase is Phase.STABILIZE
    assert first.schedule.diazepam_mg == 20.0
    assert first.notes == "Stabilize on starting dose."

    second = plan.step("step-2")
    assert second.phase is Phase.REDUCTION
    assert second.schedule.diazepam_mg == 18.0
    assert second.global_day_start == 8
    assert second.week == 2

    last = plan.steps[-1]
    assert last.phase is Phase.JUMP
    assert last.schedule.is_zero
    assert last.global_day_start == 197
    assert last.notes == "Completion"


def test_diazepam_ashton_cut_sizes(diazepam_plan):
    diazepam = [s.schedule.diazepam_mg for s in diazepam_plan.steps]
    assert diazepam[:4] == [20.0, 18.0, 17.0, 16.0]
    assert diazepam[9:13] == [10.0, 9.0, 8.5, 8.0]
    assert diazepam[-2:] == [0.5, 0.0]


def test_original_dose_is_zero_for_direct_plan(diazepam_plan):
    assert all(s.schedule.original_mcg == 0 for s in diazepam_plan.steps)


def test_steps_are_contiguous(diazepam_plan):
    expected = 1
    for step in diazepam_plan.steps:
        assert step.global_day_start == expected
        assert len(step.completed_days) == step.duration_days
        assert not any(step.completed_days)
        expected += step.duration_days


def test_step_ids_are_sequential(diazepam_plan):
    assert [s.id for s in diazepam_plan.steps] == [
        f"step-{i}" for i in range(1, len(diazepam_plan.steps) + 1)
    ]


# --- Crossover ---


def test_alprazolam_crossover(alprazolam_plan):
    plan = alprazolam_plan
    assert plan.is_diazepam_crossover
    assert _doses(plan)[:5] == [
        (0.75, 5.0),
        (0.5, 10.0),
        (0.25, 15.0),
        (0.0, 20.0),
        (0.0, 18.0),
    ]
    assert [s.phase for s in plan.steps[:5]] == [
        Phase.CROSSOVER,
        Phase.CROSSOVER,
        Phase.CROSSOVER,
        Phase.STABILIZE,
        Phase.REDUCTION,
    ]
    assert plan.steps[0].total_diazepam_eq_mg == 20.0
    assert plan.steps[3].notes == "Full substitution complete. Stabilize."


def test_crossover_short_circuits_when_remainder_rounds_away():
    plan = make_plan(Medication.TEMAZEPAM, 5)
    assert _doses(plan) == [
        (5.0, 0.5),
        (5.0, 1.5),
        (0.0, 2.5),
        (0.0, 2.0),
        (0.0, 1.5),
        (0.0, 1.0),
        (0.0, 0.5),
        (0.0, 0.0),
    ]
    assert plan.steps[2].notes == (
        "Remaining Temazepam dose is too small to split. Switched to Diazepam."
    )
    assert Phase.STABILIZE not in {s.phase for s in plan.steps}


def test_slices_come_from_baseline():
    plan = make_plan(Medication.LORAZEPAM, 2)
    originals = [s.schedule.original_mg for s in plan.steps if s.phase is Phase.CROSSOVER]
    assert originals == [1.5, 1.0, 0.5]


# --- Custom speed ---


def test_custom_plan_lands_on_target():
    plan = make_plan(
        dose=10,
        speed=TaperSpeed.CUSTOM,
        target_end_date=date(2024, 3, 11),
    )
    assert plan.target_end_date == date(2024, 3, 11)
    assert [s.schedule.diazepam_mg for s in plan.steps] == [
        10.0, 9.0, 8.0, 7.0, 6.0, 5.0, 4.0, 3.0, 2.0, 1.0, 0.0,
    ]
    assert plan.steps[-1].global_day_start == 71


def test_custom_plan_with_far_target_still_progresses():
    plan = make_plan(
        dose=10,
        speed=TaperSpeed.CUSTOM,
        target_end_date=date(2034, 1, 1),
    )
    diazepam = [s.schedule.diazepam_mcg for s in plan.steps]
    cuts = [a - b for a, b in zip(diazepam, diazepam[1:])]
    assert set(cuts) == {500}
    assert plan.steps[-1].phase is Phase.JUMP


def test_target_ignored_for_fixed_speeds():
    plan = make_plan(target_end_date=date(2024, 3, 1))
    assert plan.target_end_date is None


# --- Validation ---


@pytest.mark.parametrize("dose", [0, -5, float("nan"), float("inf")])
def test_rejects_bad_dose(dose):
    with pytest.raises(InvalidPlanInput):
        make_plan(dose=dose)


def test_rejects_dose_that_rounds_to_zero():
    with pytest.raises(InvalidPlanInput, match="rounds to 0"):
        make_plan(Medication.TEMAZEPAM, 2)


def test_rejects_negative_age():
    with pytest.raises(InvalidPlanInput):
        make_plan(age=-1)


def test_custom_needs_later_target():
    with pytest.raises(InvalidPlanInput):
        make_plan(speed=TaperSpeed.CUSTOM)
    with pytest.raises(InvalidPlanInput):
        make_plan(speed=TaperSpeed.CUSTOM, target_end_date=date(2024, 1, 1))


def test_invalid_input_is_value_error():
    with pytest.raises(ValueError):
        make_plan(dose=0)


def test_safety_valve():
    with pytest.raises(ScheduleNotConverged) as exc_info:
        make_plan(max_iterations=3)
    assert exc_info.value.iterations == 3
    assert exc_info.value.remaining_mg > 0


# --- Input coercion & determinism ---


def test_accepts_string_inputs():
    plan = generate_plan(
        "Diazepam (Valium)", 20, "ashton", 40, "average", 1, "2024-01-01T23:30:00Z"
    )
    assert plan.start_date == date(2024, 1, 1)
    assert plan.speed is TaperSpeed.ASHTON


def test_generation_is_deterministic():
    assert make_plan(Medication.CLONAZEPAM, 2) == make_plan(Medication.CLONAZEPAM, 2)


def test_elderly_plan_uses_two_week_steps():
    plan = make_plan(age=70)
    assert all(s.duration_days == 14 for s in plan.steps)
    assert plan.steps[1].global_day_start == 15
    assert plan.steps[1].week == 3


def test_start_dose_kept_as_entered():
    plan = make_plan(dose=20.2)
    assert plan.start_dose_mg == 20.2
    assert plan.steps[0].schedule.diazepam_mg == 20.0
