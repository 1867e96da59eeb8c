"""Schedule generator: builds the full day-by-day taper plan.

Two stages:
  1. Crossover: move the original drug to diazepam in 25% slices of the
     baseline (skipped when the user already takes diazepam).
  2. Reduction: cut the diazepam total step by step until it reaches 0.

Every dose that ends up in a step is rounded to a pill fraction the
patient can actually cut. Generation is deterministic for fixed inputs.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from fractions import Fraction

from taperpath.dates import add_days, days_between, parse_local_date
from taperpath.errors import InvalidPlanInput, ScheduleNotConverged
from taperpath.medications import (
    DRUGS,
    Medication,
    mcg_to_mg,
    mg_to_mcg,
    round_mcg,
    to_diazepam_mcg,
)
from taperpath.models import DoseSchedule, Metabolism, Phase, TaperPlan, TaperSpeed, TaperStep

logger = logging.getLogger(__name__)

SAFETY_VALVE_ITERATIONS = 150

DEFAULT_STEP_DAYS = 7
EXTENDED_STEP_DAYS = 14
ELDERLY_AGE = 65

# Dust thresholds: smaller rounded amounts are dropped to exactly 0.
ORIGINAL_DUST_MCG = 100
DIAZEPAM_DUST_MCG = 200

# Pre-rounding remainder at or below which the patient jumps off.
JUMP_OFF_MCG = 250
# Forced cut when rounding stalls progress.
STALL_BREAK_MCG = 500

# Ashton Manual thresholds: (current total at least, cut), checked in order.
ASHTON_CUTS_MCG: tuple[tuple[int, int], ...] = (
    (50_000, 5_000),
    (20_000, 2_000),
    (10_000, 1_000),
)
ASHTON_FLOOR_CUT_MCG = 500

# Percentage policies: fraction of the current total, with a minimum cut.
PERCENT_CUTS: dict[TaperSpeed, Fraction] = {
    TaperSpeed.MODERATE: Fraction(1, 10),
    TaperSpeed.SLOW: Fraction(1, 20),
}
MIN_PERCENT_CUT_MCG = 500


def step_duration_days(speed: TaperSpeed, age: int, metabolism: Metabolism) -> int:
    """Uniform step length for a plan: 14 days for slow/elderly/slow-metabolizer plans."""
    if speed is TaperSpeed.SLOW or age > ELDERLY_AGE or metabolism is Metabolism.SLOW:
        return EXTENDED_STEP_DAYS
    return DEFAULT_STEP_DAYS


def custom_weekly_cut_mcg(total_mcg: int | Fraction, reduction_start: date, target: date) -> Fraction:
    """Fixed weekly cut that ramps ``total_mcg`` linearly down to the target date."""
    total_days = max(1, days_between(reduction_start, target))
    return Fraction(total_mcg) * 7 / total_days


def reduction_amount_mcg(
    speed: TaperSpeed,
    current_mcg: int | Fraction,
    custom_weekly_mcg: Fraction | None = None,
) -> Fraction:
    """How much to cut from the current diazepam total for one step."""
    current = Fraction(current_mcg)
    if speed is TaperSpeed.CUSTOM:
        if custom_weekly_mcg is None:
            raise ValueError("custom speed needs a precomputed weekly cut")
        return custom_weekly_mcg
    if speed is TaperSpeed.ASHTON:
        for threshold, cut in ASHTON_CUTS_MCG:
            if current >= threshold:
                return Fraction(cut)
        return Fraction(ASHTON_FLOOR_CUT_MCG)
    return max(current * PERCENT_CUTS[speed], Fraction(MIN_PERCENT_CUT_MCG))


class _StepBuilder:
    """Accumulates rounded steps and keeps the program-day counter."""

    def __init__(self, medication: Medication, duration_days: int):
        self.medication = medication
        self.direct = medication is Medication.DIAZEPAM
        self.duration_days = duration_days
        self.next_day = 1
        self.steps: list[TaperStep] = []

    @property
    def last(self) -> TaperStep | None:
        return self.steps[-1] if self.steps else None

    def add(
        self,
        phase: Phase,
        original_mcg: int | Fraction,
        diazepam_mcg: int | Fraction,
        notes: str | None = None,
    ) -> TaperStep | None:
        original = 0 if self.direct else round_mcg(original_mcg, self.medication)
        diazepam = round_mcg(diazepam_mcg, Medication.DIAZEPAM)
        if original < ORIGINAL_DUST_MCG:
            original = 0
        if diazepam < DIAZEPAM_DUST_MCG:
            diazepam = 0

        # A zero step only makes sense as the terminal jump.
        if original == 0 and diazepam == 0 and phase is not Phase.JUMP:
            return None

        total_eq = to_diazepam_mcg(original, self.medication) + diazepam
        step = TaperStep(
            id=f"step-{len(self.steps) + 1}",
            week=(self.next_day - 1) // 7 + 1,
            phase=phase,
            schedule=DoseSchedule(original_mcg=original, diazepam_mcg=diazepam),
            total_diazepam_eq_mcg=math.floor(total_eq / 10 + Fraction(1, 2)) * 10,
            duration_days=self.duration_days,
            completed_days=(False,) * self.duration_days,
            global_day_start=self.next_day,
            notes=notes,
        )
        self.steps.append(step)
        self.next_day += self.duration_days
        return step


def _crossover(builder: _StepBuilder, baseline_mcg: int) -> Fraction:
    """Emit the substitution steps and return the diazepam total to reduce from.

    Slices are always taken from the baseline, not from the previous step.
    """
    medication = builder.medication
    name = DRUGS[medication].name
    total_eq = to_diazepam_mcg(baseline_mcg, medication)
    baseline = Fraction(baseline_mcg)

    builder.add(Phase.CROSSOVER, baseline * 3 / 4, total_eq / 4,
                f"Substitute approx. 25% of {name} with Diazepam.")
    builder.add(Phase.CROSSOVER, baseline / 2, total_eq / 2,
                "Substitute another 25% (Halfway point).")

    remaining = baseline / 4
    if round_mcg(remaining, medication) == 0:
        builder.add(Phase.CROSSOVER, 0, total_eq,
                    f"Remaining {name} dose is too small to split. Switched to Diazepam.")
        return total_eq

    builder.add(Phase.CROSSOVER, remaining, total_eq * 3 / 4,
                "Substitute another 25%. Mostly Diazepam now.")
    builder.add(Phase.STABILIZE, 0, total_eq, "Full substitution complete. Stabilize.")
    return total_eq


def _reduce(
    builder: _StepBuilder,
    speed: TaperSpeed,
    current: Fraction,
    custom_weekly_mcg: Fraction | None,
    max_iterations: int,
) -> None:
    iterations = 0
    while current > 0:
        if iterations >= max_iterations:
            raise ScheduleNotConverged(iterations, mcg_to_mg(current), len(builder.steps))
        iterations += 1

        cut = reduction_amount_mcg(speed, current, custom_weekly_mcg)
        next_total = current - cut
        rounded = Fraction(round_mcg(next_total, Medication.DIAZEPAM))

        if rounded >= current:
            rounded = current - STALL_BREAK_MCG
        if next_total <= JUMP_OFF_MCG:
            rounded = Fraction(0)
        rounded = max(rounded, Fraction(0))

        last = builder.last
        if (
            last is not None
            and last.schedule.diazepam_mcg == rounded
            and last.schedule.original_mcg == 0
        ):
            rounded = max(Fraction(0), rounded - STALL_BREAK_MCG)

        logger.debug(
            "Reduction %d: %s mg -> %s mg (cut %s mg)",
            iterations, mcg_to_mg(current), mcg_to_mg(rounded), mcg_to_mg(cut),
        )
        current = rounded
        if current == 0:
            builder.add(Phase.JUMP, 0, 0, "Completion")
        else:
            builder.add(Phase.REDUCTION, 0, current)


def _validate(
    start_dose_mg: float,
    speed: TaperSpeed,
    age: int,
    years_using: float,
    start: date,
    target: date | None,
) -> None:
    if not math.isfinite(start_dose_mg) or start_dose_mg <= 0:
        raise InvalidPlanInput(f"start dose must be a positive number of mg, got {start_dose_mg!r}")
    if age < 0:
        raise InvalidPlanInput(f"age must not be negative, got {age}")
    if years_using < 0:
        raise InvalidPlanInput(f"years using must not be negative, got {years_using}")
    if speed is TaperSpeed.CUSTOM:
        if target is None:
            raise InvalidPlanInput("custom speed requires a target end date")
        if target <= start:
            raise InvalidPlanInput(
                f"target end date {target.isoformat()} must be after start date {start.isoformat()}"
            )


def generate_plan(
    medication: Medication | str,
    start_dose_mg: float,
    speed: TaperSpeed | str,
    age: int,
    metabolism: Metabolism | str,
    years_using: float,
    start_date: date | str,
    target_end_date: date | str | None = None,
    *,
    max_iterations: int = SAFETY_VALVE_ITERATIONS,
) -> TaperPlan:
    """Generate a complete taper plan from the starting dose down to 0 mg.

    Patient factors (age, metabolism, speed) only change step duration,
    never the dose math. ``target_end_date`` is used by the custom speed
    only.

    Raises:
        InvalidPlanInput: preconditions not met (dose <= 0, dose that
            rounds to nothing, custom speed without a later target date).
        ScheduleNotConverged: the reduction loop exceeded ``max_iterations``.
    """
    medication = Medication(medication)
    speed = TaperSpeed(speed)
    metabolism = Metabolism(metabolism)
    start = parse_local_date(start_date)
    target = parse_local_date(target_end_date) if target_end_date is not None else None
    if speed is not TaperSpeed.CUSTOM:
        target = None

    _validate(start_dose_mg, speed, age, years_using, start, target)

    starting_mcg = round_mcg(mg_to_mcg(start_dose_mg), medication)
    if starting_mcg == 0:
        raise InvalidPlanInput(
            f"{start_dose_mg} mg of {DRUGS[medication].name} rounds to 0 at the smallest pill split"
        )

    builder = _StepBuilder(medication, step_duration_days(speed, age, metabolism))

    if builder.direct:
        diazepam_total = Fraction(starting_mcg)
        builder.add(Phase.STABILIZE, 0, diazepam_total, "Stabilize on starting dose.")
    else:
        diazepam_total = _crossover(builder, starting_mcg)

    custom_weekly = None
    if speed is TaperSpeed.CUSTOM:
        reduction_start = add_days(start, builder.next_day - 1)
        custom_weekly = custom_weekly_cut_mcg(diazepam_total, reduction_start, target)

    _reduce(builder, speed, diazepam_total, custom_weekly, max_iterations)

    plan = TaperPlan(
        medication=medication,
        start_dose_mg=start_dose_mg,
        start_date=start,
        speed=speed,
        age=age,
        metabolism=metabolism,
        years_using=years_using,
        steps=tuple(builder.steps),
        is_diazepam_crossover=not builder.direct,
        target_end_date=target,
    )
    logger.info(
        "Generated taper plan: %d steps over %d days",
        len(plan.steps), plan.total_days,
        extra={
            "taper_medication": medication.name.lower(),
            "taper_speed": speed.value,
            "taper_step_count": len(plan.steps),
        },
    )
    return plan
