"""Mutation entry points used by the owning layer after generation.

Each operation takes a plan and returns a new one; the caller persists
the result. Dose schedules and phases are never touched here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date

from taperpath.dates import date_for_day
from taperpath.models import TaperPlan, TaperStep

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DueDay:
    step: TaperStep
    day_index: int
    date: date


def _replace_step(plan: TaperPlan, index: int, step: TaperStep) -> TaperPlan:
    steps = list(plan.steps)
    steps[index] = step
    return replace(plan, steps=tuple(steps))


def set_day(plan: TaperPlan, step_id: str, day_index: int, done: bool) -> TaperPlan:
    """Set one day's completion flag explicitly."""
    index = plan.step_index(step_id)
    step = plan.steps[index]
    if not 0 <= day_index < len(step.completed_days):
        raise IndexError(f"day index {day_index} outside step {step_id} ({len(step.completed_days)} days)")
    if step.completed_days[day_index] == done:
        return plan
    days = list(step.completed_days)
    days[day_index] = done
    return _replace_step(plan, index, replace(step, completed_days=tuple(days)))


def toggle_day(plan: TaperPlan, step_id: str, day_index: int) -> TaperPlan:
    """Flip one day's completion flag. The step's completion follows from its days."""
    step = plan.step(step_id)
    if not 0 <= day_index < len(step.completed_days):
        raise IndexError(f"day index {day_index} outside step {step_id} ({len(step.completed_days)} days)")
    updated = set_day(plan, step_id, day_index, not step.completed_days[day_index])
    logger.debug(
        "Toggled %s day %d", step_id, day_index,
        extra={"taper_step_id": step_id, "taper_day_index": day_index},
    )
    return updated


def extend_step(plan: TaperPlan, step_id: str) -> TaperPlan:
    """Hold a step one day longer.

    Appends an unmarked day and moves every later step's start day by
    one, so program day numbers stay contiguous.
    """
    index = plan.step_index(step_id)
    steps = list(plan.steps)
    step = steps[index]
    steps[index] = replace(
        step,
        duration_days=step.duration_days + 1,
        completed_days=step.completed_days + (False,),
    )
    for i in range(index + 1, len(steps)):
        steps[i] = replace(steps[i], global_day_start=steps[i].global_day_start + 1)

    logger.info(
        "Extended %s to %d days",
        step_id, step.duration_days + 1,
        extra={"taper_step_id": step_id},
    )
    return replace(plan, steps=tuple(steps))


def next_due(plan: TaperPlan) -> DueDay | None:
    """First unmarked day across the whole plan, or None when everything is done."""
    for step in plan.steps:
        for i, done in enumerate(step.completed_days):
            if not done:
                return DueDay(step=step, day_index=i, date=date_for_day(plan, step.id, i))
    return None


def current_step(plan: TaperPlan) -> TaperStep | None:
    """The first step that is not yet complete."""
    for step in plan.steps:
        if not step.is_completed:
            return step
    return None
