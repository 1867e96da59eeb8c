"""Temporal reconciler: detect elapsed unmarked days and resync the plan.

Two resolutions are offered for missed days:
  - mark_taken: backfill, the doses were taken but not logged.
  - reschedule: slide the whole timeline so the first missed day is today.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Iterable

from taperpath.dates import add_days, days_between, parse_local_date
from taperpath.errors import StepNotFound
from taperpath.models import AttemptCheck, MissedDay, TaperPlan
from taperpath.plan_ops import next_due, set_day

logger = logging.getLogger(__name__)


def find_missed(plan: TaperPlan, today: date | str) -> list[MissedDay]:
    """Unmarked days strictly before ``today``, in chronological order.

    Steps are sequential in time, so the walk stops at the first day that
    is today or later.
    """
    today = parse_local_date(today)
    missed: list[MissedDay] = []
    current = plan.start_date
    for step in plan.steps:
        for i, done in enumerate(step.completed_days):
            if current >= today:
                return missed
            if not done:
                missed.append(
                    MissedDay(step_id=step.id, day_index=i, date=current, step_week=step.week)
                )
            current = add_days(current, 1)
    return missed


def mark_taken(plan: TaperPlan, missed: Iterable[MissedDay]) -> TaperPlan:
    """Backfill: mark every missed day as completed. Idempotent.

    Findings that point at a step or day no longer in the plan are skipped.
    """
    updated = plan
    changed = 0
    for day in missed:
        try:
            step = updated.step(day.step_id)
        except StepNotFound:
            logger.warning("Skipping stale missed day for unknown step %s", day.step_id)
            continue
        if not 0 <= day.day_index < len(step.completed_days):
            logger.warning("Skipping stale missed day %s/%d", day.step_id, day.day_index)
            continue
        if not step.completed_days[day.day_index]:
            updated = set_day(updated, day.step_id, day.day_index, True)
            changed += 1

    if changed:
        logger.info("Marked %d missed day(s) as taken", changed, extra={"taper_days_marked": changed})
    return updated


def reschedule(plan: TaperPlan, missed: list[MissedDay], today: date | str) -> TaperPlan:
    """Shift the start date so the first missed day lands on ``today``.

    Step contents are untouched; only the calendar anchor moves. A zero
    or negative shift returns the plan unchanged.
    """
    if not missed:
        return plan
    today = parse_local_date(today)
    diff_days = days_between(missed[0].date, today)
    if diff_days <= 0:
        return plan

    new_start = add_days(plan.start_date, diff_days)
    logger.info(
        "Rescheduled plan start %s -> %s (+%d days)",
        plan.start_date.isoformat(), new_start.isoformat(), diff_days,
        extra={"taper_shift_days": diff_days},
    )
    return replace(plan, start_date=new_start)


def check_attempt(plan: TaperPlan, step_id: str, day_index: int, today: date | str) -> AttemptCheck:
    """Guard for marking a day out of order.

    Un-marking a completed day and marking the next-due day go straight
    through. Any other day first surfaces the missed days; if there are
    none, the next-due day itself comes back as a synthesized record so
    the same confirmation flow can offer early completion.
    """
    step = plan.step(step_id)
    if not 0 <= day_index < len(step.completed_days):
        raise IndexError(f"day index {day_index} outside step {step_id} ({len(step.completed_days)} days)")
    if step.completed_days[day_index]:
        return AttemptCheck(allowed=True)

    due = next_due(plan)
    if due is None or (due.step.id == step_id and due.day_index == day_index):
        return AttemptCheck(allowed=True)

    missed = find_missed(plan, today)
    if missed:
        return AttemptCheck(allowed=False, pending=tuple(missed))

    record = MissedDay(
        step_id=due.step.id,
        day_index=due.day_index,
        date=due.date,
        step_week=due.step.week,
    )
    return AttemptCheck(allowed=False, pending=(record,), synthesized=True)
