"""Calendar convention shared by the generator and the reconciler.

Every date is a timezone-naive local calendar day. ISO strings are split
into their date parts directly and never go through a UTC-normalizing
timestamp parser, so ``"2025-02-01"`` is always February 1st.

"Day N" of the program is 1-based and comes from summing the durations
of the preceding steps, never from wall-clock elapsed time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from taperpath.models import TaperPlan, TaperStep


@dataclass(frozen=True)
class StepWindow:
    step: TaperStep
    first_day: date
    last_day: date

    def contains(self, day: date) -> bool:
        return self.first_day <= day <= self.last_day


def parse_local_date(value: str | date | datetime) -> date:
    """Parse ``YYYY-MM-DD`` (any trailing time part is ignored) to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        raise ValueError("empty date string")
    head = text[:10]
    try:
        year, month, day = (int(part) for part in head.split("-"))
    except ValueError:
        raise ValueError(f"not an ISO calendar date: {value!r}") from None
    return date(year, month, day)


def format_iso(day: date) -> str:
    return day.isoformat()


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def days_between(start: date, end: date) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative if end is earlier)."""
    return (end - start).days


def step_windows(plan: TaperPlan) -> list[StepWindow]:
    """First and last calendar day of every step, in order."""
    windows: list[StepWindow] = []
    offset = 0
    for step in plan.steps:
        first = add_days(plan.start_date, offset)
        windows.append(
            StepWindow(step=step, first_day=first, last_day=add_days(first, step.duration_days - 1))
        )
        offset += step.duration_days
    return windows


def date_for_day(plan: TaperPlan, step_id: str, day_index: int) -> date:
    """Calendar date of ``day_index`` (0-based) within the given step."""
    step = plan.step(step_id)
    if not 0 <= day_index < step.duration_days:
        raise IndexError(f"day index {day_index} outside step {step_id} ({step.duration_days} days)")
    offset = sum(s.duration_days for s in plan.steps[: plan.step_index(step_id)])
    return add_days(plan.start_date, offset + day_index)


def day_number(plan: TaperPlan, day: date) -> int | None:
    """1-based program day for ``day``, or None outside the plan."""
    n = days_between(plan.start_date, day) + 1
    if 1 <= n <= plan.total_days:
        return n
    return None
