"""Daily symptom/sleep journal.

Entries are keyed by calendar date and relate to a plan only through
date overlap, never through step ids.
"""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from taperpath.dates import parse_local_date, step_windows
from taperpath.models import TaperPlan


class DailyLogEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    date: dt.date
    stress: int = Field(default=0, ge=0, le=10)
    tremors: int = Field(default=0, ge=0, le=10)
    dizziness: int = Field(default=0, ge=0, le=10)
    muscle_pain: int | None = Field(default=None, ge=0, le=10)
    nausea: int | None = Field(default=None, ge=0, le=10)
    irritability: int | None = Field(default=None, ge=0, le=10)
    depersonalization: int | None = Field(default=None, ge=0, le=10)
    sensory_sensitivity: int | None = Field(default=None, ge=0, le=10)
    tinnitus: int | None = Field(default=None, ge=0, le=10)

    sleep_quality: int = Field(default=0, ge=0, le=10)
    sleep_hours: float = Field(default=0.0, ge=0, le=24)
    napped: bool | None = None
    restless_sleep: bool | None = None

    medications: str = ""
    activities: list[str] = Field(default_factory=list)
    notes: str = ""

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value: object) -> dt.date:
        if isinstance(value, str):
            return parse_local_date(value)
        return value  # type: ignore[return-value]

    @field_validator("medications", "notes")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()


def upsert_entry(entries: list[DailyLogEntry], entry: DailyLogEntry) -> list[DailyLogEntry]:
    """Replace any entry for the same date, keeping the list sorted by date."""
    kept = [e for e in entries if e.date != entry.date]
    kept.append(entry)
    return sorted(kept, key=lambda e: e.date)


def entries_for_step(
    plan: TaperPlan,
    step_id: str,
    entries: list[DailyLogEntry],
) -> list[DailyLogEntry]:
    """Journal entries whose date falls inside the step's calendar window."""
    plan.step(step_id)  # raises StepNotFound
    for window in step_windows(plan):
        if window.step.id == step_id:
            return sorted((e for e in entries if window.contains(e.date)), key=lambda e: e.date)
    return []
