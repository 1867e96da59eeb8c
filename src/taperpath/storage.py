"""Persisted plan contract, load-time repair, and a JSON file store.

The stored blob uses the camelCase shape the app has always written
(``startDose``, ``completedDays``, ``durationDays`` ...), with doses in mg.
Plans written by older schema versions are repaired on load rather than
rejected: a broken ``completedDays`` array is padded or truncated to
``durationDays``, so the program stays usable.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from taperpath.dates import parse_local_date
from taperpath.errors import CorruptPlanError
from taperpath.journal import DailyLogEntry
from taperpath.medications import Medication, mg_to_mcg
from taperpath.models import DoseSchedule, Metabolism, Phase, TaperPlan, TaperSpeed, TaperStep
from taperpath.reminders import UserProfile

logger = logging.getLogger(__name__)

CONTRACT_VERSION = "taper_plan.v1"
DEFAULT_DURATION_DAYS = 7

_SPEED_BY_LABEL = {speed.label: speed for speed in TaperSpeed}


def _mg_to_int_mcg(value: float) -> int:
    return round(mg_to_mcg(value))


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PersistedSchedule(_CamelModel):
    original: float = Field(default=0.0, ge=0)
    diazepam: float = Field(default=0.0, ge=0)


class PersistedStep(_CamelModel):
    id: str
    week: int = Field(default=1, ge=1)
    phase: Phase
    schedule: PersistedSchedule
    original_med_dose: float = Field(default=0.0, ge=0)
    diazepam_dose: float = Field(default=0.0, ge=0)
    total_diazepam_eq: float = Field(default=0.0, ge=0)
    is_completed: bool = False
    completed_days: list[bool]
    duration_days: int = Field(ge=1)
    global_day_start: int = Field(ge=1)
    notes: str | None = None

    @model_validator(mode="before")
    @classmethod
    def repair_legacy_step(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        step_id = data.get("id", "?")

        duration = data.get("durationDays", data.get("duration_days"))
        if not isinstance(duration, int) or isinstance(duration, bool) or duration < 1:
            logger.warning("Step %s: invalid durationDays %r, using %d", step_id, duration, DEFAULT_DURATION_DAYS)
            duration = DEFAULT_DURATION_DAYS

        days = data.get("completedDays", data.get("completed_days"))
        days = [bool(d) for d in days] if isinstance(days, list) else []
        if len(days) != duration:
            logger.warning(
                "Step %s: completedDays length %d != durationDays %d, repairing",
                step_id, len(days), duration,
            )
            days = (days + [False] * duration)[:duration]

        start = data.get("globalDayStart", data.get("global_day_start"))
        if not isinstance(start, int) or isinstance(start, bool) or start < 1:
            start = 1

        if data.get("schedule") is None:
            data["schedule"] = {
                "original": data.get("originalMedDose", data.get("original_med_dose", 0.0)),
                "diazepam": data.get("diazepamDose", data.get("diazepam_dose", 0.0)),
            }

        for key in ("duration_days", "completed_days", "global_day_start", "is_completed"):
            data.pop(key, None)
        data["durationDays"] = duration
        data["completedDays"] = days
        data["globalDayStart"] = start
        data["isCompleted"] = all(days)
        return data

    def to_domain(self) -> TaperStep:
        original = _mg_to_int_mcg(self.schedule.original)
        diazepam = _mg_to_int_mcg(self.schedule.diazepam)
        return TaperStep(
            id=self.id,
            week=self.week,
            phase=self.phase,
            schedule=DoseSchedule(original_mcg=original, diazepam_mcg=diazepam),
            total_diazepam_eq_mcg=_mg_to_int_mcg(self.total_diazepam_eq),
            duration_days=self.duration_days,
            completed_days=tuple(self.completed_days),
            global_day_start=self.global_day_start,
            notes=self.notes,
        )

    @classmethod
    def from_domain(cls, step: TaperStep) -> PersistedStep:
        return cls(
            id=step.id,
            week=step.week,
            phase=step.phase,
            schedule=PersistedSchedule(
                original=step.schedule.original_mg,
                diazepam=step.schedule.diazepam_mg,
            ),
            original_med_dose=step.schedule.original_mg,
            diazepam_dose=step.schedule.diazepam_mg,
            total_diazepam_eq=step.total_diazepam_eq_mg,
            is_completed=step.is_completed,
            completed_days=list(step.completed_days),
            duration_days=step.duration_days,
            global_day_start=step.global_day_start,
            notes=step.notes,
        )


class PersistedPlan(_CamelModel):
    version: str = CONTRACT_VERSION
    medication: Medication
    start_dose: float = Field(gt=0)
    start_date: dt.date
    speed: TaperSpeed
    age: int = Field(ge=0)
    metabolism: Metabolism
    years_using: float = Field(default=0.0, ge=0)
    target_end_date: dt.date | None = None
    steps: list[PersistedStep] = Field(min_length=1)
    is_diazepam_cross_over: bool

    @field_validator("start_date", "target_end_date", mode="before")
    @classmethod
    def parse_calendar_day(cls, value: Any) -> Any:
        # Never let an ISO timestamp be shifted through UTC.
        if isinstance(value, str):
            return parse_local_date(value)
        return value

    @field_validator("speed", mode="before")
    @classmethod
    def accept_speed_label(cls, value: Any) -> Any:
        if isinstance(value, str) and value in _SPEED_BY_LABEL:
            return _SPEED_BY_LABEL[value]
        return value

    def to_domain(self) -> TaperPlan:
        return TaperPlan(
            medication=self.medication,
            start_dose_mg=self.start_dose,
            start_date=self.start_date,
            speed=self.speed,
            age=self.age,
            metabolism=self.metabolism,
            years_using=self.years_using,
            steps=tuple(step.to_domain() for step in self.steps),
            is_diazepam_crossover=self.is_diazepam_cross_over,
            target_end_date=self.target_end_date,
        )

    @classmethod
    def from_domain(cls, plan: TaperPlan) -> PersistedPlan:
        return cls(
            medication=plan.medication,
            start_dose=plan.start_dose_mg,
            start_date=plan.start_date,
            speed=plan.speed,
            age=plan.age,
            metabolism=plan.metabolism,
            years_using=plan.years_using,
            target_end_date=plan.target_end_date,
            steps=[PersistedStep.from_domain(s) for s in plan.steps],
            is_diazepam_cross_over=plan.is_diazepam_crossover,
        )


def plan_to_dict(plan: TaperPlan) -> dict[str, Any]:
    return PersistedPlan.from_domain(plan).model_dump(mode="json", by_alias=True)


def plan_from_dict(data: Any) -> TaperPlan:
    """Validate (and repair) a stored plan blob."""
    try:
        return PersistedPlan.model_validate(data).to_domain()
    except ValidationError as exc:
        raise CorruptPlanError(f"stored plan is not a valid taper plan: {exc}") from exc


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _read_json(path: Path) -> Any | None:
    if not path.exists():
        return None
    try:
        with path.open() as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise CorruptPlanError(f"{path} is not valid JSON: {exc}") from exc


class PlanStore:
    """One active plan, its journal, and the user profile as JSON files."""

    PLAN_KEY = "plan"
    LOGS_KEY = "logs"
    PROFILE_KEY = "profile"

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def load_plan(self) -> TaperPlan | None:
        data = _read_json(self.path_for(self.PLAN_KEY))
        if data is None:
            return None
        return plan_from_dict(data)

    def save_plan(self, plan: TaperPlan) -> None:
        _write_json(self.path_for(self.PLAN_KEY), plan_to_dict(plan))
        logger.debug("Saved plan with %d steps to %s", len(plan.steps), self.root)

    def clear_plan(self) -> None:
        self.path_for(self.PLAN_KEY).unlink(missing_ok=True)

    def load_logs(self) -> list[DailyLogEntry]:
        data = _read_json(self.path_for(self.LOGS_KEY))
        if data is None:
            return []
        try:
            return [DailyLogEntry.model_validate(item) for item in data]
        except ValidationError as exc:
            raise CorruptPlanError(f"stored journal is invalid: {exc}") from exc

    def save_logs(self, entries: list[DailyLogEntry]) -> None:
        payload = [e.model_dump(mode="json", by_alias=True) for e in entries]
        _write_json(self.path_for(self.LOGS_KEY), payload)

    def load_profile(self) -> UserProfile:
        data = _read_json(self.path_for(self.PROFILE_KEY))
        if data is None:
            return UserProfile()
        try:
            return UserProfile.model_validate(data)
        except ValidationError as exc:
            raise CorruptPlanError(f"stored profile is invalid: {exc}") from exc

    def save_profile(self, profile: UserProfile) -> None:
        _write_json(self.path_for(self.PROFILE_KEY), profile.model_dump(mode="json", by_alias=True))
