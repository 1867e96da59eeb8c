"""Core data models for a taper program."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from taperpath.errors import StepNotFound
from taperpath.medications import Medication, mcg_to_mg


class Phase(str, Enum):
    """Why a step exists. Never inferred from its dose values."""

    CROSSOVER = "crossover"
    STABILIZE = "stabilize"
    REDUCTION = "reduction"
    JUMP = "jump"


class TaperSpeed(str, Enum):
    SLOW = "slow"  # 5% cuts
    MODERATE = "moderate"  # 10% cuts
    ASHTON = "ashton"  # Ashton Manual fixed thresholds
    CUSTOM = "custom"  # linear ramp to a target date

    @property
    def label(self) -> str:
        return _SPEED_LABELS[self]


_SPEED_LABELS = {
    TaperSpeed.SLOW: "Slow (5% cuts)",
    TaperSpeed.MODERATE: "Moderate (10% cuts)",
    TaperSpeed.ASHTON: "Ashton Manual Standard",
    TaperSpeed.CUSTOM: "Custom (Target Date)",
}


class Metabolism(str, Enum):
    SLOW = "slow"
    AVERAGE = "average"
    FAST = "fast"


@dataclass(frozen=True)
class DoseSchedule:
    """The two concurrently active daily doses of a step, in micrograms."""

    original_mcg: int
    diazepam_mcg: int

    @property
    def original_mg(self) -> float:
        return mcg_to_mg(self.original_mcg)

    @property
    def diazepam_mg(self) -> float:
        return mcg_to_mg(self.diazepam_mcg)

    @property
    def is_zero(self) -> bool:
        return self.original_mcg == 0 and self.diazepam_mcg == 0


@dataclass(frozen=True)
class TaperStep:
    """One contiguous dosing phase.

    ``schedule``, ``phase`` and the generated duration are fixed at
    creation; only ``completed_days`` (and, via extend, its length)
    change afterwards.
    """

    id: str
    week: int  # 1-based week in which the step starts
    phase: Phase
    schedule: DoseSchedule
    total_diazepam_eq_mcg: int  # chart value, rounded to 0.01 mg
    duration_days: int
    completed_days: tuple[bool, ...]
    global_day_start: int  # 1-based program day of the step's first day
    notes: str | None = None

    @property
    def is_completed(self) -> bool:
        return all(self.completed_days)

    @property
    def total_diazepam_eq_mg(self) -> float:
        return mcg_to_mg(self.total_diazepam_eq_mcg)

    @property
    def global_day_end(self) -> int:
        return self.global_day_start + self.duration_days - 1


@dataclass(frozen=True)
class TaperPlan:
    """Root aggregate for one tapering program."""

    medication: Medication
    start_dose_mg: float  # as entered, before rounding
    start_date: date
    speed: TaperSpeed
    age: int
    metabolism: Metabolism
    years_using: float
    steps: tuple[TaperStep, ...]
    is_diazepam_crossover: bool
    target_end_date: date | None = None

    @property
    def total_days(self) -> int:
        return sum(s.duration_days for s in self.steps)

    def step(self, step_id: str) -> TaperStep:
        """Look up a step by id, raising StepNotFound."""
        for s in self.steps:
            if s.id == step_id:
                return s
        raise StepNotFound(step_id)

    def step_index(self, step_id: str) -> int:
        for i, s in enumerate(self.steps):
            if s.id == step_id:
                return i
        raise StepNotFound(step_id)


@dataclass(frozen=True)
class MissedDay:
    """A transient reconciliation finding. Never persisted."""

    step_id: str
    day_index: int
    date: date
    step_week: int


@dataclass(frozen=True)
class AttemptCheck:
    """Outcome of trying to mark a day that may not be the next one due.

    ``allowed`` means the toggle can be applied directly; otherwise
    ``pending`` holds the days the user has to confirm or reschedule first.
    """

    allowed: bool
    pending: tuple[MissedDay, ...] = field(default_factory=tuple)
    synthesized: bool = False  # pending is the next-due day, not real misses
