"""Exception types raised by the taper core."""

from __future__ import annotations


class TaperError(Exception):
    """Base class for every error the core raises on purpose."""


class InvalidPlanInput(TaperError, ValueError):
    """Generator preconditions were not met (dose, dates, patient factors)."""


class ScheduleNotConverged(TaperError, RuntimeError):
    """The reduction loop hit its iteration ceiling before reaching zero."""

    def __init__(self, iterations: int, remaining_mg: float, step_count: int):
        self.iterations = iterations
        self.remaining_mg = remaining_mg
        self.step_count = step_count
        super().__init__(
            f"reduction did not reach 0 mg after {iterations} iterations "
            f"({remaining_mg} mg remaining, {step_count} steps generated)"
        )


class StepNotFound(TaperError, KeyError):
    """A mutation referenced a step id that is not in the plan."""

    def __str__(self) -> str:
        return f"unknown step id: {self.args[0]!r}"


class CorruptPlanError(TaperError, ValueError):
    """A persisted plan could not be parsed at all."""
