"""Dashboard figures derived from a plan's completion flags."""

from __future__ import annotations

from dataclasses import dataclass

from taperpath.models import TaperPlan, TaperStep
from taperpath.plan_ops import current_step


@dataclass(frozen=True)
class PlanProgress:
    completed_steps: int
    total_steps: int
    percent: int  # whole percent of completed steps
    current_step: TaperStep | None
    total_days: int
    completed_days: int
    days_remaining: int

    @property
    def current_original_mg(self) -> float:
        return self.current_step.schedule.original_mg if self.current_step else 0.0

    @property
    def current_diazepam_mg(self) -> float:
        return self.current_step.schedule.diazepam_mg if self.current_step else 0.0


def plan_progress(plan: TaperPlan) -> PlanProgress:
    completed_steps = sum(1 for s in plan.steps if s.is_completed)
    total_steps = len(plan.steps)
    total_days = plan.total_days
    completed_days = sum(sum(1 for d in s.completed_days if d) for s in plan.steps)
    # whole percent, halves round up
    percent = (completed_steps * 200 + total_steps) // (total_steps * 2) if total_steps else 0
    return PlanProgress(
        completed_steps=completed_steps,
        total_steps=total_steps,
        percent=percent,
        current_step=current_step(plan),
        total_days=total_days,
        completed_days=completed_days,
        days_remaining=max(0, total_days - completed_days),
    )
