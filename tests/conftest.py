from __future__ import annotations

from datetime import date

import pytest

from taperpath.generator import generate_plan
from taperpath.medications import Medication
from taperpath.models import Metabolism, TaperPlan, TaperSpeed


def make_plan(
    medication: Medication = Medication.DIAZEPAM,
    dose: float = 20,
    speed: TaperSpeed = TaperSpeed.ASHTON,
    start: date = date(2024, 1, 1),
    **kwargs,
) -> TaperPlan:
    return generate_plan(
        medication,
        dose,
        speed,
        kwargs.pop("age", 40),
        kwargs.pop("metabolism", Metabolism.AVERAGE),
        kwargs.pop("years_using", 2.0),
        start,
        **kwargs,
    )


@pytest.fixture
def diazepam_plan() -> TaperPlan:
    """Diazepam 20 mg on the Ashton schedule, starting 2024-01-01."""
    return make_plan()


@pytest.fixture
def alprazolam_plan() -> TaperPlan:
    return make_plan(Medication.ALPRAZOLAM, 1.0, TaperSpeed.MODERATE)
