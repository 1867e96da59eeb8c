"""Medication library: six benzodiazepines with equivalence and pill metadata.

All dose arithmetic inside the core works on integer micrograms. Amounts
that are not yet rounded to a pill fraction are exact ``Fraction``
micrograms, so no float drift ever reaches a persisted step.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction


class Medication(str, Enum):
    ALPRAZOLAM = "Alprazolam (Xanax)"
    CLONAZEPAM = "Clonazepam (Klonopin)"
    DIAZEPAM = "Diazepam (Valium)"
    LORAZEPAM = "Lorazepam (Ativan)"
    TEMAZEPAM = "Temazepam (Restoril)"
    CHLORDIAZEPOXIDE = "Chlordiazepoxide (Librium)"

    @classmethod
    def parse(cls, value: str) -> Medication:
        """Accept the display value, the member name, or the short drug name."""
        cleaned = value.strip()
        for member in cls:
            if cleaned == member.value:
                return member
        key = cleaned.split("(")[0].strip().upper()
        try:
            return cls[key]
        except KeyError:
            allowed = ", ".join(m.name.lower() for m in cls)
            raise ValueError(f"unknown medication {value!r} (expected one of: {allowed})") from None


@dataclass(frozen=True)
class DrugInfo:
    name: str
    half_life: str
    diazepam_equivalence: Fraction  # 1 mg of this drug = X mg diazepam
    increment_mcg: int  # smallest practical split of the common tablet/capsule
    unit_size_mg: float  # standard tablet/capsule strength, for pill descriptions
    unit: str  # "tab" or "cap"


# Approximate equivalents to 10 mg diazepam according to Ashton.
DRUGS: dict[Medication, DrugInfo] = {
    Medication.ALPRAZOLAM: DrugInfo(
        name="Alprazolam",
        half_life="6-12 hrs",
        diazepam_equivalence=Fraction(20),
        increment_mcg=125,  # 1/4 of a 0.5 mg tab
        unit_size_mg=0.5,
        unit="tab",
    ),
    Medication.CLONAZEPAM: DrugInfo(
        name="Clonazepam",
        half_life="18-50 hrs",
        diazepam_equivalence=Fraction(20),
        increment_mcg=125,
        unit_size_mg=0.5,
        unit="tab",
    ),
    Medication.DIAZEPAM: DrugInfo(
        name="Diazepam",
        half_life="20-100 hrs",
        diazepam_equivalence=Fraction(1),
        increment_mcg=500,  # 1/4 of a 2 mg tab
        unit_size_mg=2,
        unit="tab",
    ),
    Medication.LORAZEPAM: DrugInfo(
        name="Lorazepam",
        half_life="10-20 hrs",
        diazepam_equivalence=Fraction(10),
        increment_mcg=250,
        unit_size_mg=1,
        unit="tab",
    ),
    Medication.TEMAZEPAM: DrugInfo(
        name="Temazepam",
        half_life="8-22 hrs",
        diazepam_equivalence=Fraction(1, 2),
        increment_mcg=5000,
        unit_size_mg=15,
        unit="cap",
    ),
    Medication.CHLORDIAZEPOXIDE: DrugInfo(
        name="Chlordiazepoxide",
        half_life="5-30 hrs",
        diazepam_equivalence=Fraction(2, 5),
        increment_mcg=1250,  # half of a halved 5 mg capsule
        unit_size_mg=5,
        unit="cap",
    ),
}


def mg_to_mcg(value: float | int | str | Fraction) -> Fraction:
    """Exact micrograms for a milligram amount given at the boundary.

    Floats go through their shortest decimal repr, so 0.1 mg is exactly
    100 mcg rather than 100.00000000000000555.
    """
    if isinstance(value, Fraction):
        return value * 1000
    return Fraction(str(value)) * 1000


def mcg_to_mg(value: int | Fraction) -> float:
    return round(float(Fraction(value) / 1000), 3)


def round_mcg(amount_mcg: int | Fraction, medication: Medication) -> int:
    """Round to the nearest pill-fraction increment for ``medication``.

    Halves round up. Non-positive amounts round to 0.
    """
    amount = Fraction(amount_mcg)
    if amount <= 0:
        return 0
    increment = DRUGS[medication].increment_mcg
    return math.floor(amount / increment + Fraction(1, 2)) * increment


def round_to_pill_size(dose_mg: float, medication: Medication) -> float:
    """Milligram form of :func:`round_mcg` for callers outside the core."""
    return mcg_to_mg(round_mcg(mg_to_mcg(dose_mg), medication))


def to_diazepam_mcg(amount_mcg: int | Fraction, medication: Medication) -> Fraction:
    return Fraction(amount_mcg) * DRUGS[medication].diazepam_equivalence


def diazepam_equivalent(dose_mg: float, medication: Medication) -> float:
    """Equivalent diazepam mg for a dose of ``medication``."""
    return mcg_to_mg(to_diazepam_mcg(mg_to_mcg(dose_mg), medication))


_FRACTION_LABELS = {
    Fraction(1, 2): "1/2",
    Fraction(1, 4): "1/4",
    Fraction(1, 8): "1/8",
}


def describe_pills(dose_mg: float, medication: Medication) -> str:
    """Describe a dose in physical tablets, e.g. ``(1/2 of 2mg tab)``."""
    if dose_mg <= 0:
        return ""
    info = DRUGS[medication]
    ratio = round(dose_mg / info.unit_size_mg, 3)
    size = f"{info.unit_size_mg:g}mg {info.unit}"

    if ratio == 1:
        return f"(1 full {size})"
    label = _FRACTION_LABELS.get(Fraction(str(ratio)))
    if label:
        return f"({label} of {size})"
    plural = "s" if ratio > 1 else ""
    return f"({ratio:g} x {size}{plural})"
