"""iCalendar export: one all-day event at the start of every step."""

from __future__ import annotations

from datetime import date

from taperpath.dates import add_days, step_windows
from taperpath.medications import DRUGS, Medication, describe_pills
from taperpath.models import TaperPlan, TaperStep

PRODID = "-//TaperPath//Taper Planner//EN"
_FOLD_AT = 75


def _escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def _fold(line: str) -> list[str]:
    """Split a content line into 75-octet chunks (RFC 5545 §3.1)."""
    raw = line.encode("utf-8")
    if len(raw) <= _FOLD_AT:
        return [line]
    parts: list[str] = []
    limit = _FOLD_AT
    while raw:
        cut = min(limit, len(raw))
        # don't split a multi-byte character
        while cut < len(raw) and (raw[cut] & 0xC0) == 0x80:
            cut -= 1
        parts.append(raw[:cut].decode("utf-8"))
        raw = raw[cut:]
        limit = _FOLD_AT - 1  # continuation lines start with a space
    return [parts[0]] + [" " + p for p in parts[1:]]


def _ics_date(day: date) -> str:
    return day.strftime("%Y%m%d")


def _description(plan: TaperPlan, step: TaperStep) -> str:
    name = DRUGS[plan.medication].name
    lines = [f"Taper step {step.week} ({step.phase.value})", "", "Target dose:"]
    if step.schedule.diazepam_mcg > 0:
        pills = describe_pills(step.schedule.diazepam_mg, Medication.DIAZEPAM)
        lines.append(f"- Diazepam: {step.schedule.diazepam_mg:g}mg {pills}".rstrip())
    if step.schedule.original_mcg > 0:
        pills = describe_pills(step.schedule.original_mg, plan.medication)
        lines.append(f"- {name}: {step.schedule.original_mg:g}mg {pills}".rstrip())
    if step.schedule.is_zero:
        lines.append("- Jump / Freedom")
    if step.notes:
        lines.extend(["", f"Note: {step.notes}"])
    return "\n".join(lines)


def render_ics(plan: TaperPlan, *, stamp: date) -> str:
    """Render the plan as an iCalendar document with CRLF line endings."""
    dt_stamp = f"{_ics_date(stamp)}T000000Z"
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
    ]
    for window in step_windows(plan):
        step = window.step
        summary = f"Taper: Week {step.week} ({step.schedule.diazepam_mg:g}mg Diazepam)"
        lines.extend([
            "BEGIN:VEVENT",
            f"UID:{step.id}-{dt_stamp}-taperpath",
            f"DTSTAMP:{dt_stamp}",
            f"DTSTART;VALUE=DATE:{_ics_date(window.first_day)}",
            f"DTEND;VALUE=DATE:{_ics_date(add_days(window.first_day, 1))}",
            f"SUMMARY:{_escape(summary)}",
            f"DESCRIPTION:{_escape(_description(plan, step))}",
            "STATUS:CONFIRMED",
            "TRANSP:TRANSPARENT",
            "END:VEVENT",
        ])
    lines.append("END:VCALENDAR")

    folded = [part for line in lines for part in _fold(line)]
    return "\r\n".join(folded) + "\r\n"
