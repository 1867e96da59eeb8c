"""CLI interface for the TaperPath planner."""

from __future__ import annotations

import sys
from datetime import date, datetime
from pathlib import Path

import click
from pydantic import ValidationError

from taperpath.config import Config
from taperpath.dates import format_iso, parse_local_date, step_windows
from taperpath.errors import TaperError
from taperpath.generator import generate_plan
from taperpath.ics import render_ics
from taperpath.journal import DailyLogEntry, upsert_entry
from taperpath.logging import setup_logging
from taperpath.medications import DRUGS, Medication, describe_pills, diazepam_equivalent
from taperpath.models import Metabolism, MissedDay, TaperPlan, TaperSpeed
from taperpath.plan_ops import extend_step, toggle_day
from taperpath.progress import plan_progress
from taperpath.reconcile import check_attempt, find_missed, mark_taken, reschedule
from taperpath.reminders import UserProfile, reminder_due
from taperpath.storage import PlanStore


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


class LocalDate(click.ParamType):
    """A calendar day given as YYYY-MM-DD, read without any timezone shift."""

    name = "date"

    def convert(self, value, param, ctx):
        if isinstance(value, date):
            return value
        try:
            return parse_local_date(value)
        except ValueError as exc:
            self.fail(str(exc), param, ctx)


LOCAL_DATE = LocalDate()


def _today(value: date | None) -> date:
    return value or date.today()


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(p) for p in error["loc"])
        parts.append(f"{field}: {error['msg']}" if field else error["msg"])
    return "; ".join(parts)


def _require_plan(store: PlanStore) -> TaperPlan:
    plan = store.load_plan()
    if plan is None:
        _fail("No active plan. Run `taperpath generate` first.")
    return plan


def _echo_missed(missed: list[MissedDay] | tuple[MissedDay, ...]) -> None:
    for day in missed:
        click.echo(f"  {format_iso(day.date)}  {day.step_id} day {day.day_index + 1} (week {day.step_week})")


today_option = click.option("--today", type=LOCAL_DATE, help="Override today's date (YYYY-MM-DD).")


class _Group(click.Group):
    """Turn expected taper errors into a one-line message and exit code 1."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except (TaperError, IndexError) as exc:
            _fail(str(exc))
        except ValidationError as exc:
            _fail(_validation_message(exc))


@click.group(cls=_Group)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding plan.json, logs.json and profile.json.",
)
@click.pass_context
def main(ctx: click.Context, data_dir: Path | None):
    """Benzodiazepine taper planner and daily check-in tracker."""
    config = Config.from_env()
    setup_logging(config)
    ctx.obj = PlanStore(data_dir or config.data_dir)


@main.command()
@click.option(
    "--medication", "-m", required=True,
    type=click.Choice([m.name.lower() for m in Medication], case_sensitive=False),
    help="Current medication.",
)
@click.option("--dose", type=float, required=True, help="Current total daily dose in mg.")
@click.option(
    "--speed",
    type=click.Choice([s.value for s in TaperSpeed], case_sensitive=False),
    default=TaperSpeed.ASHTON.value, show_default=True,
)
@click.option("--age", type=int, default=40, show_default=True)
@click.option(
    "--metabolism",
    type=click.Choice([m.value for m in Metabolism], case_sensitive=False),
    default=Metabolism.AVERAGE.value, show_default=True,
)
@click.option("--years", "years_using", type=float, default=1.0, show_default=True, help="Years of use.")
@click.option("--start", type=LOCAL_DATE, help="Start date (YYYY-MM-DD), default today.")
@click.option("--target", type=LOCAL_DATE, help="Target end date for the custom speed.")
@click.option("--force", is_flag=True, help="Replace an existing plan.")
@click.pass_obj
def generate(
    store: PlanStore,
    medication: str,
    dose: float,
    speed: str,
    age: int,
    metabolism: str,
    years_using: float,
    start: date | None,
    target: date | None,
    force: bool,
):
    """Generate a new taper plan and make it the active plan."""
    if store.load_plan() is not None and not force:
        _fail("A plan already exists. Use --force to replace it.")

    plan = generate_plan(
        Medication.parse(medication),
        dose,
        TaperSpeed(speed.lower()),
        age,
        Metabolism(metabolism.lower()),
        years_using,
        _today(start),
        target,
    )
    store.save_plan(plan)

    last_day = step_windows(plan)[-1].last_day
    click.echo(
        f"Generated {len(plan.steps)} steps over {plan.total_days} days "
        f"({format_iso(plan.start_date)} to {format_iso(last_day)})."
    )


@main.command()
@click.pass_obj
def show(store: PlanStore):
    """Show the active plan step by step."""
    plan = _require_plan(store)
    name = DRUGS[plan.medication].name
    progress = plan_progress(plan)

    click.echo(f"{plan.medication.value}, {plan.start_dose_mg:g} mg/day, {plan.speed.label}")
    click.echo(
        f"Progress: {progress.completed_steps}/{progress.total_steps} steps ({progress.percent}%), "
        f"{progress.days_remaining} days remaining"
    )
    click.echo()
    for window in step_windows(plan):
        step = window.step
        done = sum(1 for d in step.completed_days if d)
        pills = describe_pills(step.schedule.diazepam_mg, Medication.DIAZEPAM)
        doses = [f"Diazepam {step.schedule.diazepam_mg:g}mg {pills}".rstrip()]
        if step.schedule.original_mcg:
            pills = describe_pills(step.schedule.original_mg, plan.medication)
            doses.insert(0, f"{name} {step.schedule.original_mg:g}mg {pills}".rstrip())
        marker = "x" if step.is_completed else " "
        click.echo(
            f"[{marker}] {step.id:>8}  wk {step.week:<3} {step.phase.value:<9} "
            f"{format_iso(window.first_day)}..{format_iso(window.last_day)}  "
            f"{done}/{step.duration_days}  {' + '.join(doses)}"
        )
        if step.notes:
            click.echo(f"             {step.notes}")


@main.command()
@today_option
@click.pass_obj
def check(store: PlanStore, today: date | None):
    """List elapsed days that were never marked."""
    plan = _require_plan(store)
    missed = find_missed(plan, _today(today))
    if not missed:
        click.echo("All caught up.")
        return
    click.echo(f"{len(missed)} missed day(s):")
    _echo_missed(missed)
    click.echo("Resolve with `taperpath mark-taken` or `taperpath reschedule`.")


@main.command("mark-taken")
@today_option
@click.pass_obj
def mark_taken_cmd(store: PlanStore, today: date | None):
    """Backfill: record every missed day as taken."""
    plan = _require_plan(store)
    missed = find_missed(plan, _today(today))
    store.save_plan(mark_taken(plan, missed))
    click.echo(f"Marked {len(missed)} day(s) as taken.")


@main.command("reschedule")
@today_option
@click.pass_obj
def reschedule_cmd(store: PlanStore, today: date | None):
    """Shift the plan so the first missed day becomes today."""
    plan = _require_plan(store)
    today = _today(today)
    updated = reschedule(plan, find_missed(plan, today), today)
    store.save_plan(updated)
    if updated.start_date == plan.start_date:
        click.echo("Nothing to reschedule.")
    else:
        click.echo(f"Start date moved from {format_iso(plan.start_date)} to {format_iso(updated.start_date)}.")


@main.command()
@click.argument("step_id")
@click.argument("day", type=click.IntRange(min=1))
@click.option("--early", is_flag=True, help="Confirm completing the next due day ahead of schedule.")
@today_option
@click.pass_obj
def toggle(store: PlanStore, step_id: str, day: int, early: bool, today: date | None):
    """Mark or unmark DAY (1-based) of STEP_ID."""
    plan = _require_plan(store)
    step = plan.step(step_id)
    if day > step.duration_days:
        _fail(f"{step_id} has {step.duration_days} days, there is no day {day}.")
    attempt = check_attempt(plan, step_id, day - 1, _today(today))

    if attempt.allowed:
        store.save_plan(toggle_day(plan, step_id, day - 1))
        click.echo(f"Toggled {step_id} day {day}.")
        return

    if not attempt.synthesized:
        click.echo("There are missed days to resolve first:", err=True)
        _echo_missed(attempt.pending)
        click.echo("Run `taperpath mark-taken` or `taperpath reschedule`.", err=True)
        sys.exit(1)

    if not early:
        click.echo("That day is not next. The next due day is:", err=True)
        _echo_missed(attempt.pending)
        click.echo("Re-run with --early to mark it complete now.", err=True)
        sys.exit(1)

    store.save_plan(mark_taken(plan, attempt.pending))
    due = attempt.pending[0]
    click.echo(f"Marked {due.step_id} day {due.day_index + 1} complete early.")


@main.command()
@click.argument("step_id")
@click.pass_obj
def extend(store: PlanStore, step_id: str):
    """Hold STEP_ID one more day."""
    plan = _require_plan(store)
    updated = extend_step(plan, step_id)
    store.save_plan(updated)
    click.echo(f"{step_id} now lasts {updated.step(step_id).duration_days} days.")


@main.command("export-ics")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), required=True)
@today_option
@click.pass_obj
def export_ics(store: PlanStore, output: Path, today: date | None):
    """Write the plan as an .ics calendar file."""
    plan = _require_plan(store)
    output.write_text(render_ics(plan, stamp=_today(today)), newline="")
    click.echo(f"Wrote {len(plan.steps)} events to {output}")


@main.command()
@click.argument("dose", type=float)
@click.option(
    "--medication", "-m", required=True,
    type=click.Choice([m.name.lower() for m in Medication], case_sensitive=False),
)
def convert(dose: float, medication: str):
    """Convert DOSE mg of a medication to its diazepam equivalent."""
    med = Medication.parse(medication)
    click.echo(f"{dose:g} mg {DRUGS[med].name} ~= {diazepam_equivalent(dose, med):g} mg Diazepam")


@main.command("list-medications")
def list_medications():
    """List supported medications."""
    for med, info in DRUGS.items():
        click.echo(f"{med.name.lower()}:")
        click.echo(f"  Name: {med.value}")
        click.echo(f"  Half-life: {info.half_life}")
        click.echo(f"  1 mg = {float(info.diazepam_equivalence):g} mg Diazepam")
        click.echo(f"  Smallest split: {info.increment_mcg / 1000:g} mg")
        click.echo()


@main.command()
@click.option("--date", "entry_date", type=LOCAL_DATE, help="Entry date (YYYY-MM-DD), default today.")
@click.option("--stress", type=click.IntRange(0, 10), default=0)
@click.option("--tremors", type=click.IntRange(0, 10), default=0)
@click.option("--dizziness", type=click.IntRange(0, 10), default=0)
@click.option("--sleep-quality", type=click.IntRange(0, 10), default=0)
@click.option("--sleep-hours", type=click.FloatRange(0, 24), default=0.0)
@click.option("--notes", type=str, default="")
@click.pass_obj
def journal(
    store: PlanStore,
    entry_date: date | None,
    stress: int,
    tremors: int,
    dizziness: int,
    sleep_quality: int,
    sleep_hours: float,
    notes: str,
):
    """Record (or replace) the journal entry for a day."""
    entry = DailyLogEntry(
        date=_today(entry_date),
        stress=stress,
        tremors=tremors,
        dizziness=dizziness,
        sleep_quality=sleep_quality,
        sleep_hours=sleep_hours,
        notes=notes,
    )
    entries = upsert_entry(store.load_logs(), entry)
    store.save_logs(entries)
    click.echo(f"Saved journal entry for {format_iso(entry.date)} ({len(entries)} total).")


@main.command()
@click.option("--at", "at_time", help="Enable the daily check-in reminder at HH:MM (24h).")
@click.option("--off", is_flag=True, help="Disable the reminder.")
@click.option(
    "--now",
    type=click.DateTime(formats=["%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M"]),
    help="Override the current time.",
)
@click.pass_obj
def remind(store: PlanStore, at_time: str | None, off: bool, now: datetime | None):
    """Set up the daily reminder, or report whether one is due right now.

    Delivering the notification is left to whatever runs this command
    (cron, a desktop notifier); a due reminder is reported once per day.
    """
    profile = store.load_profile()

    if off or at_time:
        changes = {"notifications_enabled": not off}
        if at_time:
            changes["notification_time"] = at_time
        profile = UserProfile.model_validate({**profile.model_dump(), **changes})
        store.save_profile(profile)
        if profile.notifications_enabled:
            click.echo(f"Daily reminder set for {profile.notification_time}.")
        else:
            click.echo("Daily reminder disabled.")
        return

    now = now or datetime.now()
    if reminder_due(profile, now, profile.last_reminded_on):
        store.save_profile(profile.model_copy(update={"last_reminded_on": now.date()}))
        click.echo("Reminder: time for today's check-in. Run `taperpath journal`.")
    else:
        click.echo("No reminder due.")
