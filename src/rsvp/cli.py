"""RSVP CLI - reservation availability and rescheduling."""

import json
import logging
import sys
from datetime import date, datetime

import click

from .config import load_config
from .core.availability import ResourceKey
from .core.errors import ReservationNotFound, RsvpError
from .core.reschedule import RescheduleState
from .workflows import (
    check_availability,
    list_slots,
    open_hours,
    policy_status,
    reschedule,
    week_view,
)


def _parse_date(value: str | None) -> date:
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"Expected YYYY-MM-DD, got {value!r}")


def _parse_local(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d %H:%M")
    except ValueError:
        raise click.BadParameter(f"Expected 'YYYY-MM-DD HH:MM', got {value!r}")


@click.group()
@click.version_option(package_name="rsvp-engine")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """RSVP - reservation availability engine."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if debug else logging.WARNING,
    )


@main.command()
@click.option("--date", "-d", "target_date", default=None, help="Date (YYYY-MM-DD), defaults to today")
@click.option("--week", is_flag=True, help="Show the whole week with availability")
@click.option("--facility", default=None, help="Only this facility (with --week)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def slots(target_date: str | None, week: bool, facility: str | None, as_json: bool):
    """List bookable slot times."""
    config = load_config()
    target = _parse_date(target_date)

    if week:
        try:
            resource = ResourceKey.facility(facility) if facility else None
            days = week_view(config, target, resource=resource)
        except RsvpError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        if as_json:
            click.echo(
                json.dumps(
                    [
                        {
                            "date": d.day.isoformat(),
                            "slots": [
                                {
                                    "time": s.label,
                                    "status": s.status.value,
                                    "facilities": [f.id for f in s.facilities],
                                }
                                for s in d.slots
                            ],
                        }
                        for d in days
                    ],
                    indent=2,
                )
            )
            return

        for d in days:
            click.echo(d.day.strftime("%A, %b %d"))
            if not d.slots:
                click.echo("  Closed")
            for s in d.slots:
                marker = "✓" if s.bookable else " "
                click.echo(f"  [{marker}] {s.label} {s.status.value}")
        return

    columns = list_slots(config, target)
    if as_json:
        click.echo(json.dumps([{"date": c.day.isoformat(), "slots": c.slots} for c in columns], indent=2))
        return

    for column in columns:
        click.echo(f"{column.weekday_name}, {column.day.isoformat()}")
        if not column.slots:
            click.echo("  Closed")
        for label in column.slots:
            click.echo(f"  {label}")


@main.command()
@click.option("--date", "-d", "target_date", required=True, help="Date (YYYY-MM-DD)")
@click.option("--time", "-t", "target_time", required=True, help="Store-local time (HH:MM)")
@click.option("--facility", default=None, help="Facility id")
@click.option("--staff", default=None, help="Staff member id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def availability(target_date: str, target_time: str, facility: str | None, staff: str | None, as_json: bool):
    """Check whether a new booking would be accepted."""
    if facility and staff:
        raise click.UsageError("Use either --facility or --staff, not both")

    config = load_config()
    local_start = _parse_local(f"{target_date} {target_time}")
    try:
        result = check_availability(config, local_start, facility_id=facility, staff_id=staff)
    except RsvpError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    reason = result["reason"]
    if as_json:
        click.echo(
            json.dumps(
                {
                    "start": result["start"].isoformat(),
                    "available": reason is None,
                    "reason": reason.value if reason else None,
                    "facilities": [f.id for f in result["facilities"]],
                    "staff": [s.id for s in result["staff"]],
                },
                indent=2,
            )
        )
        return

    if reason is None:
        click.echo(f"Available: {local_start.strftime('%A, %b %d %H:%M')}")
    else:
        click.echo(f"Not available: {reason.message()}")
    if result["facilities"]:
        click.echo("Free facilities: " + ", ".join(f.name or f.id for f in result["facilities"]))
    if result["staff"]:
        click.echo("Free staff: " + ", ".join(s.name or s.id for s in result["staff"]))


@main.command("open-hours")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def open_hours_cmd(as_json: bool):
    """Show the open hours for each weekday."""
    config = load_config()
    hours = open_hours(config)

    if as_json:
        click.echo(json.dumps(hours, indent=2))
        return

    for name, day_hours in hours.items():
        text = ", ".join(f"{h:02d}:00" for h in day_hours) if day_hours else "Closed"
        click.echo(f"{name:9} {text}")


@main.command()
@click.option("--reservation", "reservation_id", required=True, help="Reservation id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def policy(reservation_id: str, as_json: bool):
    """Show what cancel/edit actions a reservation allows right now."""
    config = load_config()
    try:
        status = policy_status(config, reservation_id)
    except ReservationNotFound:
        click.echo(f"Error: Reservation {reservation_id} not found", err=True)
        sys.exit(1)
    except RsvpError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    reservation = status["reservation"]
    if as_json:
        click.echo(
            json.dumps(
                {
                    "id": reservation.id,
                    "status": reservation.status.value,
                    "start": reservation.start.isoformat(),
                    "local_start": status["local_start"].isoformat(),
                    "hours_until": round(status["hours_until"], 2),
                    "locked": status["locked"],
                    "can_mutate": status["can_mutate"],
                    "refund_eligible": status["refund_eligible"],
                },
                indent=2,
            )
        )
        return

    click.echo(f"Reservation {reservation.id} ({reservation.status.value})")
    click.echo(f"  Time: {status['local_start'].strftime('%A, %b %d %H:%M')}")
    click.echo(f"  Can change: {'yes' if status['can_mutate'] else 'no'}")
    click.echo(f"  Refund on cancel: {'yes' if status['refund_eligible'] else 'no'}")


@main.command("reschedule")
@click.argument("reservation_id")
@click.option("--to", "new_time", required=True, help="New store-local time ('YYYY-MM-DD HH:MM')")
@click.option("--yes", "assume_yes", is_flag=True, help="Accept the lockout warning without asking")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def reschedule_cmd(reservation_id: str, new_time: str, assume_yes: bool, as_json: bool):
    """Move a reservation to a new time."""
    config = load_config()
    local_start = _parse_local(new_time)

    def confirm(attempt) -> bool:
        if assume_yes:
            return True
        return click.confirm(f"{attempt.detail}. Continue?", default=False)

    try:
        attempt = reschedule(config, reservation_id, local_start, confirm)
    except ReservationNotFound:
        click.echo(f"Error: Reservation {reservation_id} not found", err=True)
        sys.exit(1)
    except RsvpError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    message = attempt.detail

    if as_json:
        click.echo(
            json.dumps(
                {
                    "id": reservation_id,
                    "state": attempt.state.name.lower(),
                    "block_reason": attempt.block_reason.value if attempt.block_reason else None,
                    "failure_reason": attempt.failure_reason.value if attempt.failure_reason else None,
                    "new_start": attempt.new_start.isoformat(),
                    "message": message,
                },
                indent=2,
            )
        )
    else:
        match attempt.state:
            case RescheduleState.COMMITTED:
                click.echo(f"Moved to {local_start.strftime('%A, %b %d %H:%M')}")
            case RescheduleState.UNCHANGED:
                click.echo("Reservation time is unchanged.")
            case _:
                click.echo(f"Not moved: {message}", err=True)

    if attempt.state in (RescheduleState.BLOCKED, RescheduleState.FAILED):
        sys.exit(1)


if __name__ == "__main__":
    main()
