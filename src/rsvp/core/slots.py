"""Slot grid generation - pure, policy-agnostic."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from .schedule import CLOSED, DayHours, WeeklySchedule, distinct_open_hours
from .timezones import format_clock

SUNDAY = 6


@dataclass
class DaySlots:
    """One column of a week grid."""

    day: date
    slots: list[str]

    @property
    def weekday_name(self) -> str:
        return self.day.strftime("%A")


def _slots_for_hours(hours: DayHours, granularity_minutes: int) -> list[str]:
    if granularity_minutes <= 0:
        raise ValueError("Slot granularity must be positive")
    if hours is CLOSED:
        return []

    starts: set[int] = set()
    for r in hours.ranges:
        t = r.start
        while t < r.end:
            starts.add(t)
            t += granularity_minutes
    return [format_clock(m) for m in sorted(starts)]


def generate_daily_slots(schedule: WeeklySchedule, weekday: int | str, granularity_minutes: int) -> list[str]:
    """
    Slot start times for a weekday, ascending and de-duplicated.

    Each open range emits from its `from`, stepping by the granularity,
    stopping strictly before its `to`.
    """
    return _slots_for_hours(schedule.hours_for(weekday), granularity_minutes)


def generate_slots_on(schedule: WeeklySchedule, day: date, granularity_minutes: int) -> list[str]:
    """Like generate_daily_slots, for a calendar day (holidays yield [])."""
    return _slots_for_hours(schedule.hours_on(day), granularity_minutes)


def generate_week_slots(
    schedule: WeeklySchedule,
    week_start: date | datetime,
    granularity_minutes: int,
) -> list[DaySlots]:
    """Seven days of slots beginning at week_start (store-local)."""
    if isinstance(week_start, datetime):
        week_start = week_start.date()
    return [
        DaySlots(
            day=week_start + timedelta(days=i),
            slots=generate_slots_on(schedule, week_start + timedelta(days=i), granularity_minutes),
        )
        for i in range(7)
    ]


def hourly_grid(schedule: WeeklySchedule | None) -> list[str]:
    """'HH:00' labels for the merged open hours of a schedule (default 8-21)."""
    return [f"{h:02d}:00" for h in distinct_open_hours(schedule)]


def start_of_week(day: date, week_starts_on: int = SUNDAY) -> date:
    """Most recent `week_starts_on` weekday on or before `day` (Monday=0)."""
    return day - timedelta(days=(day.weekday() - week_starts_on) % 7)
