"""Weekly business-hours schedules - parsing and queries, no I/O.

A schedule document looks like:

    {
        "Monday": [{"from": "09:00", "to": "12:00"}, {"from": "13:00", "to": "18:00"}],
        "Tuesday": "closed",
        ...
        "holidays": ["2025-01-01"],
        "timeZone": "Asia/Taipei"
    }

All times are store-local. Ranges are half-open [from, to); "24:00" closes a
range at end of day. Ranges that wrap past midnight are rejected.
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum

from .errors import InvalidScheduleFormat
from .timezones import TimeOffset, clock_minutes, format_clock, to_local

logger = logging.getLogger(__name__)

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

# Hours offered when no usable schedule exists: 08:00 through 21:00.
DEFAULT_OPEN_HOURS = list(range(8, 22))

END_OF_DAY = 24 * 60


class Closed(Enum):
    """Sentinel for a day with no open ranges."""

    CLOSED = "closed"


CLOSED = Closed.CLOSED


@dataclass(frozen=True)
class TimeRange:
    """An open interval within one day, in minutes since midnight."""

    start: int
    end: int

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeRange":
        try:
            s = clock_minutes(start)
            e = clock_minutes(end, allow_end_of_day=True)
        except ValueError as e:
            raise InvalidScheduleFormat(str(e)) from e
        if s >= e:
            raise InvalidScheduleFormat(
                f"Range {start}-{end} is empty or wraps past midnight; split it at 24:00"
            )
        return cls(start=s, end=e)

    @property
    def from_str(self) -> str:
        return format_clock(self.start)

    @property
    def to_str(self) -> str:
        return format_clock(self.end)

    def contains(self, minute_of_day: int) -> bool:
        return self.start <= minute_of_day < self.end

    def hours(self) -> range:
        """
        Whole hours this range offers on an hourly grid.

        The hour holding `to` counts only when `to` has nonzero minutes:
        13:00-13:30 -> {13}, 13:00-14:00 -> {13}, 13:00-14:30 -> {13, 14}.
        """
        first = self.start // 60
        last_hour, last_minute = divmod(self.end, 60)
        last = last_hour if last_minute > 0 else last_hour - 1
        return range(first, min(last, 23) + 1)

    def __str__(self) -> str:
        return f"{self.from_str}-{self.to_str}"


@dataclass(frozen=True)
class OpenRanges:
    """A day's open ranges, ordered by start."""

    ranges: tuple[TimeRange, ...]

    def contains(self, minute_of_day: int) -> bool:
        return any(r.contains(minute_of_day) for r in self.ranges)


DayHours = OpenRanges | Closed


@dataclass(frozen=True)
class WeeklySchedule:
    """Parsed weekly schedule. Index `days` with date.weekday() (Monday=0)."""

    days: tuple[DayHours, ...]
    holidays: frozenset[date] = field(default_factory=frozenset)
    time_zone: str | None = None

    def hours_for(self, weekday: int | str) -> DayHours:
        return self.days[weekday_index(weekday)]

    def is_holiday(self, day: date) -> bool:
        return day in self.holidays

    def hours_on(self, day: date) -> DayHours:
        """Hours for a calendar day, honoring holidays."""
        if self.is_holiday(day):
            return CLOSED
        return self.days[day.weekday()]

    @property
    def is_empty(self) -> bool:
        """True if no weekday has any open range."""
        return all(d is CLOSED for d in self.days)


def weekday_index(weekday: int | str) -> int:
    """Accept 0-6 (Monday=0) or a weekday name."""
    if isinstance(weekday, int):
        if not 0 <= weekday <= 6:
            raise ValueError(f"Weekday out of range: {weekday}")
        return weekday
    name = weekday.strip().capitalize()
    if name not in WEEKDAYS:
        raise ValueError(f"Unknown weekday: {weekday!r}")
    return WEEKDAYS.index(name)


def _parse_day(name: str, value) -> DayHours:
    if value is None:
        return CLOSED
    if isinstance(value, str):
        if value.strip().lower() == "closed":
            return CLOSED
        raise InvalidScheduleFormat(f"{name} has invalid value {value!r}")
    if not isinstance(value, list):
        raise InvalidScheduleFormat(f"{name} must be a list of ranges or 'closed'")

    ranges = []
    for item in value:
        if not isinstance(item, Mapping):
            raise InvalidScheduleFormat(f"{name} has a non-object range: {item!r}")
        if "from" not in item:
            raise InvalidScheduleFormat(f"{name} is missing 'from' in config")
        if "to" not in item:
            raise InvalidScheduleFormat(f"{name} is missing 'to' in config")
        ranges.append(TimeRange.parse(item["from"], item["to"]))

    if not ranges:
        return CLOSED
    return OpenRanges(tuple(sorted(ranges, key=lambda r: (r.start, r.end))))


def _parse_holidays(value) -> frozenset[date]:
    if value is None:
        return frozenset()
    if not isinstance(value, list):
        raise InvalidScheduleFormat("holidays must be a list of ISO dates")
    holidays = set()
    for item in value:
        try:
            holidays.add(_parse_holiday(str(item).strip()))
        except ValueError as e:
            raise InvalidScheduleFormat(f"Invalid holiday date: {item!r}") from e
    return frozenset(holidays)


def _parse_holiday(text: str) -> date:
    """A YYYY-MM-DD date, or the date part of a full ISO-8601 timestamp."""
    try:
        return date.fromisoformat(text)
    except ValueError:
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).date()


def parse_schedule(document: str | bytes | Mapping) -> WeeklySchedule:
    """
    Parse a weekly schedule document.

    Weekdays missing from the document are closed. Raises
    InvalidScheduleFormat for undecodable JSON or malformed entries.
    """
    if isinstance(document, Mapping):
        data = document
    else:
        if not document:
            raise InvalidScheduleFormat("No hours provided")
        try:
            data = json.loads(document)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidScheduleFormat(f"Not valid JSON: {e}") from e

    if not isinstance(data, Mapping):
        raise InvalidScheduleFormat("Schedule must be a JSON object")

    days = tuple(_parse_day(name, data.get(name)) for name in WEEKDAYS)
    time_zone = data.get("timeZone")
    if time_zone is not None and not isinstance(time_zone, str):
        raise InvalidScheduleFormat("timeZone must be a string")

    return WeeklySchedule(
        days=days,
        holidays=_parse_holidays(data.get("holidays")),
        time_zone=time_zone or None,
    )


def default_schedule() -> WeeklySchedule:
    """Every day open over the default hours."""
    hours = OpenRanges(
        (TimeRange(DEFAULT_OPEN_HOURS[0] * 60, (DEFAULT_OPEN_HOURS[-1] + 1) * 60),)
    )
    return WeeklySchedule(days=(hours,) * 7)


def parse_schedule_or_default(document: str | bytes | Mapping | None, source: str = "schedule") -> WeeklySchedule:
    """
    Parse a schedule, substituting default_schedule() when it is unusable.

    Store misconfiguration must not block all bookings, so decoding errors
    are logged and replaced rather than raised.
    """
    try:
        schedule = parse_schedule(document)
    except InvalidScheduleFormat as e:
        logger.warning(f"Invalid {source}, falling back to default hours: {e}")
        return default_schedule()
    if schedule.is_empty:
        logger.warning(f"{source} has no open hours, falling back to default hours")
        return default_schedule()
    return schedule


def hours_for_weekday(schedule: WeeklySchedule, weekday: int | str) -> DayHours:
    return schedule.hours_for(weekday)


def is_open_at(schedule: WeeklySchedule, instant: datetime, offset: TimeOffset) -> bool:
    """True if the UTC instant falls inside an open range in store-local time."""
    local = to_local(instant, offset)
    hours = schedule.hours_on(local.date())
    if hours is CLOSED:
        return False
    return hours.contains(local.hour * 60 + local.minute)


def distinct_open_hours(schedule: WeeklySchedule | None, weekday: int | str | None = None) -> list[int]:
    """
    Ascending whole hours offered on an hourly slot grid.

    With a weekday, only that day's ranges count and a closed day yields [].
    Without one, the hours of every day are merged; if nothing is open (or
    there is no schedule at all) the default 8-21 grid is returned.
    """
    if weekday is not None:
        if schedule is None:
            return list(DEFAULT_OPEN_HOURS)
        hours = schedule.hours_for(weekday)
        if hours is CLOSED:
            return []
        return sorted({h for r in hours.ranges for h in r.hours()})

    if schedule is None:
        return list(DEFAULT_OPEN_HOURS)
    merged = {
        h
        for day in schedule.days
        if day is not CLOSED
        for r in day.ranges
        for h in r.hours()
    }
    return sorted(merged) or list(DEFAULT_OPEN_HOURS)


def next_opening(schedule: WeeklySchedule, after: datetime, include_current: bool = False) -> datetime | None:
    """
    Next store-local datetime at which a range opens, strictly after `after`.

    With include_current, a range already open at `after` returns `after`.
    Scans two weeks so holiday runs are skipped; None if nothing opens.
    """
    after = after.replace(second=0, microsecond=0, tzinfo=None)
    minute_now = after.hour * 60 + after.minute
    for offset_days in range(15):
        day = after.date() + timedelta(days=offset_days)
        hours = schedule.hours_on(day)
        if hours is CLOSED:
            continue
        for r in hours.ranges:
            if offset_days == 0:
                if include_current and r.contains(minute_now):
                    return after
                if r.start <= minute_now:
                    continue
            return datetime.combine(day, datetime.min.time()) + timedelta(minutes=r.start)
    return None


def select_schedule(
    use_business_hours: bool,
    rsvp_hours: str | None,
    business_hours: str | None,
    store_use_business_hours: bool = True,
) -> WeeklySchedule | None:
    """
    Pick which schedule governs reservations.

    use_business_hours selects the RSVP-specific hours; otherwise the store's
    business hours apply when the store uses them. None means unrestricted.
    """
    if use_business_hours:
        document, source = rsvp_hours, "RSVP hours"
    elif store_use_business_hours:
        document, source = business_hours, "store business hours"
    else:
        return None
    if not document:
        return None
    return parse_schedule_or_default(document, source)
