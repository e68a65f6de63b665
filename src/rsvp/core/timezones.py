"""Fixed-offset conversion between UTC instants and store wall-clock time.

No DST is modeled: each identifier maps to one static offset for the life of
the process. Local times are naive datetimes; instants are aware UTC datetimes.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from .errors import UnknownTimezone

logger = logging.getLogger(__name__)

_CLOCK_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")
_OFFSET_PATTERN = re.compile(r"^([+-])(\d{1,2})(?::?(\d{2}))?$")


@dataclass(frozen=True)
class TimeOffset:
    """A store's fixed UTC offset, in whole minutes."""

    minutes: int

    @classmethod
    def from_hours(cls, hours: float) -> "TimeOffset":
        return cls(int(round(hours * 60)))

    @classmethod
    def parse(cls, text: str) -> "TimeOffset":
        """Parse '+8', '-05:00' or '+0530'."""
        match = _OFFSET_PATTERN.match(text.strip())
        if not match:
            raise ValueError(f"Invalid UTC offset: {text!r}")
        sign = -1 if match.group(1) == "-" else 1
        hours = int(match.group(2))
        minutes = int(match.group(3) or 0)
        if hours > 14 or minutes > 59:
            raise ValueError(f"UTC offset out of range: {text!r}")
        return cls(sign * (hours * 60 + minutes))

    @property
    def hours(self) -> float:
        return self.minutes / 60

    @property
    def delta(self) -> timedelta:
        return timedelta(minutes=self.minutes)

    def __str__(self) -> str:
        sign = "-" if self.minutes < 0 else "+"
        h, m = divmod(abs(self.minutes), 60)
        return f"{sign}{h:02d}:{m:02d}"


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
UTC_OFFSET = TimeOffset(0)

# Unknown identifiers resolve here (see resolve_offset).
DEFAULT_OFFSET = UTC_OFFSET

# Standard (non-DST) offsets, in minutes.
OFFSET_TABLE: dict[str, int] = {
    "UTC": 0,
    "Etc/UTC": 0,
    "GMT": 0,
    "Europe/London": 0,
    "Europe/Lisbon": 0,
    "Europe/Paris": 60,
    "Europe/Berlin": 60,
    "Europe/Madrid": 60,
    "Europe/Rome": 60,
    "Europe/Amsterdam": 60,
    "Europe/Athens": 120,
    "Europe/Moscow": 180,
    "Asia/Dubai": 240,
    "Asia/Kolkata": 330,
    "Asia/Bangkok": 420,
    "Asia/Ho_Chi_Minh": 420,
    "Asia/Jakarta": 420,
    "Asia/Taipei": 480,
    "Asia/Shanghai": 480,
    "Asia/Hong_Kong": 480,
    "Asia/Singapore": 480,
    "Asia/Manila": 480,
    "Australia/Perth": 480,
    "Asia/Tokyo": 540,
    "Asia/Seoul": 540,
    "Australia/Brisbane": 600,
    "Australia/Sydney": 600,
    "Pacific/Auckland": 720,
    "America/Sao_Paulo": -180,
    "America/Halifax": -240,
    "America/New_York": -300,
    "America/Toronto": -300,
    "America/Chicago": -360,
    "America/Mexico_City": -360,
    "America/Denver": -420,
    "America/Phoenix": -420,
    "America/Los_Angeles": -480,
    "America/Vancouver": -480,
    "America/Anchorage": -540,
    "Pacific/Honolulu": -600,
}


def offset_for(timezone_id: str, extra: Mapping[str, TimeOffset] | None = None) -> TimeOffset:
    """
    Look up the fixed offset for a timezone identifier.

    Built-in entries always win over `extra` so a given identifier never
    changes offset. Raises UnknownTimezone if neither knows the identifier.
    """
    name = (timezone_id or "").strip()
    if name in OFFSET_TABLE:
        return TimeOffset(OFFSET_TABLE[name])
    if extra and name in extra:
        return extra[name]
    raise UnknownTimezone(name)


def resolve_offset(timezone_id: str, extra: Mapping[str, TimeOffset] | None = None) -> TimeOffset:
    """Like offset_for, but unknown identifiers log a warning and resolve to UTC."""
    try:
        return offset_for(timezone_id, extra)
    except UnknownTimezone:
        logger.warning(f"Unknown timezone {timezone_id!r}, using UTC{DEFAULT_OFFSET}")
        return DEFAULT_OFFSET


def as_utc(instant: datetime) -> datetime:
    """Normalize an instant to aware UTC. Naive values are taken to already be UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_local(instant: datetime, offset: TimeOffset) -> datetime:
    """UTC instant -> naive store wall-clock time."""
    return as_utc(instant).replace(tzinfo=None) + offset.delta


def to_utc(local: datetime, offset: TimeOffset) -> datetime:
    """Naive store wall-clock time -> aware UTC instant. Inverse of to_local."""
    return (local.replace(tzinfo=None) - offset.delta).replace(tzinfo=timezone.utc)


def clock_minutes(text: str, allow_end_of_day: bool = False) -> int:
    """
    Parse 'HH:MM' into minutes since midnight.

    '24:00' is accepted only when allow_end_of_day is set (it closes a range).
    """
    match = _CLOCK_PATTERN.match(text.strip()) if isinstance(text, str) else None
    if not match:
        raise ValueError(f"Invalid time of day: {text!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if minute > 59:
        raise ValueError(f"Invalid time of day: {text!r}")
    if hour == 24 and minute == 0 and allow_end_of_day:
        return 24 * 60
    if hour > 23:
        raise ValueError(f"Invalid time of day: {text!r}")
    return hour * 60 + minute


def format_clock(minutes: int) -> str:
    """Minutes since midnight -> 'HH:MM'."""
    h, m = divmod(minutes, 60)
    return f"{h:02d}:{m:02d}"


def combine_day_and_slot(day: date, slot: str, offset: TimeOffset) -> datetime:
    """Store-local calendar day + 'HH:MM' -> UTC instant."""
    local = datetime.combine(day, time(0, 0)) + timedelta(minutes=clock_minutes(slot))
    return to_utc(local, offset)


def from_epoch_ms(value: int | float | str) -> datetime:
    """Epoch milliseconds -> aware UTC datetime."""
    return EPOCH + timedelta(milliseconds=int(value))


def to_epoch_ms(instant: datetime) -> int:
    return (as_utc(instant) - EPOCH) // timedelta(milliseconds=1)
