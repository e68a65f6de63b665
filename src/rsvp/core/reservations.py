"""Reservation, facility and staff records as the engine sees them."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .schedule import WeeklySchedule, parse_schedule_or_default
from .timezones import as_utc, from_epoch_ms

logger = logging.getLogger(__name__)


class ReservationStatus(Enum):
    """Lifecycle status of a reservation."""

    PENDING = "pending"
    READY_TO_CONFIRM = "ready_to_confirm"
    READY = "ready"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def occupies_slot(self) -> bool:
        """Everything except a cancellation holds its slot, no-shows included."""
        return self is not ReservationStatus.CANCELLED

    @classmethod
    def parse(cls, value) -> "ReservationStatus":
        """Accept an enum value, a name in any case, or a legacy numeric code."""
        if isinstance(value, ReservationStatus):
            return value
        if isinstance(value, int) or (isinstance(value, str) and value.strip().isdigit()):
            code = int(value)
            if code not in _LEGACY_CODES:
                raise ValueError(f"Unknown reservation status code: {code}")
            return _LEGACY_CODES[code]
        key = str(value).strip().replace("-", "_")
        # CamelCase names such as "ReadyToConfirm"
        if "_" not in key and key != key.upper():
            key = "".join(f"_{c}" if c.isupper() and i else c for i, c in enumerate(key))
        key = key.lower()
        for status in cls:
            if status.value == key:
                return status
        raise ValueError(f"Unknown reservation status: {value!r}")


_LEGACY_CODES = {
    0: ReservationStatus.PENDING,
    10: ReservationStatus.READY_TO_CONFIRM,
    40: ReservationStatus.READY,
    50: ReservationStatus.COMPLETED,
    60: ReservationStatus.CANCELLED,
    70: ReservationStatus.NO_SHOW,
}


@dataclass(frozen=True)
class Facility:
    """A bookable facility (table, room, court...)."""

    id: str
    name: str = ""
    default_duration: int | None = None
    business_hours: WeeklySchedule | None = None

    @classmethod
    def from_record(cls, data: Mapping) -> "Facility":
        data = _require_mapping(data, "facility")
        hours = data.get("businessHours")
        return cls(
            id=str(data["id"]),
            name=data.get("facilityName") or data.get("name") or "",
            default_duration=_optional_int(data.get("defaultDuration")),
            business_hours=parse_schedule_or_default(hours, f"facility {data['id']} hours") if hours else None,
        )


@dataclass(frozen=True)
class StaffMember:
    """A bookable service staff member."""

    id: str
    name: str = ""
    default_duration: int | None = None
    business_hours: WeeklySchedule | None = None

    @classmethod
    def from_record(cls, data: Mapping) -> "StaffMember":
        data = _require_mapping(data, "staff member")
        hours = data.get("businessHours")
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            default_duration=_optional_int(data.get("defaultDuration")),
            business_hours=parse_schedule_or_default(hours, f"staff {data['id']} hours") if hours else None,
        )


@dataclass(frozen=True)
class Reservation:
    """
    A booking, read-only to the engine.

    `start` is an aware UTC instant. Duration is not stored: it resolves
    from the facility, then the staff member, then the store default.
    """

    id: str
    start: datetime
    status: ReservationStatus = ReservationStatus.PENDING
    facility_id: str | None = None
    staff_id: str | None = None
    facility_duration: int | None = None
    staff_duration: int | None = None
    owner_id: str | None = None
    contact: str | None = None
    version: str | None = None

    def duration_minutes(self, default_duration: int) -> int:
        return self.facility_duration or self.staff_duration or default_duration

    def end(self, default_duration: int) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes(default_duration))

    @property
    def is_active(self) -> bool:
        return self.status.occupies_slot

    @classmethod
    def from_record(cls, data: Mapping) -> "Reservation":
        """
        Build from an upstream record.

        `rsvpTime` may be epoch milliseconds or an ISO-8601 string. Raises
        ValueError/KeyError/TypeError on unusable records.
        """
        data = _require_mapping(data, "reservation")
        facility = _require_mapping(data.get("Facility") or {}, "Facility")
        staff = _require_mapping(data.get("ServiceStaff") or {}, "ServiceStaff")
        return cls(
            id=str(data["id"]),
            start=parse_instant(data["rsvpTime"]),
            status=ReservationStatus.parse(data.get("status", ReservationStatus.PENDING.value)),
            facility_id=_optional_str(data.get("facilityId")),
            staff_id=_optional_str(data.get("serviceStaffId")),
            facility_duration=_optional_int(facility.get("defaultDuration")),
            staff_duration=_optional_int(staff.get("defaultDuration")),
            owner_id=_optional_str(data.get("customerId")),
            contact=data.get("email") or data.get("phone") or None,
            version=_optional_str(data.get("updatedAt")),
        )


def parse_instant(value) -> datetime:
    """Epoch milliseconds (int or digit string), ISO-8601 string, or datetime -> UTC."""
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return from_epoch_ms(value)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return from_epoch_ms(int(text))
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def parse_reservations(records: Iterable[Mapping]) -> list[Reservation]:
    """
    Parse upstream records, skipping any that are unusable.

    One bad record must not make availability impossible to compute.
    """
    reservations = []
    for data in records:
        try:
            reservations.append(Reservation.from_record(data))
        except (ValueError, KeyError, TypeError, OverflowError) as e:
            record_id = data.get("id", "?") if isinstance(data, Mapping) else "?"
            logger.warning(f"Skipping malformed reservation {record_id!r}: {e}")
            continue
    return reservations


def _require_mapping(value, what: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise TypeError(f"{what} record must be an object, got {type(value).__name__}")
    return value


def _optional_int(value) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _optional_str(value) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
