"""Booking conflict resolution - pure interval arithmetic, no clock reads."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .policy import PolicyConfig
from .reservations import Facility, Reservation, StaffMember
from .schedule import is_open_at
from .timezones import TimeOffset, as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Interval:
    """A half-open time interval [start, end)."""

    start: datetime
    end: datetime

    @classmethod
    def of(cls, start: datetime, duration_minutes: int) -> "Interval":
        start = as_utc(start)
        return cls(start=start, end=start + timedelta(minutes=duration_minutes))

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "Interval") -> bool:
        """Touching endpoints do not overlap."""
        return self.start < other.end and other.start < self.end


def conflicts(a: Interval, b: Interval) -> bool:
    return a.overlaps(b)


class BookingMode(Enum):
    """Whether one booking blocks the whole store or just its resource."""

    PER_RESOURCE = "per_resource"
    SINGLE_SERVICE = "single_service"

    @classmethod
    def for_policy(cls, policy: PolicyConfig) -> "BookingMode":
        return cls.SINGLE_SERVICE if policy.single_service_mode else cls.PER_RESOURCE


class ResourceKind(Enum):
    FACILITY = "facility"
    STAFF = "staff"
    STORE = "store"


@dataclass(frozen=True)
class ResourceKey:
    """What a booking occupies: one facility, one staff member, or the whole store."""

    kind: ResourceKind
    id: str | None = None

    @classmethod
    def facility(cls, facility_id: str) -> "ResourceKey":
        return cls(ResourceKind.FACILITY, facility_id)

    @classmethod
    def staff(cls, staff_id: str) -> "ResourceKey":
        return cls(ResourceKind.STAFF, staff_id)

    @classmethod
    def store(cls) -> "ResourceKey":
        return cls(ResourceKind.STORE)

    @classmethod
    def for_reservation(cls, reservation: Reservation) -> "ResourceKey":
        if reservation.facility_id:
            return cls.facility(reservation.facility_id)
        if reservation.staff_id:
            return cls.staff(reservation.staff_id)
        return cls.store()

    def matches(self, reservation: Reservation) -> bool:
        match self.kind:
            case ResourceKind.FACILITY:
                return reservation.facility_id == self.id
            case ResourceKind.STAFF:
                return reservation.staff_id == self.id
            case ResourceKind.STORE:
                return True

    def __str__(self) -> str:
        if self.kind is ResourceKind.STORE:
            return "store"
        return f"{self.kind.value}:{self.id}"


STORE_WIDE = ResourceKey.store()


def _reservation_interval(reservation: Reservation, default_duration: int) -> Interval | None:
    try:
        return Interval.of(reservation.start, reservation.duration_minutes(default_duration))
    except (AttributeError, TypeError, ValueError, OverflowError) as e:
        logger.debug(f"Ignoring reservation {reservation.id!r} with unusable time: {e}")
        return None


def conflicting_reservations(
    candidate_start: datetime,
    candidate_duration_minutes: int,
    resource: ResourceKey,
    reservations: Iterable[Reservation],
    mode: BookingMode = BookingMode.PER_RESOURCE,
    default_duration: int = 60,
    exclude_id: str | None = None,
) -> list[Reservation]:
    """
    Active reservations whose interval overlaps the candidate.

    In single-service mode every reservation in the store counts, whatever
    its facility or staff. Cancelled reservations never count.
    """
    candidate = Interval.of(candidate_start, candidate_duration_minutes)
    key = STORE_WIDE if mode is BookingMode.SINGLE_SERVICE else resource

    found = []
    for r in reservations:
        if exclude_id is not None and r.id == exclude_id:
            continue
        if not r.is_active or not key.matches(r):
            continue
        interval = _reservation_interval(r, default_duration)
        if interval is not None and interval.overlaps(candidate):
            found.append(r)
    return found


def is_slot_available(
    candidate_start: datetime,
    candidate_duration_minutes: int,
    resource: ResourceKey,
    reservations: Iterable[Reservation],
    mode: BookingMode = BookingMode.PER_RESOURCE,
    default_duration: int = 60,
    exclude_id: str | None = None,
) -> bool:
    return not conflicting_reservations(
        candidate_start,
        candidate_duration_minutes,
        resource,
        reservations,
        mode,
        default_duration,
        exclude_id,
    )


def _admits(hours_owner: Facility | StaffMember, instant: datetime, offset: TimeOffset) -> bool:
    """A facility or staff member without its own hours is always available."""
    if hours_owner.business_hours is None:
        return True
    return is_open_at(hours_owner.business_hours, instant, offset)


def facilities_available_at(
    candidate_start: datetime,
    facilities: Iterable[Facility],
    reservations: Iterable[Reservation],
    policy: PolicyConfig,
    offset: TimeOffset,
    exclude_id: str | None = None,
) -> list[Facility]:
    """
    Facilities that are open at candidate_start and free for their duration.

    In single-service mode the answer is all open facilities or none.
    """
    reservations = list(reservations)
    open_facilities = [f for f in facilities if _admits(f, candidate_start, offset)]

    if policy.single_service_mode:
        occupied = conflicting_reservations(
            candidate_start,
            policy.default_duration,
            STORE_WIDE,
            reservations,
            BookingMode.SINGLE_SERVICE,
            policy.default_duration,
            exclude_id,
        )
        return [] if occupied else open_facilities

    return [
        f
        for f in open_facilities
        if is_slot_available(
            candidate_start,
            f.default_duration or policy.default_duration,
            ResourceKey.facility(f.id),
            reservations,
            BookingMode.PER_RESOURCE,
            policy.default_duration,
            exclude_id,
        )
    ]


def staff_available_at(
    candidate_start: datetime,
    staff: Iterable[StaffMember],
    reservations: Iterable[Reservation],
    policy: PolicyConfig,
    offset: TimeOffset,
    exclude_id: str | None = None,
) -> list[StaffMember]:
    """Staff counterpart of facilities_available_at."""
    reservations = list(reservations)
    mode = BookingMode.for_policy(policy)
    return [
        s
        for s in staff
        if _admits(s, candidate_start, offset)
        and is_slot_available(
            candidate_start,
            s.default_duration or policy.default_duration,
            ResourceKey.staff(s.id),
            reservations,
            mode,
            policy.default_duration,
            exclude_id,
        )
    ]


def find_overlaps(reservations: Iterable[Reservation], default_duration: int = 60) -> list[tuple[Reservation, Reservation]]:
    """
    Pairs of active reservations on the same facility or staff member that overlap.

    Used to audit a reservation list for double bookings.
    """
    active = sorted((r for r in reservations if r.is_active), key=lambda r: as_utc(r.start))
    pairs = []
    for i, r1 in enumerate(active):
        i1 = _reservation_interval(r1, default_duration)
        if i1 is None:
            continue
        for r2 in active[i + 1 :]:
            i2 = _reservation_interval(r2, default_duration)
            if i2 is None:
                continue
            # r2 starts after r1 ends - no more overlaps possible
            if i2.start >= i1.end:
                break
            same_facility = r1.facility_id is not None and r1.facility_id == r2.facility_id
            same_staff = r1.staff_id is not None and r1.staff_id == r2.staff_id
            if same_facility or same_staff:
                pairs.append((r1, r2))
    return pairs
