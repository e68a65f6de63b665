"""Booking checks and slot annotation - composes hours, conflicts and policy."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum

from .availability import (
    BookingMode,
    ResourceKey,
    ResourceKind,
    STORE_WIDE,
    conflicting_reservations,
    facilities_available_at,
)
from .errors import BlockReason
from .policy import PolicyConfig, check_advance_window, hours_until
from .reservations import Facility, Reservation, StaffMember
from .schedule import WeeklySchedule, is_open_at
from .slots import generate_week_slots, hourly_grid
from .timezones import TimeOffset, combine_day_and_slot


@dataclass(frozen=True)
class BookingContext:
    """
    Everything needed to judge a destination time, fetched by the caller.

    `schedule` is the store-level schedule (None means unrestricted); facility
    and staff hours come from the Facility/StaffMember objects themselves.
    """

    policy: PolicyConfig
    offset: TimeOffset
    reservations: tuple[Reservation, ...] = ()
    schedule: WeeklySchedule | None = None
    facilities: tuple[Facility, ...] = ()
    staff: tuple[StaffMember, ...] = ()

    def facility(self, facility_id: str | None) -> Facility | None:
        return next((f for f in self.facilities if f.id == facility_id), None)

    def staff_member(self, staff_id: str | None) -> StaffMember | None:
        return next((s for s in self.staff if s.id == staff_id), None)


def resource_keys(facility_id: str | None, staff_id: str | None, policy: PolicyConfig) -> list[ResourceKey]:
    """Resources a booking occupies. Single-service mode collapses to the store."""
    if policy.single_service_mode:
        return [STORE_WIDE]
    keys = []
    if facility_id:
        keys.append(ResourceKey.facility(facility_id))
    if staff_id:
        keys.append(ResourceKey.staff(staff_id))
    return keys or [STORE_WIDE]


def booking_duration(facility: Facility | None, staff: StaffMember | None, policy: PolicyConfig) -> int:
    """Facility duration, else staff duration, else the store default."""
    if facility and facility.default_duration:
        return facility.default_duration
    if staff and staff.default_duration:
        return staff.default_duration
    return policy.default_duration


def check_destination(
    start: datetime,
    ctx: BookingContext,
    facility_id: str | None = None,
    staff_id: str | None = None,
    duration_minutes: int | None = None,
    exclude_id: str | None = None,
) -> BlockReason | None:
    """Business hours (store, facility, staff) then conflicts at `start`."""
    if ctx.schedule is not None and not is_open_at(ctx.schedule, start, ctx.offset):
        return BlockReason.OUTSIDE_BUSINESS_HOURS

    facility = ctx.facility(facility_id)
    staff = ctx.staff_member(staff_id)
    for owner in (facility, staff):
        if owner is not None and owner.business_hours is not None:
            if not is_open_at(owner.business_hours, start, ctx.offset):
                return BlockReason.OUTSIDE_BUSINESS_HOURS

    duration = duration_minutes or booking_duration(facility, staff, ctx.policy)
    mode = BookingMode.for_policy(ctx.policy)
    for key in resource_keys(facility_id, staff_id, ctx.policy):
        if conflicting_reservations(
            start,
            duration,
            key,
            ctx.reservations,
            mode,
            ctx.policy.default_duration,
            exclude_id,
        ):
            return BlockReason.SLOT_CONFLICT
    return None


def check_new_booking(
    start: datetime,
    ctx: BookingContext,
    now: datetime,
    facility_id: str | None = None,
    staff_id: str | None = None,
) -> BlockReason | None:
    """Server-side check for creating a reservation: advance window, hours, conflicts."""
    reason = check_advance_window(start, ctx.policy, now)
    if reason is not None:
        return reason
    return check_destination(start, ctx, facility_id, staff_id)


class SlotStatus(Enum):
    AVAILABLE = "available"
    PAST = "past"
    TOO_FAR = "too_far"
    BOOKED = "booked"
    CLOSED = "closed"


@dataclass
class SlotView:
    """One cell of a calendar: a local slot with its bookability."""

    label: str
    start: datetime
    status: SlotStatus
    facilities: list[Facility] = field(default_factory=list)

    @property
    def bookable(self) -> bool:
        return self.status is SlotStatus.AVAILABLE


@dataclass
class DayView:
    day: date
    slots: list[SlotView]


def _slot_status(
    start: datetime,
    ctx: BookingContext,
    now: datetime,
    resource: ResourceKey | None,
) -> tuple[SlotStatus, list[Facility]]:
    lead = hours_until(now, start)
    if lead < ctx.policy.can_reserve_before:
        return SlotStatus.PAST, []
    if ctx.policy.can_reserve_after is not None and lead > ctx.policy.can_reserve_after:
        return SlotStatus.TOO_FAR, []

    if resource is None and ctx.facilities:
        free = facilities_available_at(start, ctx.facilities, ctx.reservations, ctx.policy, ctx.offset)
        return (SlotStatus.AVAILABLE, free) if free else (SlotStatus.BOOKED, [])

    facility_id = resource.id if resource and resource.kind is ResourceKind.FACILITY else None
    staff_id = resource.id if resource and resource.kind is ResourceKind.STAFF else None
    reason = check_destination(start, ctx, facility_id, staff_id)
    if reason is BlockReason.OUTSIDE_BUSINESS_HOURS:
        return SlotStatus.CLOSED, []
    if reason is BlockReason.SLOT_CONFLICT:
        return SlotStatus.BOOKED, []
    return SlotStatus.AVAILABLE, []


def annotate_week(
    week_start: date,
    ctx: BookingContext,
    now: datetime,
    resource: ResourceKey | None = None,
    granularity_minutes: int | None = None,
) -> list[DayView]:
    """
    Week grid with each slot's status, for calendars and slot pickers.

    `resource` narrows to one facility or staff member; None asks whether
    any facility (or the store, if it has none) is free.
    """
    granularity = granularity_minutes or ctx.policy.default_duration
    if ctx.schedule is not None:
        grid = generate_week_slots(ctx.schedule, week_start, granularity)
        columns = [(d.day, d.slots) for d in grid]
    else:
        labels = hourly_grid(None)
        columns = [(week_start + timedelta(days=i), labels) for i in range(7)]

    views = []
    for day, labels in columns:
        cells = []
        for label in labels:
            start = combine_day_and_slot(day, label, ctx.offset)
            status, free = _slot_status(start, ctx, now, resource)
            cells.append(SlotView(label=label, start=start, status=status, facilities=free))
        views.append(DayView(day=day, slots=cells))
    return views

