"""Functional core - pure scheduling logic with no I/O."""

from .timezones import TimeOffset, offset_for, resolve_offset, to_local, to_utc, combine_day_and_slot
from .schedule import (
    CLOSED,
    TimeRange,
    OpenRanges,
    WeeklySchedule,
    parse_schedule,
    parse_schedule_or_default,
    hours_for_weekday,
    is_open_at,
    distinct_open_hours,
)
from .slots import DaySlots, generate_daily_slots, generate_week_slots
from .reservations import Facility, Reservation, ReservationStatus, StaffMember, parse_reservations
from .availability import BookingMode, Interval, ResourceKey, facilities_available_at, is_slot_available
from .policy import (
    PolicyConfig,
    can_mutate,
    is_in_cancel_lockout,
    is_within_advance_window,
    would_enter_lockout_if_moved,
)
from .booking import BookingContext, SlotStatus, annotate_week, check_new_booking
from .reschedule import RescheduleAttempt, RescheduleState, validate
from .errors import BlockReason, FailureReason, InvalidScheduleFormat, PersistenceError, UnknownTimezone

__all__ = [
    # Time zones
    "TimeOffset",
    "offset_for",
    "resolve_offset",
    "to_local",
    "to_utc",
    "combine_day_and_slot",
    # Schedules
    "CLOSED",
    "TimeRange",
    "OpenRanges",
    "WeeklySchedule",
    "parse_schedule",
    "parse_schedule_or_default",
    "hours_for_weekday",
    "is_open_at",
    "distinct_open_hours",
    # Slots
    "DaySlots",
    "generate_daily_slots",
    "generate_week_slots",
    # Reservations
    "Facility",
    "Reservation",
    "ReservationStatus",
    "StaffMember",
    "parse_reservations",
    # Availability
    "BookingMode",
    "Interval",
    "ResourceKey",
    "facilities_available_at",
    "is_slot_available",
    # Policy
    "PolicyConfig",
    "can_mutate",
    "is_in_cancel_lockout",
    "is_within_advance_window",
    "would_enter_lockout_if_moved",
    # Booking
    "BookingContext",
    "SlotStatus",
    "annotate_week",
    "check_new_booking",
    # Rescheduling
    "RescheduleAttempt",
    "RescheduleState",
    "validate",
    # Errors
    "BlockReason",
    "FailureReason",
    "InvalidScheduleFormat",
    "PersistenceError",
    "UnknownTimezone",
]
