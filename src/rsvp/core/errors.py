"""Engine exceptions and user-facing outcome reasons."""

from enum import Enum


class RsvpError(Exception):
    """Base class for engine errors."""

    pass


class InvalidScheduleFormat(RsvpError):
    """Raised when a weekly schedule document cannot be decoded or is malformed."""

    pass


class UnknownTimezone(RsvpError):
    """Raised when a timezone identifier is not in the fixed-offset table."""

    def __init__(self, timezone_id: str):
        super().__init__(f"Unknown timezone: {timezone_id!r}")
        self.timezone_id = timezone_id


class ReservationNotFound(RsvpError):
    """Raised when a reservation id is not known to the store."""

    pass


class PersistenceError(RsvpError):
    """Raised by a reservation store when a commit cannot be completed."""

    pass


class PersistenceTimeout(PersistenceError):
    """The commit call exceeded its timeout."""

    pass


class InvalidTransition(RsvpError):
    """Raised when a reschedule attempt is driven through an illegal transition."""

    pass


class BlockReason(Enum):
    """Why a booking or reschedule was refused. Never raised, always returned."""

    CURRENTLY_LOCKED = "currently_locked"
    OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
    SLOT_CONFLICT = "slot_conflict"
    ADVANCE_WINDOW_VIOLATION = "advance_window_violation"
    NOT_MUTABLE = "not_mutable"

    def message(self, cancel_hours: float | None = None) -> str:
        """Human-readable explanation for the UI."""
        match self:
            case BlockReason.CURRENTLY_LOCKED:
                if cancel_hours is None:
                    return "This reservation can no longer be changed"
                return f"Cannot edit within {cancel_hours:g} hours of the reservation"
            case BlockReason.OUTSIDE_BUSINESS_HOURS:
                return "The selected time is outside business hours"
            case BlockReason.SLOT_CONFLICT:
                return "This time is already booked"
            case BlockReason.ADVANCE_WINDOW_VIOLATION:
                return "The selected time is too soon or too far ahead to book"
            case BlockReason.NOT_MUTABLE:
                return "Completed reservations cannot be changed"


class FailureReason(Enum):
    """Why a reschedule attempt ended in the failed state."""

    USER_CANCELLED = "user_cancelled"
    PERSISTENCE_ERROR = "persistence_error"
    TIMEOUT = "timeout"
    CONCURRENT_ATTEMPT = "concurrent_attempt"

    def message(self) -> str:
        labels = {
            FailureReason.USER_CANCELLED: "Reschedule cancelled",
            FailureReason.PERSISTENCE_ERROR: "The reservation could not be saved",
            FailureReason.TIMEOUT: "Saving the reservation timed out",
            FailureReason.CONCURRENT_ATTEMPT: "This reservation is already being rescheduled",
        }
        return labels[self]
