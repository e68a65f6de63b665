"""Reschedule/edit state machine - validation only, committing lives elsewhere."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, auto

from .booking import BookingContext, check_destination
from .errors import BlockReason, FailureReason, InvalidTransition
from .policy import check_mutation, would_enter_lockout_if_moved
from .reservations import Reservation
from .timezones import as_utc

# Moves smaller than this leave the reservation where it is.
MIN_MOVE = timedelta(minutes=1)


class RescheduleState(Enum):
    """States of a single reschedule attempt."""

    IDLE = auto()
    VALIDATING = auto()
    BLOCKED = auto()
    AWAITING_CONFIRMATION = auto()
    APPROVED = auto()
    COMMITTING = auto()
    COMMITTED = auto()
    FAILED = auto()
    UNCHANGED = auto()


TERMINAL_STATES = frozenset(
    {
        RescheduleState.BLOCKED,
        RescheduleState.COMMITTED,
        RescheduleState.FAILED,
        RescheduleState.UNCHANGED,
    }
)

_TRANSITIONS = {
    RescheduleState.IDLE: {RescheduleState.VALIDATING},
    RescheduleState.VALIDATING: {
        RescheduleState.BLOCKED,
        RescheduleState.AWAITING_CONFIRMATION,
        RescheduleState.APPROVED,
        RescheduleState.UNCHANGED,
    },
    RescheduleState.AWAITING_CONFIRMATION: {RescheduleState.APPROVED, RescheduleState.FAILED},
    # Only whoever holds the reservation's commit claim may enter COMMITTING.
    RescheduleState.APPROVED: {RescheduleState.COMMITTING, RescheduleState.FAILED},
    RescheduleState.COMMITTING: {RescheduleState.COMMITTED, RescheduleState.FAILED},
}


@dataclass
class RescheduleAttempt:
    """A proposed move of one reservation and where it got to."""

    reservation: Reservation
    new_start: datetime
    state: RescheduleState = RescheduleState.IDLE
    block_reason: BlockReason | None = None
    failure_reason: FailureReason | None = None
    result: Reservation | None = None
    detail: str = ""

    def __post_init__(self):
        self.new_start = as_utc(self.new_start)

    @property
    def is_finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def _move(self, target: RescheduleState) -> None:
        if target not in _TRANSITIONS.get(self.state, set()):
            raise InvalidTransition(f"Cannot go from {self.state.name} to {target.name}")
        self.state = target

    def block(self, reason: BlockReason, detail: str = "") -> None:
        self._move(RescheduleState.BLOCKED)
        self.block_reason = reason
        self.detail = detail or reason.message()

    def fail(self, reason: FailureReason, detail: str = "") -> None:
        self._move(RescheduleState.FAILED)
        self.failure_reason = reason
        self.detail = detail or reason.message()

    def confirm(self) -> None:
        """User accepted the lockout warning."""
        self._move(RescheduleState.APPROVED)

    def decline(self) -> None:
        """User rejected the lockout warning."""
        self.fail(FailureReason.USER_CANCELLED)

    def begin_commit(self) -> None:
        self._move(RescheduleState.COMMITTING)

    def committed(self, result: Reservation) -> None:
        self._move(RescheduleState.COMMITTED)
        self.result = result


def validate(attempt: RescheduleAttempt, ctx: BookingContext, now: datetime) -> RescheduleAttempt:
    """
    Run the validation pipeline on an idle attempt.

    Order: current lockout, destination hours, destination conflicts, then
    the soft lockout warning at the destination. Ends in BLOCKED,
    AWAITING_CONFIRMATION, APPROVED or UNCHANGED; moving an approved
    attempt on to COMMITTING is left to the caller.
    """
    attempt._move(RescheduleState.VALIDATING)
    reservation = attempt.reservation
    policy = ctx.policy

    if abs(attempt.new_start - as_utc(reservation.start)) < MIN_MOVE:
        attempt._move(RescheduleState.UNCHANGED)
        attempt.detail = "Reservation time is unchanged"
        return attempt

    reason = check_mutation(reservation, policy, now)
    if reason is not None:
        attempt.block(reason, reason.message(policy.cancel_hours if policy.can_cancel else None))
        return attempt

    reason = check_destination(
        attempt.new_start,
        ctx,
        facility_id=reservation.facility_id,
        staff_id=reservation.staff_id,
        duration_minutes=reservation.duration_minutes(policy.default_duration),
        exclude_id=reservation.id,
    )
    if reason is not None:
        attempt.block(reason)
        return attempt

    if would_enter_lockout_if_moved(attempt.new_start, policy, now):
        attempt._move(RescheduleState.AWAITING_CONFIRMATION)
        attempt.detail = (
            f"The new time is within {policy.cancel_hours:g} hours; "
            "it cannot be changed or cancelled afterwards"
        )
        return attempt

    attempt._move(RescheduleState.APPROVED)
    return attempt
