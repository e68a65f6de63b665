"""Cancellation and advance-booking policy windows - pure, clock injected."""

from dataclasses import dataclass
from datetime import datetime

from .errors import BlockReason
from .reservations import Reservation, ReservationStatus
from .timezones import as_utc

IMMUTABLE_STATUSES = frozenset({ReservationStatus.COMPLETED})


@dataclass(frozen=True)
class PolicyConfig:
    """A store's reservation settings, snapshotted for one evaluation."""

    use_business_hours: bool = True
    can_cancel: bool = False
    cancel_hours: float = 24
    can_reserve_before: float = 2
    can_reserve_after: float | None = None
    default_duration: int = 60
    single_service_mode: bool = False


def hours_until(now: datetime, instant: datetime) -> float:
    """Signed hours from now until instant (negative if in the past)."""
    return (as_utc(instant) - as_utc(now)).total_seconds() / 3600


def is_within_advance_window(
    now: datetime,
    candidate_start: datetime,
    can_reserve_before: float,
    can_reserve_after: float | None = None,
) -> bool:
    """At least `can_reserve_before` hours ahead and, if set, at most `can_reserve_after`."""
    lead = hours_until(now, candidate_start)
    if lead < can_reserve_before:
        return False
    if can_reserve_after is not None and lead > can_reserve_after:
        return False
    return True


def is_in_cancel_lockout(now: datetime, reservation_start: datetime, can_cancel: bool, cancel_hours: float) -> bool:
    """
    True if cancel/edit is currently disallowed.

    With can_cancel off a reservation is always locked, however far away.
    """
    if not can_cancel:
        return True
    return hours_until(now, reservation_start) < cancel_hours


def can_mutate(reservation: Reservation, policy: PolicyConfig, now: datetime) -> bool:
    """Whether a reservation may be cancelled, edited or moved right now."""
    if reservation.status in IMMUTABLE_STATUSES:
        return False
    return not is_in_cancel_lockout(now, reservation.start, policy.can_cancel, policy.cancel_hours)


def would_enter_lockout_if_moved(candidate_new_start: datetime, policy: PolicyConfig, now: datetime) -> bool:
    """
    True if moving to candidate_new_start lands inside the cancel window.

    A soft warning: the move is allowed after explicit confirmation.
    """
    if not policy.can_cancel:
        return False
    return hours_until(now, candidate_new_start) < policy.cancel_hours


def check_mutation(reservation: Reservation, policy: PolicyConfig, now: datetime) -> BlockReason | None:
    """Reason a cancel/edit must be refused, or None if it may proceed."""
    if reservation.status in IMMUTABLE_STATUSES:
        return BlockReason.NOT_MUTABLE
    if is_in_cancel_lockout(now, reservation.start, policy.can_cancel, policy.cancel_hours):
        return BlockReason.CURRENTLY_LOCKED
    return None


def check_advance_window(candidate_start: datetime, policy: PolicyConfig, now: datetime) -> BlockReason | None:
    if is_within_advance_window(now, candidate_start, policy.can_reserve_before, policy.can_reserve_after):
        return None
    return BlockReason.ADVANCE_WINDOW_VIOLATION


def is_refund_eligible(reservation: Reservation, policy: PolicyConfig, now: datetime) -> bool:
    """Cancelling outside the lockout window refunds; inside it does not."""
    return policy.can_cancel and not is_in_cancel_lockout(
        now, reservation.start, policy.can_cancel, policy.cancel_hours
    )
