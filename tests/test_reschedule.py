"""Tests for the reschedule validation pipeline."""

from datetime import datetime, timedelta, timezone

import pytest

from rsvp.core.booking import BookingContext
from rsvp.core.errors import BlockReason, FailureReason, InvalidTransition
from rsvp.core.policy import PolicyConfig
from rsvp.core.reschedule import RescheduleAttempt, RescheduleState, validate
from rsvp.core.reservations import Reservation, ReservationStatus
from rsvp.core.schedule import parse_schedule
from rsvp.core.timezones import TimeOffset, to_utc

TAIPEI = TimeOffset.from_hours(8)
# Monday 2025-01-06 08:00 Taipei
NOW = to_utc(datetime(2025, 1, 6, 8, 0), TAIPEI)


def local(day: int, hour: int, minute: int = 0) -> datetime:
    return to_utc(datetime(2025, 1, day, hour, minute), TAIPEI)


@pytest.fixture
def policy():
    return PolicyConfig(can_cancel=True, cancel_hours=24)


@pytest.fixture
def make_ctx(policy):
    hours = parse_schedule(
        {day: [{"from": "09:00", "to": "18:00"}] for day in ("Monday", "Tuesday", "Wednesday")}
    )

    def _make(reservations=(), **overrides) -> BookingContext:
        return BookingContext(
            policy=overrides.get("policy", policy),
            offset=TAIPEI,
            reservations=tuple(reservations),
            schedule=hours,
        )
    return _make


@pytest.fixture
def reservation():
    """Monday 2025-01-13 10:00 Taipei on facility F."""
    return Reservation(id="r1", start=local(13, 10), facility_id="F", status=ReservationStatus.READY)


def run(reservation, new_start, ctx, now=NOW) -> RescheduleAttempt:
    return validate(RescheduleAttempt(reservation=reservation, new_start=new_start), ctx, now)


class TestValidate:
    def test_clean_move_is_approved(self, reservation, make_ctx):
        attempt = run(reservation, local(14, 11), make_ctx([reservation]))
        assert attempt.state is RescheduleState.APPROVED
        assert attempt.block_reason is None

    def test_currently_locked(self, reservation, make_ctx):
        now = local(13, 0)
        attempt = run(reservation, local(15, 11), make_ctx([reservation]), now=now)
        assert attempt.state is RescheduleState.BLOCKED
        assert attempt.block_reason is BlockReason.CURRENTLY_LOCKED
        assert "24 hours" in attempt.detail

    def test_cancel_disabled_always_locked(self, reservation, make_ctx):
        ctx = make_ctx([reservation], policy=PolicyConfig(can_cancel=False))
        attempt = run(reservation, local(14, 11), ctx)
        assert attempt.block_reason is BlockReason.CURRENTLY_LOCKED

    def test_completed_not_mutable(self, make_ctx):
        done = Reservation(id="r9", start=local(13, 10), status=ReservationStatus.COMPLETED)
        attempt = run(done, local(14, 11), make_ctx([done]))
        assert attempt.block_reason is BlockReason.NOT_MUTABLE

    def test_outside_business_hours(self, reservation, make_ctx):
        attempt = run(reservation, local(14, 20), make_ctx([reservation]))
        assert attempt.block_reason is BlockReason.OUTSIDE_BUSINESS_HOURS

    def test_closed_day(self, reservation, make_ctx):
        # Thursday is not in the schedule
        attempt = run(reservation, local(16, 11), make_ctx([reservation]))
        assert attempt.block_reason is BlockReason.OUTSIDE_BUSINESS_HOURS

    def test_slot_conflict(self, reservation, make_ctx):
        other = Reservation(id="r2", start=local(14, 11), facility_id="F")
        attempt = run(reservation, local(14, 11, 30), make_ctx([reservation, other]))
        assert attempt.block_reason is BlockReason.SLOT_CONFLICT

    def test_cancelled_neighbour_does_not_conflict(self, reservation, make_ctx):
        other = Reservation(id="r2", start=local(14, 11), facility_id="F", status=ReservationStatus.CANCELLED)
        attempt = run(reservation, local(14, 11), make_ctx([reservation, other]))
        assert attempt.state is RescheduleState.APPROVED

    def test_overlapping_own_slot_is_fine(self, reservation, make_ctx):
        attempt = run(reservation, local(13, 10, 30), make_ctx([reservation]))
        assert attempt.state is RescheduleState.APPROVED

    def test_unchanged(self, reservation, make_ctx):
        attempt = run(reservation, local(13, 10) + timedelta(seconds=30), make_ctx([reservation]))
        assert attempt.state is RescheduleState.UNCHANGED
        assert attempt.is_finished

    def test_blocked_is_terminal(self, reservation, make_ctx):
        attempt = run(reservation, local(14, 20), make_ctx([reservation]))
        assert attempt.is_finished
        with pytest.raises(InvalidTransition):
            attempt.confirm()


class TestLockoutConfirmation:
    @pytest.fixture
    def awaiting(self, make_ctx):
        # Reservation a week out; destination Tuesday 09:00, 12 hours after now
        reservation = Reservation(id="r1", start=local(20, 10), facility_id="F")
        now = local(13, 21)
        return run(reservation, local(14, 9), make_ctx([reservation]), now=now)

    def test_awaits_confirmation(self, awaiting):
        assert awaiting.state is RescheduleState.AWAITING_CONFIRMATION
        assert "24 hours" in awaiting.detail
        assert not awaiting.is_finished

    def test_confirm(self, awaiting):
        awaiting.confirm()
        assert awaiting.state is RescheduleState.APPROVED

    def test_decline(self, awaiting):
        awaiting.decline()
        assert awaiting.state is RescheduleState.FAILED
        assert awaiting.failure_reason is FailureReason.USER_CANCELLED


class TestTransitions:
    def test_validate_twice_rejected(self, reservation, make_ctx):
        attempt = run(reservation, local(14, 11), make_ctx([reservation]))
        with pytest.raises(InvalidTransition):
            validate(attempt, make_ctx([reservation]), NOW)

    def test_commit_result(self, reservation, make_ctx):
        attempt = run(reservation, local(14, 11), make_ctx([reservation]))
        moved = Reservation(id="r1", start=local(14, 11), facility_id="F")
        attempt.begin_commit()
        attempt.committed(moved)
        assert attempt.state is RescheduleState.COMMITTED
        assert attempt.result == moved

    def test_approved_must_enter_committing_first(self, reservation, make_ctx):
        attempt = run(reservation, local(14, 11), make_ctx([reservation]))
        with pytest.raises(InvalidTransition):
            attempt.committed(Reservation(id="r1", start=local(14, 11)))
        assert not attempt.is_finished

    def test_new_start_normalized_to_utc(self, reservation):
        attempt = RescheduleAttempt(reservation=reservation, new_start=datetime(2025, 1, 14, 3, 0))
        assert attempt.new_start.tzinfo is timezone.utc
