"""Tests for cancellation and advance-booking windows."""

from datetime import datetime, timedelta, timezone

import pytest

from rsvp.core.errors import BlockReason
from rsvp.core.policy import (
    PolicyConfig,
    can_mutate,
    check_advance_window,
    check_mutation,
    hours_until,
    is_in_cancel_lockout,
    is_refund_eligible,
    is_within_advance_window,
    would_enter_lockout_if_moved,
)
from rsvp.core.reservations import Reservation, ReservationStatus

NOW = datetime(2025, 1, 13, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def reservation_in():
    """Factory for a reservation N hours from NOW."""
    def _make(hours: float, status: ReservationStatus = ReservationStatus.READY) -> Reservation:
        return Reservation(id="r1", start=NOW + timedelta(hours=hours), status=status)
    return _make


class TestHoursUntil:
    def test_future_and_past(self):
        assert hours_until(NOW, NOW + timedelta(hours=5)) == 5
        assert hours_until(NOW, NOW - timedelta(minutes=30)) == -0.5


class TestAdvanceWindow:
    def test_minimum_lead(self):
        assert not is_within_advance_window(NOW, NOW + timedelta(hours=1), 2)
        assert is_within_advance_window(NOW, NOW + timedelta(hours=2), 2)

    def test_maximum_lead(self):
        assert is_within_advance_window(NOW, NOW + timedelta(hours=48), 2, 48)
        assert not is_within_advance_window(NOW, NOW + timedelta(hours=49), 2, 48)

    def test_no_maximum(self):
        assert is_within_advance_window(NOW, NOW + timedelta(days=365), 2, None)

    def test_past_is_outside(self):
        assert not is_within_advance_window(NOW, NOW - timedelta(hours=1), 0)

    def test_check_returns_reason(self):
        policy = PolicyConfig(can_reserve_before=2)
        assert check_advance_window(NOW + timedelta(hours=1), policy, NOW) is BlockReason.ADVANCE_WINDOW_VIOLATION
        assert check_advance_window(NOW + timedelta(hours=3), policy, NOW) is None


class TestCancelLockout:
    def test_inside_window(self):
        assert is_in_cancel_lockout(NOW, NOW + timedelta(hours=10), True, 24)

    def test_outside_window(self):
        assert not is_in_cancel_lockout(NOW, NOW + timedelta(hours=25), True, 24)

    def test_boundary_is_unlocked(self):
        assert not is_in_cancel_lockout(NOW, NOW + timedelta(hours=24), True, 24)

    def test_cancel_disabled_always_locked(self):
        assert is_in_cancel_lockout(NOW, NOW + timedelta(days=365), False, 24)

    def test_fractional_hours(self):
        assert is_in_cancel_lockout(NOW, NOW + timedelta(minutes=89), True, 1.5)
        assert not is_in_cancel_lockout(NOW, NOW + timedelta(minutes=90), True, 1.5)


class TestMutation:
    def test_cancel_two_hours_out_is_locked(self, reservation_in):
        policy = PolicyConfig(can_cancel=True, cancel_hours=24)
        assert check_mutation(reservation_in(2), policy, NOW) is BlockReason.CURRENTLY_LOCKED

    def test_cancel_disabled_year_out_is_locked(self, reservation_in):
        policy = PolicyConfig(can_cancel=False, cancel_hours=24)
        assert check_mutation(reservation_in(24 * 365), policy, NOW) is BlockReason.CURRENTLY_LOCKED

    def test_allowed_outside_window(self, reservation_in):
        policy = PolicyConfig(can_cancel=True, cancel_hours=24)
        assert check_mutation(reservation_in(48), policy, NOW) is None
        assert can_mutate(reservation_in(48), policy, NOW)

    def test_completed_is_immutable(self, reservation_in):
        policy = PolicyConfig(can_cancel=True, cancel_hours=24)
        done = reservation_in(48, ReservationStatus.COMPLETED)
        assert check_mutation(done, policy, NOW) is BlockReason.NOT_MUTABLE
        assert not can_mutate(done, policy, NOW)


class TestWouldEnterLockout:
    def test_destination_inside_window(self):
        policy = PolicyConfig(can_cancel=True, cancel_hours=24)
        assert would_enter_lockout_if_moved(NOW + timedelta(hours=12), policy, NOW)

    def test_destination_outside_window(self):
        policy = PolicyConfig(can_cancel=True, cancel_hours=24)
        assert not would_enter_lockout_if_moved(NOW + timedelta(hours=30), policy, NOW)

    def test_no_warning_when_cancel_disabled(self):
        policy = PolicyConfig(can_cancel=False)
        assert not would_enter_lockout_if_moved(NOW + timedelta(hours=1), policy, NOW)


class TestRefund:
    def test_outside_window_refunds(self, reservation_in):
        policy = PolicyConfig(can_cancel=True, cancel_hours=24)
        assert is_refund_eligible(reservation_in(48), policy, NOW)

    def test_inside_window_no_refund(self, reservation_in):
        policy = PolicyConfig(can_cancel=True, cancel_hours=24)
        assert not is_refund_eligible(reservation_in(5), policy, NOW)

    def test_cancel_disabled_no_refund(self, reservation_in):
        assert not is_refund_eligible(reservation_in(48), PolicyConfig(can_cancel=False), NOW)
