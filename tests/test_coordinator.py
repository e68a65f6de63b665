"""Tests for the reschedule coordinator."""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from rsvp.adapters.clock import FixedClock
from rsvp.coordinator import RescheduleCoordinator
from rsvp.core.booking import BookingContext
from rsvp.core.errors import BlockReason, FailureReason, PersistenceError, PersistenceTimeout
from rsvp.core.policy import PolicyConfig
from rsvp.core.reschedule import RescheduleAttempt, RescheduleState
from rsvp.core.reservations import Reservation
from rsvp.core.timezones import TimeOffset, to_utc

TAIPEI = TimeOffset.from_hours(8)


def local(day: int, hour: int, minute: int = 0) -> datetime:
    return to_utc(datetime(2025, 1, day, hour, minute), TAIPEI)


@pytest.fixture
def reservation():
    return Reservation(id="r1", start=local(20, 10), facility_id="F")


@pytest.fixture
def ctx(reservation):
    return BookingContext(
        policy=PolicyConfig(can_cancel=True, cancel_hours=24),
        offset=TAIPEI,
        reservations=(reservation,),
    )


@pytest.fixture
def store(reservation):
    store = MagicMock()
    store.commit_reschedule.side_effect = lambda r, start: Reservation(id=r.id, start=start, facility_id=r.facility_id)
    return store


@pytest.fixture
def coordinator(store):
    # Monday 2025-01-13 12:00 Taipei
    return RescheduleCoordinator(store, FixedClock(local(13, 12)))


class TestBegin:
    def test_commits_clean_move(self, coordinator, store, reservation, ctx):
        attempt = coordinator.begin(reservation, local(21, 10), ctx)

        assert attempt.state is RescheduleState.COMMITTED
        store.commit_reschedule.assert_called_once_with(reservation, local(21, 10))
        assert attempt.result.start == local(21, 10)
        assert not coordinator.is_in_flight("r1")

    def test_blocked_never_commits(self, coordinator, store, reservation):
        other = Reservation(id="r2", start=local(21, 10), facility_id="F")
        ctx = BookingContext(
            policy=PolicyConfig(can_cancel=True),
            offset=TAIPEI,
            reservations=(reservation, other),
        )
        attempt = coordinator.begin(reservation, local(21, 10), ctx)

        assert attempt.state is RescheduleState.BLOCKED
        assert attempt.block_reason is BlockReason.SLOT_CONFLICT
        store.commit_reschedule.assert_not_called()

    def test_unchanged_never_commits(self, coordinator, store, reservation, ctx):
        attempt = coordinator.begin(reservation, reservation.start, ctx)
        assert attempt.state is RescheduleState.UNCHANGED
        store.commit_reschedule.assert_not_called()

    def test_lockout_waits_for_user(self, coordinator, store, reservation, ctx):
        attempt = coordinator.begin(reservation, local(14, 10), ctx)
        assert attempt.state is RescheduleState.AWAITING_CONFIRMATION
        store.commit_reschedule.assert_not_called()


class TestConfirmation:
    def test_confirm_commits(self, coordinator, store, reservation, ctx):
        attempt = coordinator.begin(reservation, local(14, 10), ctx)
        coordinator.confirm(attempt)
        assert attempt.state is RescheduleState.COMMITTED
        store.commit_reschedule.assert_called_once()

    def test_decline_writes_nothing(self, coordinator, store, reservation, ctx):
        attempt = coordinator.begin(reservation, local(14, 10), ctx)
        coordinator.decline(attempt)
        assert attempt.state is RescheduleState.FAILED
        assert attempt.failure_reason is FailureReason.USER_CANCELLED
        store.commit_reschedule.assert_not_called()


class TestCommitFailures:
    def test_persistence_error(self, coordinator, store, reservation, ctx):
        store.commit_reschedule.side_effect = PersistenceError("Reservation was changed by someone else")
        attempt = coordinator.begin(reservation, local(21, 10), ctx)

        assert attempt.state is RescheduleState.FAILED
        assert attempt.failure_reason is FailureReason.PERSISTENCE_ERROR
        assert "changed by someone else" in attempt.detail
        assert not coordinator.is_in_flight("r1")

    def test_timeout(self, coordinator, store, reservation, ctx):
        store.commit_reschedule.side_effect = PersistenceTimeout("Timed out after 10s")
        attempt = coordinator.begin(reservation, local(21, 10), ctx)

        assert attempt.failure_reason is FailureReason.TIMEOUT
        store.commit_reschedule.assert_called_once()

    def test_unexpected_store_error(self, coordinator, store, reservation, ctx):
        store.commit_reschedule.side_effect = OSError("disk full")
        attempt = coordinator.begin(reservation, local(21, 10), ctx)

        assert attempt.state is RescheduleState.FAILED
        assert attempt.failure_reason is FailureReason.PERSISTENCE_ERROR
        assert "disk full" in attempt.detail
        assert not coordinator.is_in_flight("r1")

    def test_no_retry_after_failure(self, coordinator, store, reservation, ctx):
        store.commit_reschedule.side_effect = PersistenceError("boom")
        coordinator.begin(reservation, local(21, 10), ctx)
        assert store.commit_reschedule.call_count == 1


class TestExclusivity:
    def test_second_attempt_while_committing_fails(self, store, reservation, ctx):
        coordinator = RescheduleCoordinator(store, FixedClock(local(13, 12)))
        nested = {}

        def commit(r, start):
            nested["attempt"] = coordinator.begin(reservation, local(22, 10), ctx)
            return Reservation(id=r.id, start=start, facility_id=r.facility_id)

        store.commit_reschedule.side_effect = commit
        first = coordinator.begin(reservation, local(21, 10), ctx)

        assert first.state is RescheduleState.COMMITTED
        assert nested["attempt"].state is RescheduleState.FAILED
        assert nested["attempt"].failure_reason is FailureReason.CONCURRENT_ATTEMPT
        assert not coordinator.is_in_flight("r1")

    def test_second_attempt_never_enters_committing(self, store, reservation, ctx):
        coordinator = RescheduleCoordinator(store, FixedClock(local(13, 12)))
        moves = []
        move = RescheduleAttempt._move

        def record(attempt, target):
            moves.append((attempt.new_start, target))
            move(attempt, target)

        def commit(r, start):
            coordinator.begin(reservation, local(22, 10), ctx)
            return Reservation(id=r.id, start=start, facility_id=r.facility_id)

        store.commit_reschedule.side_effect = commit
        with patch.object(RescheduleAttempt, "_move", record):
            coordinator.begin(reservation, local(21, 10), ctx)

        second = [target for start, target in moves if start == local(22, 10)]
        assert second == [RescheduleState.VALIDATING, RescheduleState.APPROVED, RescheduleState.FAILED]
        assert store.commit_reschedule.call_count == 1

    def test_confirm_while_committing_fails(self, store, reservation, ctx):
        coordinator = RescheduleCoordinator(store, FixedClock(local(13, 12)))
        waiting = coordinator.begin(reservation, local(14, 10), ctx)

        def commit(r, start):
            coordinator.confirm(waiting)
            return Reservation(id=r.id, start=start, facility_id=r.facility_id)

        store.commit_reschedule.side_effect = commit
        coordinator.begin(reservation, local(21, 10), ctx)

        assert waiting.state is RescheduleState.FAILED
        assert waiting.failure_reason is FailureReason.CONCURRENT_ATTEMPT

    def test_other_reservations_not_blocked(self, store, reservation, ctx):
        coordinator = RescheduleCoordinator(store, FixedClock(local(13, 12)))
        other = Reservation(id="r2", start=local(20, 14), facility_id="G")
        nested = {}

        def commit(r, start):
            if r.id == "r1":
                nested["attempt"] = coordinator.begin(other, local(22, 14), ctx)
            return Reservation(id=r.id, start=start)

        store.commit_reschedule.side_effect = commit
        coordinator.begin(reservation, local(21, 10), ctx)

        assert nested["attempt"].state is RescheduleState.COMMITTED
