"""Reschedule coordinator - drives an attempt through validation and commit.

Validation is pure (core.reschedule); this layer owns the clock, the
commit call and per-reservation exclusivity. Commits are never retried.
"""

import logging
import threading
from datetime import datetime

from .core.booking import BookingContext
from .core.errors import FailureReason, PersistenceError, PersistenceTimeout
from .core.reservations import Reservation
from .core.reschedule import RescheduleAttempt, RescheduleState, validate
from .ports.clock import Clock
from .ports.reservation_store import ReservationStore

logger = logging.getLogger(__name__)


class RescheduleCoordinator:
    """
    Runs reschedule attempts against a ReservationStore.

    At most one attempt per reservation may be committing at a time. An
    approved attempt claims its reservation before entering COMMITTING; if
    another attempt holds the claim it fails with CONCURRENT_ATTEMPT.
    """

    def __init__(self, store: ReservationStore, clock: Clock):
        self.store = store
        self.clock = clock
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    def begin(self, reservation: Reservation, new_start: datetime, ctx: BookingContext) -> RescheduleAttempt:
        """
        Validate a move and, if nothing needs the user's consent, commit it.

        Returns the attempt in a terminal state or in AWAITING_CONFIRMATION.
        """
        attempt = RescheduleAttempt(reservation=reservation, new_start=new_start)
        validate(attempt, ctx, self.clock.now())

        match attempt.state:
            case RescheduleState.BLOCKED:
                logger.info(f"Reschedule of {reservation.id} blocked: {attempt.block_reason.value}")
            case RescheduleState.UNCHANGED:
                logger.debug(f"Reschedule of {reservation.id} is a no-op")
            case RescheduleState.AWAITING_CONFIRMATION:
                logger.debug(f"Reschedule of {reservation.id} needs confirmation")
            case RescheduleState.APPROVED:
                self._commit(attempt)
        return attempt

    def confirm(self, attempt: RescheduleAttempt) -> RescheduleAttempt:
        """User accepted the lockout warning; commit."""
        attempt.confirm()
        self._commit(attempt)
        return attempt

    def decline(self, attempt: RescheduleAttempt) -> RescheduleAttempt:
        """User rejected the lockout warning; nothing is written."""
        attempt.decline()
        logger.info(f"Reschedule of {attempt.reservation.id} declined by user")
        return attempt

    def _claim(self, reservation_id: str) -> bool:
        with self._lock:
            if reservation_id in self._in_flight:
                return False
            self._in_flight.add(reservation_id)
            return True

    def _release(self, reservation_id: str) -> None:
        with self._lock:
            self._in_flight.discard(reservation_id)

    def is_in_flight(self, reservation_id: str) -> bool:
        with self._lock:
            return reservation_id in self._in_flight

    def _commit(self, attempt: RescheduleAttempt) -> None:
        reservation_id = attempt.reservation.id
        if not self._claim(reservation_id):
            logger.warning(f"Reschedule of {reservation_id} already in progress")
            attempt.fail(FailureReason.CONCURRENT_ATTEMPT)
            return

        try:
            attempt.begin_commit()
            result = self.store.commit_reschedule(attempt.reservation, attempt.new_start)
        except PersistenceTimeout as e:
            logger.error(f"Reschedule of {reservation_id} timed out: {e}")
            attempt.fail(FailureReason.TIMEOUT, f"{FailureReason.TIMEOUT.message()}: {e}")
        except PersistenceError as e:
            logger.error(f"Reschedule of {reservation_id} failed: {e}")
            attempt.fail(FailureReason.PERSISTENCE_ERROR, f"{FailureReason.PERSISTENCE_ERROR.message()}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error committing reschedule of {reservation_id}: {e}")
            attempt.fail(FailureReason.PERSISTENCE_ERROR, f"{FailureReason.PERSISTENCE_ERROR.message()}: {e}")
        else:
            attempt.committed(result)
            logger.info(f"Rescheduled {reservation_id} to {attempt.new_start.isoformat()}")
        finally:
            self._release(reservation_id)
