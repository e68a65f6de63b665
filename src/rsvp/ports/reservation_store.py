"""Reservation store interface."""

from datetime import datetime
from typing import Protocol

from rsvp.core.reservations import Facility, Reservation, StaffMember


class ReservationStore(Protocol):
    """Interface to the system that owns reservations and commits changes."""

    def fetch_reservations(self, start: datetime, end: datetime) -> list[Reservation]:
        """Fetch reservations starting in [start, end). Malformed records are skipped."""
        ...

    def get_reservation(self, reservation_id: str) -> Reservation:
        """Fetch one reservation. Raises ReservationNotFound."""
        ...

    def fetch_facilities(self) -> list[Facility]:
        """Fetch the store's bookable facilities."""
        ...

    def fetch_staff(self) -> list[StaffMember]:
        """Fetch the store's service staff."""
        ...

    def commit_reschedule(self, reservation: Reservation, new_start: datetime) -> Reservation:
        """
        Persist a validated move and return the stored reservation.

        Raises PersistenceError (PersistenceTimeout on timeout), including when
        the reservation changed since it was read.
        """
        ...
