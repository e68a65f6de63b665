"""Reservation API adapter - HTTP client for reservations and commits."""

import logging
from datetime import datetime

import requests

from rsvp.core.errors import PersistenceError, PersistenceTimeout, ReservationNotFound
from rsvp.core.reservations import Facility, Reservation, StaffMember, parse_reservations
from rsvp.core.timezones import to_epoch_ms

logger = logging.getLogger(__name__)


class HttpReservationStore:
    """
    Reservation API adapter.

    Implements ReservationStore protocol. Reads go through GET endpoints;
    a reschedule is a PATCH guarded by the reservation's version, so a
    stale write comes back as 409. No business logic - just I/O.
    """

    def __init__(
        self,
        base_url: str,
        store_id: str,
        token: str = "",
        timeout: float = 10,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.store_id = store_id
        self.token = token
        self.timeout = timeout
        self._session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/stores/{self.store_id}{path}"

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _get(self, path: str, params: dict | None = None) -> dict | list:
        """GET a JSON document, translating transport and status failures."""
        try:
            resp = self._session.get(
                self._url(path),
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise PersistenceTimeout(f"Timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise PersistenceError(str(e)) from e

        if resp.status_code == 404:
            raise ReservationNotFound(path)
        if resp.status_code != 200:
            raise PersistenceError(f"Reservation API error ({resp.status_code}): {resp.text}")
        try:
            return resp.json()
        except ValueError as e:
            raise PersistenceError(f"Reservation API returned invalid JSON for {path}: {e}") from e

    def _get_list(self, path: str, key: str, params: dict | None = None) -> list:
        """GET a list of records, bare or wrapped as {key: [...]}."""
        data = self._get(path, params)
        records = data.get(key, []) if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise PersistenceError(f"Reservation API returned no {key} list for {path}")
        return records

    def fetch_reservations(self, start: datetime, end: datetime) -> list[Reservation]:
        """Fetch reservations starting in [start, end)."""
        records = self._get_list(
            "/reservations",
            "reservations",
            params={"from": to_epoch_ms(start), "to": to_epoch_ms(end)},
        )
        return parse_reservations(records)

    def get_reservation(self, reservation_id: str) -> Reservation:
        try:
            data = self._get(f"/reservations/{reservation_id}")
        except ReservationNotFound as e:
            raise ReservationNotFound(reservation_id) from e
        try:
            return Reservation.from_record(data)
        except (ValueError, KeyError, TypeError) as e:
            raise PersistenceError(f"Unreadable reservation {reservation_id}: {e}") from e

    def fetch_facilities(self) -> list[Facility]:
        facilities = []
        for item in self._get_list("/facilities", "facilities"):
            try:
                facilities.append(Facility.from_record(item))
            except (KeyError, ValueError, TypeError) as e:
                logger.debug(f"Skipping malformed facility: {e}")
        return facilities

    def fetch_staff(self) -> list[StaffMember]:
        staff = []
        for item in self._get_list("/staff", "staff"):
            try:
                staff.append(StaffMember.from_record(item))
            except (KeyError, ValueError, TypeError) as e:
                logger.debug(f"Skipping malformed staff member: {e}")
        return staff

    def commit_reschedule(self, reservation: Reservation, new_start: datetime) -> Reservation:
        """PATCH the new time. Never retried here: a blind retry could double-submit."""
        payload = {"rsvpTime": to_epoch_ms(new_start)}
        if reservation.version:
            payload["version"] = reservation.version

        try:
            resp = self._session.patch(
                self._url(f"/reservations/{reservation.id}"),
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.error(f"Reschedule of {reservation.id} timed out after {self.timeout}s")
            raise PersistenceTimeout(f"Timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            logger.error(f"Reschedule of {reservation.id} failed: {e}")
            raise PersistenceError(str(e)) from e

        if resp.status_code == 409:
            raise PersistenceError("Reservation was changed by someone else")
        if resp.status_code != 200:
            raise PersistenceError(f"Reservation update failed ({resp.status_code}): {resp.text}")

        try:
            return Reservation.from_record(resp.json())
        except (ValueError, KeyError, TypeError) as e:
            raise PersistenceError(f"Unreadable reservation in response: {e}") from e
