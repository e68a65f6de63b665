"""File-based reservation store adapter."""

import json
import logging
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path

from rsvp.core.errors import PersistenceError, ReservationNotFound
from rsvp.core.reservations import Facility, Reservation, StaffMember, parse_reservations
from rsvp.core.timezones import as_utc, to_epoch_ms

logger = logging.getLogger(__name__)


class FileReservationStore:
    """
    File-based reservation store.

    Implements ReservationStore protocol. Each store gets one JSON file with
    "reservations", "facilities" and "staff" lists in upstream record format.
    """

    def __init__(self, data_dir: Path | str, store_id: str):
        self.data_dir = Path(data_dir).expanduser()
        self.store_id = store_id
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.data_dir / f"{self.store_id}.json"

    def _load(self) -> dict:
        if not self.path.exists():
            return {"reservations": [], "facilities": [], "staff": []}
        try:
            return json.loads(self.path.read_text())
        except ValueError as e:
            raise PersistenceError(f"Corrupt store file {self.path}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Cannot read store file {self.path}: {e}") from e

    def _save(self, data: dict) -> None:
        tmp = self.path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2))
            tmp.replace(self.path)
        except OSError as e:
            raise PersistenceError(f"Cannot write store file {self.path}: {e}") from e

    def fetch_reservations(self, start: datetime, end: datetime) -> list[Reservation]:
        start, end = as_utc(start), as_utc(end)
        reservations = parse_reservations(self._load().get("reservations", []))
        return [r for r in reservations if start <= r.start < end]

    def get_reservation(self, reservation_id: str) -> Reservation:
        for item in self._load().get("reservations", []):
            if isinstance(item, Mapping) and str(item.get("id")) == reservation_id:
                return Reservation.from_record(item)
        raise ReservationNotFound(reservation_id)

    def fetch_facilities(self) -> list[Facility]:
        facilities = []
        for item in self._load().get("facilities", []):
            try:
                facilities.append(Facility.from_record(item))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed facility in {self.path}: {e}")
        return facilities

    def fetch_staff(self) -> list[StaffMember]:
        staff = []
        for item in self._load().get("staff", []):
            try:
                staff.append(StaffMember.from_record(item))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed staff member in {self.path}: {e}")
        return staff

    def commit_reschedule(self, reservation: Reservation, new_start: datetime) -> Reservation:
        """Rewrite the reservation's time, refusing if its version moved on."""
        data = self._load()
        for item in data.get("reservations", []):
            if not isinstance(item, Mapping) or str(item.get("id")) != reservation.id:
                continue
            stored_version = item.get("updatedAt")
            if reservation.version is not None and str(stored_version) != reservation.version:
                raise PersistenceError("Reservation was changed by someone else")
            now_ms = to_epoch_ms(datetime.now().astimezone())
            item["rsvpTime"] = to_epoch_ms(new_start)
            item["updatedAt"] = now_ms
            self._save(data)
            logger.info(f"Moved reservation {reservation.id} to {as_utc(new_start).isoformat()}")
            return Reservation.from_record(item)
        raise PersistenceError(f"Reservation {reservation.id} no longer exists")
