"""Clock adapters."""

from datetime import datetime, timezone

from rsvp.core.timezones import as_utc


class SystemClock:
    """Implements Clock protocol with the wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Implements Clock protocol with a pinned instant."""

    def __init__(self, instant: datetime):
        self.instant = as_utc(instant)

    def now(self) -> datetime:
        return self.instant
