"""Clock interface."""

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    """Source of the current instant, injected so tests can pin it."""

    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        ...
