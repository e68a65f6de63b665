"""Adapters - I/O implementations of ports."""

from .http_store import HttpReservationStore
from .file_store import FileReservationStore
from .clock import SystemClock, FixedClock

__all__ = [
    "HttpReservationStore",
    "FileReservationStore",
    "SystemClock",
    "FixedClock",
]
