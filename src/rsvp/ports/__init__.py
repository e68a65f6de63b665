"""Ports - interfaces/protocols for external dependencies."""

from .reservation_store import ReservationStore
from .clock import Clock

__all__ = [
    "ReservationStore",
    "Clock",
]
