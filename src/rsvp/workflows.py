"""Shared workflow layer between the CLI and other callers.

Each function resolves config, fetches what the core needs from a
ReservationStore, and hands back core result objects.
"""

from collections.abc import Callable
from datetime import date, datetime, timedelta
from pathlib import Path

from .adapters.clock import SystemClock
from .adapters.file_store import FileReservationStore
from .adapters.http_store import HttpReservationStore
from .config import DATA_DIR, Config
from .coordinator import RescheduleCoordinator
from .core.availability import ResourceKey, facilities_available_at, staff_available_at
from .core.booking import BookingContext, DayView, annotate_week, check_new_booking
from .core.policy import can_mutate, is_in_cancel_lockout, is_refund_eligible, hours_until
from .core.reschedule import RescheduleAttempt, RescheduleState
from .core.schedule import WEEKDAYS, WeeklySchedule, distinct_open_hours, select_schedule
from .core.slots import DaySlots, generate_slots_on, generate_week_slots, hourly_grid, start_of_week
from .core.timezones import to_local, to_utc
from .ports.clock import Clock
from .ports.reservation_store import ReservationStore

# Reservations are fetched this far either side of a query window so that
# long bookings starting earlier still register as conflicts.
FETCH_MARGIN = timedelta(days=1)


def get_store(config: Config) -> ReservationStore:
    """HTTP API when configured, otherwise the local JSON store."""
    if config.api_base_url:
        return HttpReservationStore(
            config.api_base_url,
            config.store_id,
            token=config.api_token,
            timeout=config.api_timeout,
        )
    data_dir = Path(config.data_dir).expanduser() if config.data_dir else DATA_DIR
    return FileReservationStore(data_dir, config.store_id)


def active_schedule(config: Config) -> WeeklySchedule | None:
    """The schedule governing reservations, or None when unrestricted."""
    return select_schedule(
        config.use_business_hours,
        config.rsvp_hours,
        config.business_hours,
        config.store_use_business_hours,
    )


def build_context(config: Config, store: ReservationStore, start: datetime, end: datetime) -> BookingContext:
    """Snapshot everything needed to judge times in [start, end)."""
    return BookingContext(
        policy=config.policy(),
        offset=config.offset(),
        reservations=tuple(store.fetch_reservations(start - FETCH_MARGIN, end + FETCH_MARGIN)),
        schedule=active_schedule(config),
        facilities=tuple(store.fetch_facilities()),
        staff=tuple(store.fetch_staff()),
    )


def list_slots(config: Config, day: date, week: bool = False) -> list[DaySlots]:
    """Slot labels for one day, or the week containing it."""
    schedule = active_schedule(config)
    granularity = config.default_duration
    if week:
        week_start = start_of_week(day)
        if schedule is None:
            labels = hourly_grid(None)
            return [DaySlots(day=week_start + timedelta(days=i), slots=list(labels)) for i in range(7)]
        return generate_week_slots(schedule, week_start, granularity)
    if schedule is None:
        return [DaySlots(day=day, slots=hourly_grid(None))]
    return [DaySlots(day=day, slots=generate_slots_on(schedule, day, granularity))]


def week_view(
    config: Config,
    day: date,
    store: ReservationStore | None = None,
    clock: Clock | None = None,
    resource: ResourceKey | None = None,
) -> list[DayView]:
    """Annotated week grid (Sunday-first) containing `day`."""
    store = store or get_store(config)
    clock = clock or SystemClock()
    offset = config.offset()
    week_start = start_of_week(day)
    start = to_utc(datetime.combine(week_start, datetime.min.time()), offset)
    ctx = build_context(config, store, start, start + timedelta(days=7))
    return annotate_week(week_start, ctx, clock.now(), resource=resource)


def check_availability(
    config: Config,
    local_start: datetime,
    facility_id: str | None = None,
    staff_id: str | None = None,
    store: ReservationStore | None = None,
    clock: Clock | None = None,
) -> dict:
    """
    Whether a new booking at a store-local time would be accepted.

    Returns the block reason (None when bookable) and which facilities and
    staff are free at that time.
    """
    store = store or get_store(config)
    clock = clock or SystemClock()
    start = to_utc(local_start, config.offset())
    ctx = build_context(config, store, start, start)

    reason = check_new_booking(start, ctx, clock.now(), facility_id, staff_id)
    return {
        "start": start,
        "reason": reason,
        "facilities": facilities_available_at(start, ctx.facilities, ctx.reservations, ctx.policy, ctx.offset),
        "staff": staff_available_at(start, ctx.staff, ctx.reservations, ctx.policy, ctx.offset),
    }


def open_hours(config: Config) -> dict[str, list[int]]:
    """Distinct open hours for each weekday."""
    schedule = active_schedule(config)
    return {name: distinct_open_hours(schedule, name) for name in WEEKDAYS}


def policy_status(
    config: Config,
    reservation_id: str,
    store: ReservationStore | None = None,
    clock: Clock | None = None,
) -> dict:
    """What the current policy allows for one reservation right now."""
    store = store or get_store(config)
    clock = clock or SystemClock()
    policy = config.policy()
    now = clock.now()
    reservation = store.get_reservation(reservation_id)
    return {
        "reservation": reservation,
        "local_start": to_local(reservation.start, config.offset()),
        "hours_until": hours_until(now, reservation.start),
        "locked": is_in_cancel_lockout(now, reservation.start, policy.can_cancel, policy.cancel_hours),
        "can_mutate": can_mutate(reservation, policy, now),
        "refund_eligible": is_refund_eligible(reservation, policy, now),
    }


def reschedule(
    config: Config,
    reservation_id: str,
    local_start: datetime,
    confirm: Callable[[RescheduleAttempt], bool],
    store: ReservationStore | None = None,
    clock: Clock | None = None,
) -> RescheduleAttempt:
    """
    Move a reservation to a store-local time.

    `confirm` is asked only when the new time lands inside the cancel
    lockout window; returning False abandons the move. Each call gets its
    own coordinator, so exclusivity across calls and processes rests on the
    store's version check.
    """
    store = store or get_store(config)
    coordinator = RescheduleCoordinator(store, clock or SystemClock())
    reservation = store.get_reservation(reservation_id)
    new_start = to_utc(local_start, config.offset())
    ctx = build_context(config, store, new_start, new_start)

    attempt = coordinator.begin(reservation, new_start, ctx)
    if attempt.state is RescheduleState.AWAITING_CONFIRMATION:
        if confirm(attempt):
            coordinator.confirm(attempt)
        else:
            coordinator.decline(attempt)
    return attempt

