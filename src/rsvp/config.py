"""Configuration management for the reservation engine."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .core.policy import PolicyConfig
from .core.timezones import TimeOffset, resolve_offset

logger = logging.getLogger(__name__)

RSVP_HOME = Path(os.environ.get("RSVP_HOME", Path.home() / "rsvp"))
CONFIG_FILE = RSVP_HOME / "config" / "rsvp.conf"
DATA_DIR = RSVP_HOME / "data"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class Config:
    """Store and engine configuration."""

    store_id: str = "default"
    default_timezone: str = "Asia/Taipei"
    use_business_hours: bool = True
    store_use_business_hours: bool = True
    rsvp_hours: str = ""
    business_hours: str = ""
    default_duration: int = 60
    can_cancel: bool = False
    cancel_hours: float = 24
    can_reserve_before: float = 2
    can_reserve_after: float | None = None
    single_service_mode: bool = False
    # Reservation API
    api_base_url: str = ""
    api_token: str = ""
    api_timeout: float = 10
    data_dir: str = ""
    timezone_offsets: dict[str, TimeOffset] = field(default_factory=dict)

    def policy(self) -> PolicyConfig:
        """Immutable snapshot of the reservation settings."""
        return PolicyConfig(
            use_business_hours=self.use_business_hours,
            can_cancel=self.can_cancel,
            cancel_hours=self.cancel_hours,
            can_reserve_before=self.can_reserve_before,
            can_reserve_after=self.can_reserve_after,
            default_duration=self.default_duration,
            single_service_mode=self.single_service_mode,
        )

    def offset(self) -> TimeOffset:
        """The store's fixed UTC offset (UTC if the timezone is unknown)."""
        return resolve_offset(self.default_timezone, self.timezone_offsets)


def _unquote(value: str) -> str:
    """Strip surrounding quotes, or an inline comment from an unquoted value."""
    for quote in ('"', "'"):
        if value.startswith(quote):
            end_quote = value.find(quote, 1)
            return value[1:end_quote] if end_quote != -1 else value[1:]
    # Inline comments need leading whitespace
    if " #" in value:
        value = value.split(" #")[0].strip()
    return value


def _parse_bool(key: str, value: str, default: bool) -> bool:
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    logger.warning(f"Invalid boolean for {key.upper()}: {value!r}, keeping {default}")
    return default


def _parse_number(key: str, value: str, default, kind=float):
    try:
        number = kind(value)
    except ValueError:
        logger.warning(f"Invalid number for {key.upper()}: {value!r}, keeping {default}")
        return default
    if number < 0:
        logger.warning(f"Negative value for {key.upper()}: {value!r}, keeping {default}")
        return default
    return number


def _parse_offsets(value: str) -> dict[str, TimeOffset]:
    """Comma-separated `Name=+H[:MM]` entries."""
    offsets = {}
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, raw = entry.partition("=")
        if not sep:
            logger.warning(f"Ignoring TIMEZONE_OFFSETS entry without '=': {entry!r}")
            continue
        try:
            offsets[name.strip()] = TimeOffset.parse(raw)
        except ValueError as e:
            logger.warning(f"Ignoring TIMEZONE_OFFSETS entry {entry!r}: {e}")
    return offsets


def load_config(path: Path | None = None) -> Config:
    """Load configuration from rsvp.conf."""
    config = Config()
    path = path or CONFIG_FILE

    if not path.exists():
        return config

    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = _unquote(value.strip())

        match key:
            case "store_id":
                config.store_id = value
            case "default_timezone":
                config.default_timezone = value
            case "use_business_hours":
                config.use_business_hours = _parse_bool(key, value, config.use_business_hours)
            case "store_use_business_hours":
                config.store_use_business_hours = _parse_bool(key, value, config.store_use_business_hours)
            case "rsvp_hours":
                config.rsvp_hours = value
            case "business_hours":
                config.business_hours = value
            case "default_duration":
                config.default_duration = _parse_number(key, value, config.default_duration, int) or 60
            case "can_cancel":
                config.can_cancel = _parse_bool(key, value, config.can_cancel)
            case "cancel_hours":
                config.cancel_hours = _parse_number(key, value, config.cancel_hours)
            case "can_reserve_before":
                config.can_reserve_before = _parse_number(key, value, config.can_reserve_before)
            case "can_reserve_after":
                config.can_reserve_after = _parse_number(key, value, None) if value else None
            case "single_service_mode":
                config.single_service_mode = _parse_bool(key, value, config.single_service_mode)
            case "api_base_url":
                config.api_base_url = value
            case "api_token":
                config.api_token = value
            case "api_timeout":
                config.api_timeout = _parse_number(key, value, config.api_timeout)
            case "data_dir":
                config.data_dir = value
            case "timezone_offsets":
                config.timezone_offsets = _parse_offsets(value)

    return config
