import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from ..core.exceptions import ConfigurationError

_DURATION_RE = re.compile(r"^(?:\d+[hms])+$")
_DURATION_PART_RE = re.compile(r"(\d+)([hms])")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600}


def parse_iso_date(value: Optional[str]) -> Optional[datetime]:
    """RFC 3339 timestamp from the API server (or the billing service), or None if unparseable."""
    if not value:
        return None
    # fromisoformat only accepts a trailing "Z" from 3.11 on.
    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def ensure_utc(value: Union[datetime, str]) -> datetime:
    """
    Aware UTC datetime for a datetime or timestamp string.
    Naive datetimes are taken to be UTC already, as kubernetes_asyncio returns them.
    """
    dt = parse_iso_date(value) if isinstance(value, str) else value
    if dt is None:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_z(dt: Optional[datetime]) -> str:
    """
    Converts a datetime to an RFC 3339 string with 'Z' suffix for UTC.
    Returns an empty string for a missing timestamp.
    """
    if dt is None:
        return ""
    return ensure_utc(dt).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def parse_duration(value: Union[str, int, float, None]) -> int:
    """
    Parses a duration like '30s', '5m' or '1h30m' (or a bare number of
    seconds) into whole seconds.

    Raises:
        ConfigurationError: if the value cannot be interpreted.
    """
    if value is None:
        raise ConfigurationError("Duration is missing.")
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ConfigurationError(f"Duration must not be negative: {value!r}")
        return int(value)

    text = str(value).strip().lower()
    if text.isdigit():
        return int(text)

    if not _DURATION_RE.match(text):
        raise ConfigurationError(f"Invalid duration format: '{value}'. Use 's', 'm', or 'h'.")

    return sum(int(amount) * _UNIT_SECONDS[unit] for amount, unit in _DURATION_PART_RE.findall(text))


def format_duration(delta: timedelta) -> str:
    """Renders a timedelta compactly, e.g. '26h3m5s'. Negative deltas render as '0s'."""
    total = int(delta.total_seconds())
    if total <= 0:
        return "0s"

    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds or not parts:
        parts.append(f"{seconds}s")
    return "".join(parts)
