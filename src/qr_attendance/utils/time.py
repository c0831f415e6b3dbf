from __future__ import annotations

import time
from datetime import datetime, timezone


def now_millis() -> int:
    return time.time_ns() // 1_000_000


def to_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def isoformat_utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def coerce_datetime(value: datetime | str) -> datetime:
    """Parse datetimes coming back from SQLite into aware UTC values."""

    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        candidate = value.strip().replace(" ", "T", 1)
        try:
            moment = datetime.fromisoformat(candidate)
        except ValueError:
            for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M:%S.%f"):
                try:
                    moment = datetime.strptime(value, fmt)
                    break
                except ValueError:
                    continue
            else:
                raise ValueError(f"Unsupported datetime value: {value!r}")
    else:
        raise ValueError(f"Unsupported datetime value: {value!r}")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def format_expires_in(seconds: float) -> str:
    total_seconds = int(seconds)

    if total_seconds <= 0:
        return "expired"

    if total_seconds < 60:
        return f"{total_seconds} seconds"

    minutes, remainder = divmod(total_seconds, 60)
    if minutes == 1 and remainder == 0:
        return "1 minute"
    if remainder == 0:
        return f"{minutes} minutes"
    return f"{minutes}m {remainder:02d}s"
