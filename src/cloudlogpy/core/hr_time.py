"""High-resolution wall clock built on the monotonic performance counter.

The wall clock is sampled once at import and aligned with
``time.perf_counter_ns()``; every later timestamp is derived from the
performance counter so entries written in quick succession keep their order
and nanosecond resolution.
"""

import re
import time
from datetime import datetime, timezone
from typing import Any, TypedDict

NS_MICROSECOND = 1000
NS_MILLISECOND = 1000 * NS_MICROSECOND
NS_SECOND = 1000 * NS_MILLISECOND
NS_MINUTE = 60 * NS_SECOND
NS_HOUR = 60 * NS_MINUTE


def _boot_ns() -> int:
    start = time.perf_counter_ns()
    boot = time.time_ns()
    end = time.perf_counter_ns()
    # Use the middle of start/end as the counter value matching boot
    return boot - (start + (end - start) // 2)


BOOT_NS = _boot_ns()

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_ISO_TIMESTAMP = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d{1,9}))?"
    r"(Z|z|[+-]\d{2}:?\d{2})?$"
)


class Timestamp(TypedDict):
    """Timestamp in the form Cloud Logging reads from structured JSON lines."""

    seconds: int
    nanos: int


def now(hr: int | None = None, boot_ns: int = BOOT_NS) -> int:
    """Return the current time as nanoseconds since the Unix epoch.

    Args:
        hr: Performance counter value in nanoseconds. Defaults to
            ``time.perf_counter_ns()``.
        boot_ns: Offset between the performance counter and the epoch.

    Returns:
        Nanoseconds since the Unix epoch.
    """
    if hr is None:
        hr = time.perf_counter_ns()
    return boot_ns + hr


def hr_to_timestamp(hr: int) -> Timestamp:
    """Split nanoseconds since the epoch into seconds and nanos.

    See https://cloud.google.com/logging/docs/agent/configuration#timestamp-processing
    """
    seconds, nanos = divmod(hr, NS_SECOND)
    return {"seconds": seconds, "nanos": nanos}


def timestamp_to_iso_string(ts: Timestamp, precision: int = 9) -> str:
    """Format a timestamp as an RFC 3339 UTC string.

    Args:
        ts: Timestamp to format.
        precision: Number of fractional second digits (0-9). The value is
            rounded half-up, carrying into the seconds when needed.

    Returns:
        String such as ``2024-12-02T12:23:11.843193754Z``.
    """
    unit = 10 ** (9 - precision)
    total = ts["seconds"] * NS_SECOND + ts["nanos"]
    rounded = (total + unit // 2) // unit
    seconds, fraction = divmod(rounded, 10**precision)
    date_part = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(
        "%Y-%m-%dT%H:%M:%S"
    )
    if precision == 0:
        return f"{date_part}Z"
    return f"{date_part}.{fraction:0{precision}d}Z"


def datetime_to_ns(value: datetime) -> int:
    """Convert a datetime to nanoseconds since the epoch.

    Naive datetimes are taken as local time, as ``datetime.timestamp()`` does.
    """
    if value.tzinfo is None:
        value = value.astimezone()
    delta = value - _EPOCH
    return (
        (delta.days * 86400 + delta.seconds) * NS_SECOND
        + delta.microseconds * NS_MICROSECOND
    )


def parse_timestamp(value: Any) -> int | None:
    """Parse a timestamp into nanoseconds since the epoch.

    Accepts integer nanoseconds, datetimes and ISO-8601 strings with up to
    nine fractional digits.

    Returns:
        Nanoseconds since the epoch, or None if value is not a valid time.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        return datetime_to_ns(value)
    if not isinstance(value, str):
        return None
    match = _ISO_TIMESTAMP.match(value.strip())
    if match is None:
        return None
    date_part, time_part, fraction, offset = match.groups()
    if offset is None or offset in ("Z", "z"):
        offset = "+00:00"
    elif ":" not in offset:
        offset = f"{offset[:3]}:{offset[3:]}"
    try:
        parsed = datetime.fromisoformat(f"{date_part}T{time_part}{offset}")
    except ValueError:
        return None
    nanos = int((fraction or "").ljust(9, "0"))
    return datetime_to_ns(parsed) + nanos
