"""Human-readable elapsed time for logger timers."""

from cloudlogpy.core.hr_time import NS_MICROSECOND, NS_MILLISECOND

_MS_SECOND = 1000
_MS_MINUTE = 60 * _MS_SECOND
_MS_HOUR = 60 * _MS_MINUTE


def _half_up(ns: int, unit: int) -> int:
    return (ns + unit // 2) // unit


def format_duration(ns: int) -> str:
    """Format a nanosecond duration with unit-dependent precision.

    Examples:
        >>> format_duration(999)
        '999ns'
        >>> format_duration(1000500)
        '1.001ms'
        >>> format_duration(999999999)
        '1.000s'
        >>> format_duration(59999999999)
        '1:00.000 (m:ss.SSS)'

    Args:
        ns: Non-negative duration in nanoseconds.

    Returns:
        ``ns`` below a microsecond, then ``µs`` and ``ms`` with three
        decimals. Values that round to a full second or more are rounded
        half-up to the millisecond before choosing between seconds,
        ``m:ss.SSS`` and ``h:mm:ss.SSS``, so a rounded second, minute or hour
        always carries over.
    """
    if ns < NS_MICROSECOND:
        return f"{ns}ns"
    if ns < NS_MILLISECOND:
        whole, fraction = divmod(ns, NS_MICROSECOND)
        return f"{whole}.{fraction:03d}µs"
    us = _half_up(ns, NS_MICROSECOND)
    if us < 1000 * 1000:
        whole, fraction = divmod(us, 1000)
        return f"{whole}.{fraction:03d}ms"

    ms = _half_up(ns, NS_MILLISECOND)
    if ms < _MS_MINUTE:
        seconds, fraction = divmod(ms, _MS_SECOND)
        return f"{seconds}.{fraction:03d}s"
    if ms < _MS_HOUR:
        minutes, rest = divmod(ms, _MS_MINUTE)
        seconds, fraction = divmod(rest, _MS_SECOND)
        return f"{minutes}:{seconds:02d}.{fraction:03d} (m:ss.SSS)"
    hours, rest = divmod(ms, _MS_HOUR)
    minutes, rest = divmod(rest, _MS_MINUTE)
    seconds, fraction = divmod(rest, _MS_SECOND)
    return f"{hours}:{minutes:02d}:{seconds:02d}.{fraction:03d} (h:mm:ss.SSS)"
