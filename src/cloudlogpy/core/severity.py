"""Log severities understood by Cloud Logging and their console routing."""

from enum import Enum
from typing import Any


class LogSeverity(str, Enum):
    """Severity of a log entry.

    See https://cloud.google.com/logging/docs/reference/v2/rest/v2/LogEntry#logseverity
    """

    DEFAULT = "DEFAULT"
    DEBUG = "DEBUG"
    INFO = "INFO"
    NOTICE = "NOTICE"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    ALERT = "ALERT"
    EMERGENCY = "EMERGENCY"

    def __str__(self) -> str:
        return self.value


# Name of the Console method each severity is written with
CONSOLE_SEVERITY: dict[LogSeverity, str] = {
    LogSeverity.DEFAULT: "log",
    LogSeverity.DEBUG: "debug",
    LogSeverity.INFO: "info",
    LogSeverity.NOTICE: "info",
    LogSeverity.WARNING: "warn",
    LogSeverity.ERROR: "error",
    LogSeverity.CRITICAL: "error",
    LogSeverity.ALERT: "error",
    LogSeverity.EMERGENCY: "error",
}


def to_severity(value: Any) -> LogSeverity | None:
    """Return the LogSeverity matching value, or None if it is not a member.

    Args:
        value: A LogSeverity or its string value (e.g. "WARNING").

    Returns:
        The matching LogSeverity, or None for anything outside the enum.
    """
    if isinstance(value, LogSeverity):
        return value
    if isinstance(value, str):
        try:
            return LogSeverity(value)
        except ValueError:
            return None
    return None

