"""Python logging handler adapter for cloudlogpy.

This adapter bridges Python's standard library logging module to a
StructuredLogger, so records from libraries and ``logging.getLogger`` calls
end up in the same structured output as direct logger calls.
"""

import logging
import traceback
from typing import Any

from cloudlogpy.core.hr_time import NS_SECOND
from cloudlogpy.core.logger import StructuredLogger
from cloudlogpy.core.severity import LogSeverity

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


def level_to_severity(levelno: int) -> LogSeverity:
    """Map a logging level number to the closest severity.

    Levels between the standard ones round down, e.g. 25 maps to INFO.
    """
    if levelno >= logging.CRITICAL:
        return LogSeverity.CRITICAL
    if levelno >= logging.ERROR:
        return LogSeverity.ERROR
    if levelno >= logging.WARNING:
        return LogSeverity.WARNING
    if levelno >= logging.INFO:
        return LogSeverity.INFO
    if levelno >= logging.DEBUG:
        return LogSeverity.DEBUG
    return LogSeverity.DEFAULT


class StructuredLoggingHandler(logging.Handler):
    """Logging handler that forwards log records to a StructuredLogger.

    Example:
        ```python
        from cloudlogpy import Logging, StructuredLoggingHandler

        cloud = Logging.from_env(log_name="worker")
        logging.getLogger().addHandler(StructuredLoggingHandler(cloud.logger))
        logging.getLogger(__name__).info("started", extra={"jobs": 3})
        ```
    """

    def __init__(self, logger: StructuredLogger, level: int = logging.NOTSET) -> None:
        """Initialize the handler.

        Args:
            logger: Logger the records are written to. Each stdlib logger
                name becomes the ``type`` label of a child logger.
            level: Minimum level handled.
        """
        super().__init__(level)
        self._logger = logger
        self._children: dict[str, StructuredLogger] = {}

    def _logger_for(self, name: str) -> StructuredLogger:
        child = self._children.get(name)
        if child is None:
            child = self._logger.child(name)
            self._children[name] = child
        return child

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record to the structured logger.

        Args:
            record: The log record to emit.
        """
        try:
            message = record.getMessage()
            data: dict[str, Any] = {
                key: value
                for key, value in record.__dict__.items()
                if key not in _STANDARD_LOGRECORD_ATTRS and not key.startswith("_")
            }
            if record.exc_info and record.exc_info[0] is not None:
                exc_type, exc_value, exc_tb = record.exc_info
                data["stack_trace"] = "".join(
                    traceback.format_exception(exc_type, exc_value, exc_tb)
                ).rstrip("\n")
            if record.stack_info:
                data["stack_info"] = record.stack_info

            metadata = {
                "severity": level_to_severity(record.levelno),
                "timestamp": int(record.created * NS_SECOND),
                "sourceLocation": {
                    "file": record.pathname,
                    "line": str(record.lineno),
                    "function": record.funcName or "",
                },
            }
            target = self._logger_for(record.name)
            if data:
                target.write(metadata, message, data)
            else:
                target.write(metadata, message)
        except Exception:  # noqa: BLE001
            self.handleError(record)
