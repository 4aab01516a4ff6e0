"""Structured logger writing Cloud Logging compatible records.

Outside production each call prints one readable line. In production each
call prints one JSON object per line in the format Cloud Run and GKE read
from container output, or hands the entry to a transport function.

See https://cloud.google.com/logging/docs/structured-logging
"""

import inspect
import json
import os
import pprint
import traceback
import warnings
from collections.abc import Mapping, Sized
from dataclasses import dataclass, field
from time import perf_counter_ns
from typing import Any

from cloudlogpy.core.arguments import is_object, normalize_arguments
from cloudlogpy.core.console import Console, render_dev_line, stream_is_tty
from cloudlogpy.core.duration import format_duration
from cloudlogpy.core.error_report import build_error_report, error_field
from cloudlogpy.core.hr_time import (
    hr_to_timestamp,
    now,
    parse_timestamp,
    timestamp_to_iso_string,
)
from cloudlogpy.core.models import ServiceContext
from cloudlogpy.core.ports import ExtractUser, RequestProperties, Transport
from cloudlogpy.core.request_properties import as_request_properties
from cloudlogpy.core.request_transformers import (
    request_to_error_reporting_http_request,
)
from cloudlogpy.core.serialize import cleanup_for_json, own_properties
from cloudlogpy.core.severity import CONSOLE_SEVERITY, LogSeverity, to_severity
from cloudlogpy.core.trace_context import extract_trace_context

# Where LogEntry fields go in a JSON line; False keeps the field in the payload.
# See https://cloud.google.com/logging/docs/agent/configuration#special-fields
LOG_ENTRY_MAPPING: dict[str, str | bool] = {
    "timestamp": False,
    "textPayload": False,
    "jsonPayload": False,
    "protoPayload": False,
    "insertId": "logging.googleapis.com/insertId",
    "labels": "logging.googleapis.com/labels",
    "operation": "logging.googleapis.com/operation",
    "sourceLocation": "logging.googleapis.com/sourceLocation",
    "spanId": "logging.googleapis.com/spanId",
    "trace": "logging.googleapis.com/trace",
    "traceSampled": "logging.googleapis.com/trace_sampled",
    "message": False,
}

PRODUCTION_ENV_VAR = "PYTHON_ENV"


def is_production() -> bool:
    """Check the process environment for production mode."""
    return os.environ.get(PRODUCTION_ENV_VAR) == "production"


def _warn(message: str, stacklevel: int = 3) -> None:
    warnings.warn(message, RuntimeWarning, stacklevel=stacklevel)


def split_payload(payload: Any) -> tuple[Any, dict[str, Any]]:
    """Split a normalized payload into its message and structured data."""
    if payload is None:
        return None, {}
    if isinstance(payload, str):
        return payload, {}
    if not is_object(payload):
        return pprint.pformat(payload), {}
    data = {str(k): v for k, v in own_properties(payload).items()}
    message = data.pop("message", None)
    if message is None and not data:
        if isinstance(payload, Sized) and len(payload) == 0:
            return None, {}
        return pprint.pformat(payload), {}
    return message, data


@dataclass(frozen=True)
class RequestContext:
    """Request a logger and its children were derived for.

    Attributes:
        request: Request the logger was created for.
        extract_user: Returns the user of the raw request, if any.
        trace: Trace fields of the request, computed once.
    """

    request: RequestProperties
    extract_user: ExtractUser | None = None
    trace: dict[str, Any] = field(default_factory=dict)

    def user(self) -> Any:
        if self.extract_user is None:
            return None
        return self.extract_user(self.request.raw)


class StructuredLogger:
    """Logger producing one structured record per call.

    Example:
        ```python
        log = StructuredLogger("my-project", "api", ServiceContext("api"))
        log.info("user signed in", {"user_id": 42})
        log.child("billing").warn("card declined")
        ```
    """

    def __init__(
        self,
        project_id: str,
        log_name: str,
        service_context: ServiceContext | Mapping[str, str],
        production_transport: Transport | None = None,
        labels: Mapping[str, str] | None = None,
        *,
        production: bool | None = None,
        console: Console | None = None,
        request_context: RequestContext | None = None,
    ) -> None:
        """Initialize the logger.

        Args:
            project_id: Google Cloud project, used for trace resource names.
            log_name: Value of the ``log_name`` label and of ``logName``.
            service_context: Service named in error reports.
            production_transport: Receives ``(entry, data)`` instead of the
                console in production.
            labels: Extra labels for every entry.
            production: Force production (True) or development (False)
                output. Defaults to checking ``PYTHON_ENV`` on every write.
            console: Output streams. Defaults to stdout/stderr.
            request_context: Request this logger is scoped to.
        """
        if isinstance(service_context, Mapping):
            service_context = ServiceContext(**service_context)
        self._project_id = project_id
        self._log_name = log_name
        self._service_context = service_context
        self._transport = production_transport
        self._labels: dict[str, str] = {"log_name": log_name, **(labels or {})}
        self._production = production
        self._console = console or Console()
        self._request_context = request_context
        self._times: dict[str, int] = {}

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def log_name(self) -> str:
        return self._log_name

    @property
    def service_context(self) -> ServiceContext:
        return self._service_context

    @property
    def labels(self) -> dict[str, str]:
        """Copy of the labels added to every entry."""
        return dict(self._labels)

    @property
    def request_context(self) -> RequestContext | None:
        return self._request_context

    @property
    def production(self) -> bool:
        if self._production is not None:
            return self._production
        return is_production()

    def _derive(
        self, labels: dict[str, str], request_context: RequestContext | None
    ) -> "StructuredLogger":
        return StructuredLogger(
            self._project_id,
            self._log_name,
            self._service_context,
            self._transport,
            labels,
            production=self._production,
            console=self._console,
            request_context=request_context,
        )

    def child(self, type: str) -> "StructuredLogger":
        """Return a logger with the same outputs and an extra ``type`` label.

        A child of a request-scoped logger keeps the same request and trace.
        """
        return self._derive({**self._labels, "type": type}, self._request_context)

    def request_child(
        self, request: Any, extract_user: ExtractUser | None = None
    ) -> "StructuredLogger":
        """Return a logger scoped to an inbound request.

        Args:
            request: ASGI scope, WSGI environ or framework request object.
            extract_user: Returns the user of the request for error reports.

        Returns:
            Logger labelled ``type="request"`` that adds the request's trace
            to every entry and its HTTP details to error reports.
        """
        properties = as_request_properties(request)
        context = RequestContext(
            request=properties,
            extract_user=extract_user,
            trace=extract_trace_context(self._project_id, properties.header),
        )
        return self._derive({**self._labels, "type": "request"}, context)

    def log(self, *args: Any) -> None:
        self._write_formatted(LogSeverity.DEFAULT, args)

    def debug(self, *args: Any) -> None:
        self._write_formatted(LogSeverity.DEBUG, args)

    def info(self, *args: Any) -> None:
        self._write_formatted(LogSeverity.INFO, args)

    def notice(self, *args: Any) -> None:
        self._write_formatted(LogSeverity.NOTICE, args)

    def warn(self, *args: Any) -> None:
        self._write_formatted(LogSeverity.WARNING, args)

    warning = warn

    def error(self, *args: Any) -> None:
        self._write_formatted(LogSeverity.ERROR, args)

    def critical(self, *args: Any) -> None:
        self._write_formatted(LogSeverity.CRITICAL, args)

    def alert(self, *args: Any) -> None:
        self._write_formatted(LogSeverity.ALERT, args)

    def emergency(self, *args: Any) -> None:
        self._write_formatted(LogSeverity.EMERGENCY, args)

    def assert_(self, value: Any, *args: Any) -> None:
        """Write a WARNING when value is falsy."""
        if value:
            return
        if args and isinstance(args[0], str):
            args = (f"Assertion failed: {args[0]}", *args[1:])
        else:
            args = ("Assertion failed", *args)
        self._write_formatted(LogSeverity.WARNING, args)

    def trace(self, *args: Any) -> None:
        """Write a DEBUG entry with the caller's stack appended."""
        frame = inspect.currentframe()
        caller = frame.f_back if frame is not None else None
        stack = "".join(traceback.format_stack(caller)).rstrip("\n")
        if args:
            self._write_formatted(LogSeverity.DEBUG, (*args, "\n" + stack))
        else:
            self._write_formatted(LogSeverity.DEBUG, ("Trace\n" + stack,))

    def time(self, label: Any = "default") -> None:
        """Start a timer."""
        label = str(label)
        if label in self._times:
            _warn(f"Label '{label}' already exists for logger.time()")
            return
        self._times[label] = perf_counter_ns()

    def time_end(self, label: Any = "default") -> bool:
        """Stop a timer and write its elapsed time.

        Returns:
            False when no timer with this label was running.
        """
        label = str(label)
        start = self._times.pop(label, None)
        if start is None:
            _warn(f"No such label '{label}' for logger.time_end()")
            return False
        elapsed = format_duration(perf_counter_ns() - start)
        self._write_formatted(LogSeverity.DEFAULT, (f"{label}: {elapsed}",))
        return True

    def time_log(self, label: Any = "default", *args: Any) -> bool:
        """Write the elapsed time of a running timer, followed by args.

        Returns:
            False when no timer with this label is running.
        """
        label = str(label)
        start = self._times.get(label)
        if start is None:
            _warn(f"No such label '{label}' for logger.time_log()")
            return False
        elapsed = format_duration(perf_counter_ns() - start)
        self._write_formatted(LogSeverity.DEFAULT, (f"{label}: {elapsed}", *args))
        return True

    def report_error(self, err: Any, severity: LogSeverity | str | None = None) -> None:
        """Write an error event that Error Reporting picks up.

        Args:
            err: Exception or any other value.
            severity: Severity of the entry. Defaults to the ``severity`` attribute
                or key of ``err`` when that is a valid severity, else ERROR.
        """
        try:
            if severity is None:
                severity = (
                    to_severity(error_field(err, "severity")) or LogSeverity.ERROR
                )
            http_request = None
            user = None
            if self._request_context is not None:
                http_request = request_to_error_reporting_http_request(
                    self._request_context.request
                )
                user = self._request_context.user()
            event: dict[str, Any] = dict(
                build_error_report(err, self._service_context, http_request, user)
            )
            if is_object(err):
                props = {
                    k: v
                    for k, v in own_properties(err).items()
                    if k not in ("message", "stack")
                }
                if isinstance(err, BaseException) and err.__cause__ is not None:
                    props["cause"] = err.__cause__
                event["error"] = props
        except Exception as exc:  # noqa: BLE001
            _warn(f"Failed to build error report: {exc!r}")
            return
        self._write({"severity": severity, "timestamp": now()}, event)

    def write(self, metadata: Mapping[str, Any], *args: Any) -> None:
        """Write an entry with explicit LogEntry fields.

        Args:
            metadata: LogEntry fields such as ``severity``, ``labels``,
                ``insertId``, ``httpRequest`` or ``sourceLocation``.
                ``timestamp`` may be integer nanoseconds, a datetime or an
                ISO string; it defaults to now. ``severity`` defaults to
                DEFAULT.
            *args: Logged the same way as the severity methods' arguments.
        """
        self._write(
            {"timestamp": now(), "severity": LogSeverity.DEFAULT, **metadata},
            self._normalize(args),
        )

    def _normalize(self, args: tuple[Any, ...]) -> Any:
        if not args:
            return None
        return normalize_arguments(*args)

    def _write_formatted(self, severity: LogSeverity, args: tuple[Any, ...]) -> None:
        self._write({"timestamp": now(), "severity": severity}, self._normalize(args))

    def _write(self, metadata: Mapping[str, Any], payload: Any) -> None:
        try:
            self._emit(dict(metadata), payload)
        except Exception as exc:  # noqa: BLE001
            _warn(f"Failed to write log entry: {exc!r}")

    def _emit(self, metadata: dict[str, Any], payload: Any) -> None:
        if self._request_context is not None:
            metadata = {**self._request_context.trace, **metadata}
        metadata["labels"] = {**self._labels, **(metadata.get("labels") or {})}

        timestamp = parse_timestamp(metadata.get("timestamp"))
        if isinstance(payload, Mapping) and "eventTime" in payload:
            event_time = parse_timestamp(payload["eventTime"])
            if event_time is not None:
                timestamp = event_time
        metadata["timestamp"] = now() if timestamp is None else timestamp

        severity = to_severity(metadata.get("severity"))
        if severity is None:
            _warn(
                f"Unknown LogSeverity '{metadata.get('severity')}', "
                f"falling back to LogSeverity.{LogSeverity.DEFAULT}"
            )
            severity = LogSeverity.DEFAULT
        metadata["severity"] = severity

        message, data = split_payload(payload)
        if not self.production:
            self._emit_development(metadata, message, data)
        elif self._transport is not None:
            self._emit_transport(metadata, message, data)
        else:
            self._emit_json(metadata, message, data)

    def _emit_development(
        self, metadata: dict[str, Any], message: Any, data: dict[str, Any]
    ) -> None:
        method = CONSOLE_SEVERITY[metadata["severity"]]
        iso = timestamp_to_iso_string(hr_to_timestamp(metadata["timestamp"]), 3)
        line = render_dev_line(
            iso,
            str(message) if message else None,
            data,
            trace=metadata.get("trace"),
            method=method,
            colors=stream_is_tty(self._console, method),
        )
        self._console.write(method, line)

    def _emit_json(
        self, metadata: dict[str, Any], message: Any, data: dict[str, Any]
    ) -> None:
        # See https://cloud.google.com/run/docs/logging#container-logs
        entry: dict[str, Any] = {}
        if message is not None:
            entry["message"] = message
        entry["timestamp"] = hr_to_timestamp(metadata["timestamp"])
        for key, value in metadata.items():
            lookup = LOG_ENTRY_MAPPING.get(key)
            if lookup is False:
                continue
            entry[lookup or key] = value
        if any(key in data for key in entry):
            entry["messageData"] = data
        else:
            entry.update(data)
        method = CONSOLE_SEVERITY[metadata["severity"]]
        self._console.write(method, json.dumps(cleanup_for_json(entry)))

    def _emit_transport(
        self, metadata: dict[str, Any], message: Any, data: dict[str, Any]
    ) -> None:
        timestamp = hr_to_timestamp(metadata.pop("timestamp"))
        labels = dict(metadata["labels"])
        labels.pop("log_name", None)
        metadata["labels"] = labels
        for key in list(metadata):
            if LOG_ENTRY_MAPPING.get(key) is False:
                data[key] = metadata.pop(key)
        entry = {**metadata, "timestamp": timestamp, "logName": self._log_name}
        if message and not data:
            self._transport(entry, message)
            return
        if message:
            data["message"] = message
        self._transport(entry, data)
