"""Core domain models for structured log records."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TypedDict


@dataclass(frozen=True)
class TraceContext:
    """Distributed trace identifiers of an inbound request.

    Attributes:
        trace_id: Trace id as 32 lowercase hex digits.
        span_id: Span id as 16 lowercase hex digits.
        sampled: Whether the caller sampled the trace.
    """

    trace_id: str
    span_id: str
    sampled: bool

    def to_log_fields(self, project_id: str) -> dict[str, Any]:
        """Return the trace fields of a Cloud Logging entry."""
        return {
            "trace": f"projects/{project_id}/traces/{self.trace_id}",
            "spanId": self.span_id,
            "traceSampled": self.sampled,
        }


@dataclass(frozen=True)
class ServiceContext:
    """Service identity attached to error reports.

    Attributes:
        service: Service name, e.g. the Cloud Run service.
        version: Deployed revision, if known.
    """

    service: str
    version: str | None = None

    def to_dict(self) -> dict[str, str]:
        if self.version is None:
            return {"service": self.service}
        return {"service": self.service, "version": self.version}


@dataclass(frozen=True)
class ResponseInfo:
    """Status and headers of the response sent for a request.

    Attributes:
        status_code: HTTP status code.
        headers: Response headers with lower-cased names.
    """

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)


class HttpRequest(TypedDict, total=False):
    """Cloud Logging ``HttpRequest`` structure."""

    requestMethod: str
    requestUrl: str
    requestSize: str
    status: int
    responseSize: str
    userAgent: str
    remoteIp: str
    referer: str
    protocol: str


class ErrorReportingHttpRequest(TypedDict, total=False):
    """Error Reporting ``HttpRequestContext`` structure."""

    method: str
    url: str
    userAgent: str
    referrer: str
    responseStatusCode: int
    remoteIp: str


class ErrorContext(TypedDict, total=False):
    """Context block of an error report."""

    httpRequest: ErrorReportingHttpRequest
    user: str


class ErrorReport(TypedDict, total=False):
    """Error event in the format Error Reporting reads from log entries."""

    eventTime: str
    serviceContext: dict[str, str]
    message: str
    context: ErrorContext
