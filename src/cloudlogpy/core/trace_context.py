"""Trace context extraction from inbound request headers.

Two header formats are understood:

* ``traceparent`` (W3C Trace Context): ``00-<32 hex>-<16 hex>-<2 hex flags>``
* ``x-cloud-trace-context`` (Google Cloud): ``<hex trace>/<decimal span>[;o=0|1]``

``traceparent`` wins when both headers are present and valid.
"""

import re
from collections.abc import Callable

from cloudlogpy.core.models import TraceContext

HeaderLookup = Callable[[str], str | None]

TRACEPARENT_HEADER = "traceparent"
CLOUD_TRACE_HEADER = "x-cloud-trace-context"

_TRACEPARENT = re.compile(
    r"^([0-9a-f]{2})-([0-9a-f]{32})-([0-9a-f]{16})-([0-9a-f]{2})$", re.IGNORECASE
)
_CLOUD_TRACE = re.compile(r"^([0-9a-fA-F]+)/([0-9]+)(?:;o=(.*))?$")

_MAX_SPAN_ID = 2**64 - 1


def _valid(trace_id: str, span_id: int) -> bool:
    return int(trace_id, 16) != 0 and 0 < span_id <= _MAX_SPAN_ID


def parse_traceparent(value: str | None) -> TraceContext | None:
    """Parse a W3C ``traceparent`` header value.

    Only version ``00`` is accepted.
    """
    if not value:
        return None
    match = _TRACEPARENT.match(value.strip())
    if match is None:
        return None
    version, trace_id, span_hex, flags = match.groups()
    if version != "00":
        return None
    span_id = int(span_hex, 16)
    if not _valid(trace_id, span_id):
        return None
    return TraceContext(
        trace_id=trace_id.lower(),
        span_id=f"{span_id:016x}",
        sampled=bool(int(flags, 16) & 0x1),
    )


def parse_cloud_trace_context(value: str | None) -> TraceContext | None:
    """Parse an ``x-cloud-trace-context`` header value.

    The span id is decimal and may use the whole unsigned 64-bit range.
    The request counts as sampled unless ``o=0`` is given.
    """
    if not value:
        return None
    match = _CLOUD_TRACE.match(value.strip())
    if match is None:
        return None
    trace_id, span_decimal, options = match.groups()
    span_id = int(span_decimal)
    if not _valid(trace_id, span_id):
        return None
    return TraceContext(
        trace_id=trace_id.lower(),
        span_id=f"{span_id:016x}",
        sampled=options != "0",
    )


def parse_trace_headers(get_header: HeaderLookup) -> TraceContext | None:
    """Return the trace context carried by a request, if any."""
    return parse_traceparent(get_header(TRACEPARENT_HEADER)) or (
        parse_cloud_trace_context(get_header(CLOUD_TRACE_HEADER))
    )


def extract_trace_context(project_id: str, get_header: HeaderLookup) -> dict:
    """Extract the log entry trace fields from request headers.

    Args:
        project_id: Google Cloud project the trace belongs to.
        get_header: Returns the value of a header (names are given in lower
            case), or None when absent.

    Returns:
        ``{"trace": "projects/<project>/traces/<trace id>", "spanId": ...,
        "traceSampled": ...}``, or an empty dict when no valid header is
        present.
    """
    context = parse_trace_headers(get_header)
    if context is None:
        return {}
    return context.to_log_fields(project_id)
