"""Structured logging for Google Cloud from Python web applications."""

from cloudlogpy.adapters.frameworks.asgi import ASGILoggingMiddleware
from cloudlogpy.adapters.frameworks.wsgi import WSGILoggingMiddleware
from cloudlogpy.adapters.logging import StructuredLoggingHandler
from cloudlogpy.adapters.process import attach_to_process
from cloudlogpy.config import LoggingConfig
from cloudlogpy.core.arguments import normalize_arguments
from cloudlogpy.core.duration import format_duration
from cloudlogpy.core.logger import LOG_ENTRY_MAPPING, StructuredLogger
from cloudlogpy.core.models import ResponseInfo, ServiceContext, TraceContext
from cloudlogpy.core.request_transformers import (
    request_to_error_reporting_http_request,
    request_to_http_request,
)
from cloudlogpy.core.serialize import cleanup_for_json
from cloudlogpy.core.severity import LogSeverity
from cloudlogpy.core.trace_context import extract_trace_context
from cloudlogpy.integration import Logging

__all__ = [
    "ASGILoggingMiddleware",
    "LOG_ENTRY_MAPPING",
    "LogSeverity",
    "Logging",
    "LoggingConfig",
    "ResponseInfo",
    "ServiceContext",
    "StructuredLogger",
    "StructuredLoggingHandler",
    "TraceContext",
    "WSGILoggingMiddleware",
    "attach_to_process",
    "cleanup_for_json",
    "extract_trace_context",
    "format_duration",
    "normalize_arguments",
    "request_to_error_reporting_http_request",
    "request_to_http_request",
]
