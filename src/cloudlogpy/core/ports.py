"""Port interfaces for log output and inbound requests.

These protocols define the contracts that adapters must implement.
The core depends only on these interfaces, not on any web framework.
"""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from cloudlogpy.core.models import ResponseInfo

Transport = Callable[[dict[str, Any], Any], None]
"""Receives ``(entry, data)`` for each production log call.

``entry`` holds the envelope fields (severity, labels, trace, timestamp and
``logName``); ``data`` is the message string or the structured payload.
"""

ExtractUser = Callable[[Any], Any]
"""Returns the user of a framework request, or a falsy value."""


@runtime_checkable
class RequestProperties(Protocol):
    """Port for reading the properties of an inbound HTTP request.

    Adapters implementing this protocol wrap one request shape.
    Examples: ASGIRequest, WSGIRequest, DjangoRequest, GenericRequest.
    """

    @property
    def raw(self) -> Any:
        """The framework request object the adapter wraps."""
        ...

    @property
    def method(self) -> str:
        """Upper-case HTTP method."""
        ...

    @property
    def url(self) -> str:
        """Absolute request URL with the original, unrewritten path."""
        ...

    def header(self, name: str) -> str | None:
        """Return a request header, looked up case-insensitively."""
        ...

    @property
    def protocol(self) -> str | None:
        """Protocol such as ``HTTP/1.1``, if known."""
        ...

    @property
    def remote_ip(self) -> str | None:
        """Client address, else the first ``X-Forwarded-For`` entry."""
        ...

    @property
    def response(self) -> ResponseInfo | None:
        """Response sent for this request, once known."""
        ...
