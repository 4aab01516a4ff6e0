"""Read-only views over the request objects of different frameworks.

Each adapter implements the RequestProperties port for one request shape.
``as_request_properties`` picks the adapter by probing the object's
structure, so no web framework needs to be installed to use the core.
"""

from collections.abc import Mapping
from typing import Any

from cloudlogpy.core.models import ResponseInfo


def first_forwarded_for(value: str | None) -> str | None:
    """Return the first address of an ``X-Forwarded-For`` header."""
    if not value:
        return None
    first = value.split(",")[0].strip()
    return first or None


class BaseRequest:
    """Shared behaviour of the request adapters.

    Attributes:
        response: Response sent for the request, set by middleware once the
            response starts.
    """

    def __init__(self, raw: Any) -> None:
        self._raw = raw
        self.response: ResponseInfo | None = None

    @property
    def raw(self) -> Any:
        return self._raw

    @property
    def method(self) -> str:
        raise NotImplementedError

    @property
    def url(self) -> str:
        raise NotImplementedError

    @property
    def protocol(self) -> str | None:
        return None

    def header(self, name: str) -> str | None:
        raise NotImplementedError

    def client_address(self) -> str | None:
        return None

    @property
    def remote_ip(self) -> str | None:
        return self.client_address() or first_forwarded_for(
            self.header("x-forwarded-for")
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.method} {self.url})"


class ASGIRequest(BaseRequest):
    """ASGI HTTP scope, or a Starlette request wrapping one."""

    def __init__(self, scope: Mapping[str, Any], raw: Any = None) -> None:
        super().__init__(scope if raw is None else raw)
        self.scope = scope

    @property
    def method(self) -> str:
        return str(self.scope.get("method", "GET")).upper()

    def header(self, name: str) -> str | None:
        key = name.lower().encode("latin-1")
        for header_name, value in self.scope.get("headers") or []:
            if header_name.lower() == key:
                return value.decode("latin-1")
        return None

    def _host(self) -> str:
        host = self.header("host")
        if host:
            return host
        server = self.scope.get("server")
        if not server:
            return "localhost"
        hostname, port = server[0], server[1]
        if port is None:
            return hostname
        return f"{hostname}:{port}"

    @property
    def url(self) -> str:
        raw_path = self.scope.get("raw_path")
        if raw_path:
            path = raw_path.decode("latin-1")
        else:
            path = self.scope.get("root_path", "") + self.scope.get("path", "/")
        query = self.scope.get("query_string") or b""
        if query:
            path += "?" + query.decode("latin-1")
        scheme = self.scope.get("scheme", "http")
        return f"{scheme}://{self._host()}{path}"

    @property
    def protocol(self) -> str | None:
        version = self.scope.get("http_version")
        return f"HTTP/{version}" if version else None

    def client_address(self) -> str | None:
        client = self.scope.get("client")
        return client[0] if client else None


def _environ_key(name: str) -> str:
    key = name.upper().replace("-", "_")
    if key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
        return key
    return "HTTP_" + key


def _environ_url(environ: Mapping[str, Any]) -> str:
    path = environ.get("RAW_URI") or environ.get("REQUEST_URI")
    if not path:
        path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
        if environ.get("QUERY_STRING"):
            path += "?" + environ["QUERY_STRING"]
    host = environ.get("HTTP_HOST")
    if not host:
        host = environ.get("SERVER_NAME", "localhost")
        port = environ.get("SERVER_PORT")
        if port and port not in ("80", "443"):
            host += ":" + port
    scheme = environ.get("wsgi.url_scheme", "http")
    return f"{scheme}://{host}{path}"


class WSGIRequest(BaseRequest):
    """WSGI environ dict."""

    def __init__(self, environ: Mapping[str, Any]) -> None:
        super().__init__(environ)
        self.environ = environ

    @property
    def method(self) -> str:
        return str(self.environ.get("REQUEST_METHOD", "GET")).upper()

    def header(self, name: str) -> str | None:
        return self.environ.get(_environ_key(name))

    @property
    def url(self) -> str:
        return _environ_url(self.environ)

    @property
    def protocol(self) -> str | None:
        return self.environ.get("SERVER_PROTOCOL") or None

    def client_address(self) -> str | None:
        return self.environ.get("REMOTE_ADDR") or None


class DjangoRequest(BaseRequest):
    """Django ``HttpRequest``."""

    @property
    def method(self) -> str:
        return str(self.raw.method or "GET").upper()

    def header(self, name: str) -> str | None:
        return self.raw.META.get(_environ_key(name))

    @property
    def url(self) -> str:
        meta = dict(self.raw.META)
        meta["RAW_URI"] = self.raw.get_full_path()
        meta["wsgi.url_scheme"] = self.raw.scheme
        return _environ_url(meta)

    @property
    def protocol(self) -> str | None:
        return self.raw.META.get("SERVER_PROTOCOL") or None

    def client_address(self) -> str | None:
        return self.raw.META.get("REMOTE_ADDR") or None


class GenericRequest(BaseRequest):
    """Any request object with ``headers`` and, ideally, ``method``/``url``."""

    @property
    def method(self) -> str:
        return str(getattr(self.raw, "method", None) or "GET").upper()

    def header(self, name: str) -> str | None:
        headers = self.raw.headers
        value = headers.get(name)
        if value is not None:
            return value
        lowered = name.lower()
        for key, item in headers.items():
            if str(key).lower() == lowered:
                return item
        return None

    @property
    def url(self) -> str:
        return str(getattr(self.raw, "url", "") or "")

    @property
    def protocol(self) -> str | None:
        return getattr(self.raw, "protocol", None)

    def client_address(self) -> str | None:
        return getattr(self.raw, "remote_addr", None)


def as_request_properties(request: Any) -> BaseRequest:
    """Wrap a framework request in the matching adapter.

    Args:
        request: An ASGI scope, a WSGI environ, a Starlette or Django
            request, any object with ``headers``, or an adapter instance.

    Returns:
        The adapter for the request.

    Raises:
        TypeError: If the request shape is not recognized.
    """
    if isinstance(request, BaseRequest):
        return request
    if isinstance(request, Mapping):
        if request.get("type") in ("http", "websocket"):
            return ASGIRequest(request)
        if "REQUEST_METHOD" in request:
            return WSGIRequest(request)
    elif isinstance(getattr(request, "scope", None), Mapping):
        return ASGIRequest(request.scope, raw=request)
    elif hasattr(request, "META") and hasattr(request, "get_full_path"):
        return DjangoRequest(request)
    elif hasattr(request, "headers"):
        return GenericRequest(request)
    raise TypeError(f"Unsupported request type: {type(request).__name__}")
