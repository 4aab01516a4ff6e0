"""Shared test fixtures for all test modules."""

import io
from typing import Any

import pytest

from cloudlogpy.core.console import Console
from cloudlogpy.core.logger import StructuredLogger
from cloudlogpy.core.models import ServiceContext

try:
    import httpx
except ImportError:
    httpx = None

PROJECT_ID = "test-project"
LOG_NAME = "test-log"
SERVICE_CONTEXT = ServiceContext(service="test-service", version="1.0.0")


class CapturingConsole(Console):
    """Console writing to in-memory buffers."""

    def __init__(self) -> None:
        super().__init__(stdout=io.StringIO(), stderr=io.StringIO())
        self.calls: list[tuple[str, str]] = []

    def write(self, method: str, line: str) -> None:
        self.calls.append((method, line))
        super().write(method, line)

    @property
    def lines(self) -> list[str]:
        return [line for _, line in self.calls]


@pytest.fixture
def console() -> CapturingConsole:
    """Console capturing every written line with its console method."""
    return CapturingConsole()


@pytest.fixture
def make_logger(console: CapturingConsole):
    """Factory fixture for loggers writing to the capturing console.

    Usage:
        def test_something(make_logger):
            logger = make_logger(production=True)
    """

    def _make(
        production: bool = False,
        transport: Any = None,
        labels: dict[str, str] | None = None,
    ) -> StructuredLogger:
        return StructuredLogger(
            PROJECT_ID,
            LOG_NAME,
            SERVICE_CONTEXT,
            transport,
            labels,
            production=production,
            console=console,
        )

    return _make


@pytest.fixture
def transport_capture():
    """Fixture that returns a transport callable and the list of calls it got."""
    calls: list[tuple[dict[str, Any], Any]] = []

    def transport(entry: dict[str, Any], data: Any) -> None:
        calls.append((entry, data))

    return transport, calls


# === ASGI Test Fixtures ===


@pytest.fixture
def basic_asgi_app():
    """Basic ASGI app fixture that returns 200 OK."""
    from cloudlogpy.adapters.frameworks.asgi import Receive, Scope, Send

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        """Simple ASGI app that returns 200 OK."""
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": b"OK"})

    return app


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""
    from cloudlogpy.adapters.frameworks.asgi import Scope

    def _scope(
        method: str = "GET",
        path: str = "/test",
        headers: list[tuple[bytes, bytes]] | None = None,
        query_string: bytes = b"",
    ) -> Scope:
        return {
            "type": "http",
            "http_version": "1.1",
            "scheme": "http",
            "method": method,
            "path": path,
            "query_string": query_string,
            "headers": headers or [(b"host", b"example.com")],
            "client": ("10.0.0.1", 5000),
            "server": ("example.com", 80),
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""

    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        """Capture ASGI messages."""
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            async with asgi_test_client(app) as client:
                response = await client.get("/endpoint")
    """
    if httpx is None:
        pytest.skip("httpx not installed")

    def _get_client(app, raise_app_exceptions: bool = True):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(
                app=app, raise_app_exceptions=raise_app_exceptions
            ),
            base_url="http://test",
        )

    return _get_client


# === WSGI Test Fixtures ===


@pytest.fixture
def wsgi_test_client():
    """Factory fixture that creates an httpx.Client for WSGI testing.

    Usage:
        def test_something(wsgi_test_client):
            with wsgi_test_client(app) as client:
                response = client.get("/endpoint")
    """
    if httpx is None:
        pytest.skip("httpx not installed")

    def _get_client(app):
        """Return a Client context manager for the given app."""
        return httpx.Client(
            transport=httpx.WSGITransport(app=app), base_url="http://test"
        )

    return _get_client
