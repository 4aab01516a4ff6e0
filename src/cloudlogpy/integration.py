"""Entry point tying the logger, middleware and process hooks together."""

from collections.abc import Callable, Mapping
from typing import Any

from cloudlogpy.adapters.frameworks.asgi import ASGIApp, ASGILoggingMiddleware
from cloudlogpy.adapters.frameworks.wsgi import WSGIApp, WSGILoggingMiddleware
from cloudlogpy.adapters.process import attach_to_process
from cloudlogpy.config import LoggingConfig
from cloudlogpy.core.logger import StructuredLogger
from cloudlogpy.core.models import ServiceContext
from cloudlogpy.core.ports import ExtractUser, Transport


class Logging:
    """Root logger of an application plus its request integrations.

    Example:
        ```python
        logging = Logging(
            project_id="my-project",
            log_name="api",
            service_context={"service": "api", "version": "1.2.0"},
        )
        app = logging.asgi_middleware(app)
        detach = logging.attach_to_process()
        ```
    """

    def __init__(
        self,
        *,
        project_id: str,
        log_name: str,
        service_context: ServiceContext | Mapping[str, str],
        request_user_extractor: ExtractUser | None = None,
        extra_labels: Mapping[str, str] | None = None,
        production_transport: Transport | None = None,
        production: bool | None = None,
    ) -> None:
        """Initialize the root logger.

        Args:
            project_id: Google Cloud project id.
            log_name: Used for the ``log_name`` label.
            service_context: Used for error reports.
            request_user_extractor: Returns the user of a request to add to
                error reports.
            extra_labels: Extra labels applied to all entries.
            production_transport: Receives entries instead of stdout in
                production.
            production: Force production or development output. Defaults
                to ``PYTHON_ENV == "production"``, checked on each write.
        """
        self._extract_user = request_user_extractor
        self._extra_labels = dict(extra_labels or {})
        self.logger = StructuredLogger(
            project_id,
            log_name,
            service_context,
            production_transport,
            self._extra_labels,
            production=production,
        )

    @classmethod
    def from_config(cls, config: LoggingConfig, **kwargs: Any) -> "Logging":
        """Create the facade from a LoggingConfig; kwargs are passed through.

        A config with an ``environment`` fixes the output mode to what it
        names; without one the mode follows ``PYTHON_ENV`` on each write.
        """
        if config.environment:
            kwargs.setdefault("production", config.production)
        return cls(
            project_id=config.project_id,
            log_name=config.log_name,
            service_context=config.service_context,
            **kwargs,
        )

    @classmethod
    def from_env(cls, log_name: str | None = None, **kwargs: Any) -> "Logging":
        """Create the facade from the environment of a deployed service."""
        return cls.from_config(LoggingConfig.from_env(log_name), **kwargs)

    @property
    def request_user_extractor(self) -> ExtractUser | None:
        return self._extract_user

    def request_logger(self, request: Any) -> StructuredLogger:
        """Return a logger scoped to a request."""
        return self.logger.request_child(request, self._extract_user)

    def asgi_middleware(self, app: ASGIApp) -> ASGILoggingMiddleware:
        """Wrap an ASGI app so each request gets ``scope["state"]["log"]``."""
        return ASGILoggingMiddleware(app, self.logger, self._extract_user)

    def wsgi_middleware(self, app: WSGIApp) -> WSGILoggingMiddleware:
        """Wrap a WSGI app so each request gets ``environ["cloudlogpy.log"]``."""
        return WSGILoggingMiddleware(app, self.logger, self._extract_user)

    def attach_to_process(
        self, logger: StructuredLogger | None = None
    ) -> Callable[[], None]:
        """Report uncaught exceptions to a logger (the root logger by default).

        Returns:
            Function that detaches the hooks again.
        """
        return attach_to_process(logger or self.logger)
