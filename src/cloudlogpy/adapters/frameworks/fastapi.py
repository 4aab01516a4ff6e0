"""FastAPI adapter for request-scoped loggers."""

from collections.abc import Callable
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request

from cloudlogpy.adapters.frameworks.asgi import STATE_KEY, ASGILoggingMiddleware
from cloudlogpy.core.logger import StructuredLogger

if TYPE_CHECKING:
    from cloudlogpy.integration import Logging


def instrument_app(app: FastAPI, logging: "Logging") -> FastAPI:
    """Add the logging middleware to a FastAPI app.

    Args:
        app: Application to instrument.
        logging: Facade holding the root logger and user extractor.

    Returns:
        The same app, for chaining.
    """
    app.add_middleware(
        ASGILoggingMiddleware,
        logger=logging.logger,
        extract_user=logging.request_user_extractor,
    )
    return app


def create_request_logger_dependency(
    logging: "Logging",
) -> Callable[[Request], StructuredLogger]:
    """Create a dependency returning the logger of the current request.

    Reuses the logger attached by ``ASGILoggingMiddleware`` when the app is
    instrumented, otherwise creates one and stores it on ``request.state``.

    Example:
        ```python
        get_log = create_request_logger_dependency(logging)

        @app.get("/items")
        async def items(log: StructuredLogger = Depends(get_log)):
            log.info("listing items")
        ```
    """

    def get_request_logger(request: Request) -> StructuredLogger:
        log = getattr(request.state, STATE_KEY, None)
        if log is None:
            log = logging.request_logger(request)
            setattr(request.state, STATE_KEY, log)
        return log

    return get_request_logger
