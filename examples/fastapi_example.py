"""Example FastAPI application with request-scoped structured logging.

Run with:
    uvicorn examples.fastapi_example:app --reload

Endpoints:
    /            - Logs a greeting through the request logger
    /users       - Logs structured data and times a fake database call
    /error       - Raises; the middleware reports the error and re-raises

Set PYTHON_ENV=production to get one JSON line per entry instead of
readable lines. Send a ``traceparent`` or ``X-Cloud-Trace-Context`` header
to see entries linked to a trace.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI

from cloudlogpy import Logging, StructuredLogger
from cloudlogpy.adapters.frameworks.fastapi import (
    create_request_logger_dependency,
    instrument_app,
)

# Project and service are read from GOOGLE_CLOUD_PROJECT, K_SERVICE, K_REVISION
logging = Logging.from_env(log_name="fastapi-example")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    detach = logging.attach_to_process()
    logging.logger.info("application started")
    yield
    detach()


app = FastAPI(title="Structured Logging Example", lifespan=lifespan)
instrument_app(app, logging)

get_log = create_request_logger_dependency(logging)


@app.get("/")
async def root(log: Annotated[StructuredLogger, Depends(get_log)]) -> dict[str, str]:
    """Root endpoint writing one entry with the request's trace."""
    log.info("Hello from the root endpoint")
    return {"message": "Hello! Check the console output."}


@app.get("/users")
async def get_users(
    log: Annotated[StructuredLogger, Depends(get_log)],
) -> dict[str, list[dict[str, str]]]:
    """Users endpoint demonstrating structured fields and timers."""
    log.time("fetch users")
    # Simulate database fetch
    await asyncio.sleep(0.05)
    users = [{"id": "1", "name": "Alice"}, {"id": "2", "name": "Bob"}]
    log.time_end("fetch users")
    log.child("db").debug("fetched users", {"count": len(users)})
    return {"users": users}


@app.get("/error")
async def error_endpoint() -> dict[str, str]:
    """Error endpoint; the exception ends up in Error Reporting."""
    raise ValueError("Intentional error for demonstration")
