"""Step definitions for the structured logging features."""

import json
from dataclasses import dataclass, field
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when

from cloudlogpy.adapters.frameworks.errors import report_request_exception
from cloudlogpy.core.arguments import normalize_arguments
from cloudlogpy.core.logger import StructuredLogger


@dataclass
class LoggingScenarioContext:
    """State shared between the steps of one scenario."""

    logger: StructuredLogger | None = None
    console: Any = None
    headers: list[tuple[bytes, bytes]] = field(default_factory=list)
    payload: Any = None

    def entry(self) -> dict[str, Any]:
        assert self.console.lines, "nothing was written"
        return json.loads(self.console.lines[-1])


@pytest.fixture
def ctx() -> LoggingScenarioContext:
    """Fresh scenario context for each test."""
    return LoggingScenarioContext()


def _request_logger(ctx: LoggingScenarioContext, asgi_scope) -> StructuredLogger:
    assert ctx.logger is not None
    headers = [(b"host", b"example.com"), *ctx.headers]
    return ctx.logger.request_child(asgi_scope(headers=headers))


# === Given ===


@given("a production logger")
def given_production_logger(
    ctx: LoggingScenarioContext, make_logger, console
) -> None:
    ctx.logger = make_logger(production=True)
    ctx.console = console


@given(parsers.parse('the request header "{name}" is "{value}"'))
def given_request_header(ctx: LoggingScenarioContext, name: str, value: str) -> None:
    ctx.headers.append((name.encode("latin-1"), value.encode("latin-1")))


# === When ===


@when(parsers.parse("the arguments {arguments} are normalized"))
def when_arguments_normalized(ctx: LoggingScenarioContext, arguments: str) -> None:
    ctx.payload = normalize_arguments(*json.loads(arguments))


@when(parsers.parse('the logger writes "{message}" with the fields {fields}'))
def when_logger_writes_fields(
    ctx: LoggingScenarioContext, message: str, fields: str
) -> None:
    ctx.logger.info(message, json.loads(fields))


@when(parsers.parse('the request logger writes "{message}"'))
def when_request_logger_writes(
    ctx: LoggingScenarioContext, asgi_scope, message: str
) -> None:
    _request_logger(ctx, asgi_scope).info(message)


@when(parsers.parse('a ValueError "{message}" is raised and reported'))
def when_exception_reported(ctx: LoggingScenarioContext, message: str) -> None:
    try:
        raise ValueError(message)
    except ValueError as exc:
        ctx.logger.report_error(exc)


@when(parsers.parse('the value "{value}" is reported'))
def when_value_reported(ctx: LoggingScenarioContext, value: str) -> None:
    ctx.logger.report_error(value)


@when(parsers.parse("the request fails with status {status:d}"))
def when_request_fails(ctx: LoggingScenarioContext, asgi_scope, status: int) -> None:
    exc = RuntimeError(f"failed with {status}")
    exc.status_code = status  # type: ignore[attr-defined]
    report_request_exception(_request_logger(ctx, asgi_scope), exc)


# === Then ===


@then(parsers.parse("the payload is {payload}"))
def then_payload_is(ctx: LoggingScenarioContext, payload: str) -> None:
    assert ctx.payload == json.loads(payload)


@then(parsers.parse('the entry has "{key}" equal to {value}'))
def then_entry_field(ctx: LoggingScenarioContext, key: str, value: str) -> None:
    assert ctx.entry()[key] == json.loads(value)


@then(parsers.parse('the entry has no "{key}"'))
def then_entry_lacks_field(ctx: LoggingScenarioContext, key: str) -> None:
    assert key not in ctx.entry()


@then(parsers.parse('the entry message starts with "{prefix}"'))
def then_message_starts_with(ctx: LoggingScenarioContext, prefix: str) -> None:
    assert ctx.entry()["message"].startswith(prefix)


@then(parsers.parse('the entry message ends with "{suffix}"'))
def then_message_ends_with(ctx: LoggingScenarioContext, suffix: str) -> None:
    assert ctx.entry()["message"].endswith(suffix)


@then(parsers.parse('the reported request has "{key}" equal to {value}'))
def then_reported_request_field(
    ctx: LoggingScenarioContext, key: str, value: str
) -> None:
    assert ctx.entry()["context"]["httpRequest"][key] == json.loads(value)
