"""Tests for StructuredLogger output in development and production."""

import json
import re
from types import SimpleNamespace

import pytest

from cloudlogpy.core.logger import StructuredLogger, split_payload
from cloudlogpy.core.severity import LogSeverity

TIMESTAMP = 1595578749576123456
TRACE_ID = "59973d340da5c40f77349df948ef7531"


def parse(line: str) -> dict:
    return json.loads(line)


class SelfSerializing:
    def __init__(self) -> None:
        self.kind = "self"

    def __json__(self, key: str) -> "SelfSerializing":
        return self


@pytest.mark.core
@pytest.mark.tier(0)
class TestSplitPayload:
    """Tests for split_payload."""

    def test_none(self) -> None:
        assert split_payload(None) == (None, {})

    def test_string(self) -> None:
        assert split_payload("hi") == ("hi", {})

    def test_scalar_is_formatted(self) -> None:
        assert split_payload(42) == ("42", {})

    def test_message_is_taken_from_mapping(self) -> None:
        source = {"message": "hi", "a": 1}
        assert split_payload(source) == ("hi", {"a": 1})
        assert source == {"message": "hi", "a": 1}

    def test_empty_mapping(self) -> None:
        assert split_payload({}) == (None, {})

    def test_object_without_fields_is_formatted(self) -> None:
        assert split_payload({1, 2}) == ("{1, 2}", {})

    def test_non_string_keys_become_strings(self) -> None:
        payload = {404: "not found", "message": "hi"}
        assert split_payload(payload) == ("hi", {"404": "not found"})


@pytest.mark.core
@pytest.mark.tier(0)
class TestDevelopmentOutput:
    """Readable lines outside production."""

    def test_line_format(self, make_logger, console) -> None:
        make_logger().write(
            {"severity": "INFO", "timestamp": TIMESTAMP}, "hello", {"a": 1}
        )
        assert console.calls == [
            ("info", "[2020-07-24T08:19:09.576Z] hello {'a': 1}")
        ]

    def test_concatenated_message(self, make_logger, console) -> None:
        make_logger().write({"timestamp": TIMESTAMP}, "took", 12, "ms")
        assert console.lines == ["[2020-07-24T08:19:09.576Z] took 12 ms"]

    @pytest.mark.parametrize(
        ("method", "console_method"),
        [
            ("log", "log"),
            ("debug", "debug"),
            ("info", "info"),
            ("notice", "info"),
            ("warn", "warn"),
            ("warning", "warn"),
            ("error", "error"),
            ("critical", "error"),
            ("alert", "error"),
            ("emergency", "error"),
        ],
    )
    def test_severity_methods_route_to_console(
        self, make_logger, console, method: str, console_method: str
    ) -> None:
        getattr(make_logger(), method)("hello")
        assert console.calls[0][0] == console_method

    def test_stderr_receives_errors(self, make_logger, console) -> None:
        logger = make_logger()
        logger.info("to stdout")
        logger.error("to stderr")
        assert "to stdout" in console.stdout.getvalue()
        assert "to stderr" in console.stderr.getvalue()
        assert "to stderr" not in console.stdout.getvalue()

    def test_unknown_severity_falls_back_with_warning(
        self, make_logger, console
    ) -> None:
        with pytest.warns(RuntimeWarning, match="Unknown LogSeverity 'FATAL'"):
            make_logger().write({"severity": "FATAL"}, "hello")
        assert console.calls[0][0] == "log"


@pytest.mark.core
@pytest.mark.tier(0)
class TestProductionJson:
    """One JSON line per call in production."""

    def test_entry_fields(self, make_logger, console) -> None:
        make_logger(production=True).write(
            {"severity": "INFO", "timestamp": TIMESTAMP, "insertId": "42"},
            "hello",
            {"a": 1},
        )
        entry = parse(console.lines[0])
        assert entry == {
            "message": "hello",
            "timestamp": {"seconds": 1595578749, "nanos": 576123456},
            "severity": "INFO",
            "logging.googleapis.com/insertId": "42",
            "logging.googleapis.com/labels": {"log_name": "test-log"},
            "a": 1,
        }

    def test_no_message_key_without_message(self, make_logger, console) -> None:
        make_logger(production=True).info({"a": 1})
        assert "message" not in parse(console.lines[0])

    def test_colliding_data_goes_under_message_data(
        self, make_logger, console
    ) -> None:
        make_logger(production=True).info("hello", {"severity": "mine", "b": 2})
        entry = parse(console.lines[0])
        assert entry["severity"] == "INFO"
        assert entry["messageData"] == {"severity": "mine", "b": 2}
        assert "b" not in entry

    def test_data_is_serialized(self, make_logger, console) -> None:
        make_logger(production=True).info("bytes", {"raw": b"ab"})
        assert parse(console.lines[0])["raw"] == {
            "@type": "Buffer",
            "length": 2,
            "base64": "YWI=",
        }

    def test_mapping_with_non_string_keys_keeps_entry_shape(
        self, make_logger, console
    ) -> None:
        make_logger(production=True).info({404: "not found"})
        entry = parse(console.lines[0])
        assert isinstance(entry, dict)
        assert entry["severity"] == "INFO"
        assert entry["logging.googleapis.com/labels"] == {"log_name": "test-log"}
        assert entry["404"] == "not found"

    def test_self_returning_json_hook_is_written(self, make_logger, console) -> None:
        make_logger(production=True).info("hook", {"value": SelfSerializing()})
        entry = parse(console.lines[0])
        assert entry["message"] == "hook"
        assert entry["value"] == {"kind": "self"}

    def test_event_time_overrides_timestamp(self, make_logger, console) -> None:
        make_logger(production=True).info(
            {"eventTime": "2020-07-24T08:19:09.576123456Z", "x": 1}
        )
        entry = parse(console.lines[0])
        assert entry["timestamp"] == {"seconds": 1595578749, "nanos": 576123456}
        assert entry["eventTime"] == "2020-07-24T08:19:09.576123456Z"

    def test_datetime_timestamp_metadata(self, make_logger, console) -> None:
        make_logger(production=True).write(
            {"timestamp": "2020-07-24T08:19:09Z"}, "hello"
        )
        assert parse(console.lines[0])["timestamp"] == {
            "seconds": 1595578749,
            "nanos": 0,
        }

    def test_routing_follows_severity(self, make_logger, console) -> None:
        logger = make_logger(production=True)
        logger.warn("careful")
        logger.debug("detail")
        assert [method for method, _ in console.calls] == ["warn", "debug"]

    def test_environment_selects_production(
        self, console, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        logger = StructuredLogger("p", "l", {"service": "s"}, console=console)
        monkeypatch.setenv("PYTHON_ENV", "development")
        logger.info("dev")
        monkeypatch.setenv("PYTHON_ENV", "production")
        logger.info("prod")
        assert console.lines[0].startswith("[")
        assert parse(console.lines[1])["message"] == "prod"


@pytest.mark.core
@pytest.mark.tier(0)
class TestProductionTransport:
    """Entries handed to a transport function."""

    def test_message_only(self, make_logger, transport_capture) -> None:
        transport, calls = transport_capture
        make_logger(production=True, transport=transport).write(
            {"severity": "INFO", "timestamp": TIMESTAMP}, "hello"
        )
        assert calls == [
            (
                {
                    "severity": LogSeverity.INFO,
                    "labels": {},
                    "timestamp": {"seconds": 1595578749, "nanos": 576123456},
                    "logName": "test-log",
                },
                "hello",
            )
        ]

    def test_data_carries_message(self, make_logger, transport_capture) -> None:
        transport, calls = transport_capture
        make_logger(production=True, transport=transport, labels={"team": "x"}).info(
            "hello", {"a": 1}
        )
        entry, data = calls[0]
        assert entry["labels"] == {"team": "x"}
        assert data == {"a": 1, "message": "hello"}

    def test_transport_not_used_in_development(
        self, make_logger, transport_capture, console
    ) -> None:
        transport, calls = transport_capture
        make_logger(transport=transport).info("hello")
        assert calls == []
        assert len(console.lines) == 1

    def test_transport_failure_becomes_warning(self, make_logger) -> None:
        def transport(entry, data):
            raise ConnectionError("down")

        logger = make_logger(production=True, transport=transport)
        with pytest.warns(RuntimeWarning, match="Failed to write log entry"):
            logger.info("hello")


@pytest.mark.core
@pytest.mark.tier(0)
class TestChildLoggers:
    """Tests for child and request_child."""

    def test_child_adds_type_label(self, make_logger, console) -> None:
        parent = make_logger(production=True, labels={"team": "x"})
        parent.child("billing").info("hello")
        assert parse(console.lines[0])["logging.googleapis.com/labels"] == {
            "log_name": "test-log",
            "team": "x",
            "type": "billing",
        }
        assert parent.labels == {"log_name": "test-log", "team": "x"}

    def test_request_child_adds_trace(self, make_logger, console, asgi_scope) -> None:
        scope = asgi_scope(
            headers=[(b"traceparent", f"00-{TRACE_ID}-00f067aa0ba902b7-01".encode())]
        )
        make_logger(production=True).request_child(scope).info("hello")
        entry = parse(console.lines[0])
        assert entry["logging.googleapis.com/trace"] == (
            f"projects/test-project/traces/{TRACE_ID}"
        )
        assert entry["logging.googleapis.com/spanId"] == "00f067aa0ba902b7"
        assert entry["logging.googleapis.com/trace_sampled"] is True
        assert entry["logging.googleapis.com/labels"]["type"] == "request"

    def test_request_child_shows_trace_in_development(
        self, make_logger, console, asgi_scope
    ) -> None:
        scope = asgi_scope(headers=[(b"x-cloud-trace-context", f"{TRACE_ID}/1".encode())])
        make_logger().request_child(scope).info("hello")
        assert f" / {TRACE_ID}] hello" in console.lines[0]

    def test_child_of_request_logger_keeps_trace(
        self, make_logger, console, asgi_scope
    ) -> None:
        scope = asgi_scope(headers=[(b"x-cloud-trace-context", f"{TRACE_ID}/1".encode())])
        logger = make_logger(production=True).request_child(scope).child("db")
        logger.info("query")
        entry = parse(console.lines[0])
        assert entry["logging.googleapis.com/trace"].endswith(TRACE_ID)
        assert entry["logging.googleapis.com/labels"]["type"] == "db"

    def test_explicit_metadata_wins_over_request_trace(
        self, make_logger, console, asgi_scope
    ) -> None:
        scope = asgi_scope(headers=[(b"x-cloud-trace-context", f"{TRACE_ID}/1".encode())])
        logger = make_logger(production=True).request_child(scope)
        logger.write({"trace": "projects/x/traces/y"}, "hello")
        assert parse(console.lines[0])["logging.googleapis.com/trace"] == (
            "projects/x/traces/y"
        )

    def test_unsupported_request_type(self, make_logger) -> None:
        with pytest.raises(TypeError, match="Unsupported request type"):
            make_logger().request_child(42)


@pytest.mark.core
@pytest.mark.tier(1)
class TestConsoleCompatibleMethods:
    """Tests for assert_, trace and the timers."""

    def test_assert_passes_silently(self, make_logger, console) -> None:
        make_logger().assert_(True, "never shown")
        assert console.calls == []

    def test_assert_failure(self, make_logger, console) -> None:
        make_logger().assert_(False, "Hello, world!")
        method, line = console.calls[0]
        assert method == "warn"
        assert line.endswith("] Assertion failed: Hello, world!")

    def test_assert_failure_without_message(self, make_logger, console) -> None:
        make_logger().assert_(0)
        assert console.lines[0].endswith("] Assertion failed")

    def test_assert_failure_with_data(self, make_logger, console) -> None:
        make_logger().assert_(None, {"a": 1})
        assert console.lines[0].endswith("] Assertion failed {'a': 1}")

    def test_trace_appends_caller_stack(self, make_logger, console) -> None:
        make_logger().trace("here")
        method, line = console.calls[0]
        assert method == "debug"
        assert "] here \n" in line
        assert "in test_trace_appends_caller_stack" in line
        assert "in trace\n" not in line

    def test_trace_without_arguments(self, make_logger, console) -> None:
        make_logger().trace()
        assert "] Trace\n" in console.lines[0]

    def test_timer(self, make_logger, console) -> None:
        logger = make_logger()
        logger.time("load")
        assert logger.time_end("load") is True
        assert re.search(r"\] load: \d+(\.\d{3})?(ns|µs|ms|s)$", console.lines[0])

    def test_default_label(self, make_logger, console) -> None:
        logger = make_logger()
        logger.time()
        logger.time_end()
        assert "] default: " in console.lines[0]

    def test_time_log_keeps_timer_running(self, make_logger, console) -> None:
        logger = make_logger()
        logger.time("load")
        assert logger.time_log("load", "step", 1) is True
        assert logger.time_end("load") is True
        assert re.search(r"\] load: \S+ step 1$", console.lines[0])

    def test_duplicate_timer_warns(self, make_logger) -> None:
        logger = make_logger()
        logger.time("load")
        with pytest.warns(RuntimeWarning, match="Label 'load' already exists"):
            logger.time("load")

    def test_unknown_timer_warns(self, make_logger, console) -> None:
        logger = make_logger()
        with pytest.warns(RuntimeWarning, match="No such label 'x'"):
            assert logger.time_end("x") is False
        with pytest.warns(RuntimeWarning, match="No such label 'x'"):
            assert logger.time_log("x") is False
        assert console.calls == []


@pytest.mark.core
@pytest.mark.tier(1)
class TestReportError:
    """Tests for report_error."""

    def test_raised_exception(self, make_logger, console) -> None:
        try:
            raise ValueError("boom")
        except ValueError as exc:
            make_logger(production=True).report_error(exc)
        method, line = console.calls[0]
        entry = parse(line)
        assert method == "error"
        assert entry["severity"] == "ERROR"
        assert entry["message"].startswith("Traceback (most recent call last):")
        assert entry["message"].endswith("ValueError: boom")
        assert entry["serviceContext"] == {
            "service": "test-service",
            "version": "1.0.0",
        }
        assert re.fullmatch(
            r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{9}Z", entry["eventTime"]
        )
        assert "context" not in entry

    def test_error_attributes_are_kept(self, make_logger, console) -> None:
        error = RuntimeError("failed")
        error.code = 42  # type: ignore[attr-defined]
        make_logger(production=True).report_error(error)
        assert parse(console.lines[0])["error"] == {"code": 42}

    def test_unraised_value_gets_caller_stack(self, make_logger, console) -> None:
        make_logger(production=True).report_error("something broke")
        message = parse(console.lines[0])["message"]
        assert message.startswith("Traceback (most recent call last):\n")
        assert message.endswith("something broke")
        assert "in test_unraised_value_gets_caller_stack" in message
        assert "in report_error" not in message
        assert "in build_error_report" not in message

    def test_error_like_object_keeps_its_stack(self, make_logger, console) -> None:
        error = SimpleNamespace(message="m", stack="Error: m\n    at x")
        make_logger(production=True).report_error(error)
        assert parse(console.lines[0])["message"] == "Error: m\n    at x"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("FATAL", "ERROR"), ("WARNING", "WARNING"), (None, "ERROR")],
    )
    def test_severity_from_error(
        self, make_logger, console, value: str | None, expected: str
    ) -> None:
        error = ValueError("x")
        error.severity = value  # type: ignore[attr-defined]
        make_logger(production=True).report_error(error)
        assert parse(console.lines[0])["severity"] == expected

    def test_severity_from_mapping(self, make_logger, console) -> None:
        make_logger(production=True).report_error(
            {"severity": "WARNING", "message": "boom"}
        )
        entry = parse(console.lines[0])
        assert entry["severity"] == "WARNING"
        assert entry["message"].endswith("boom")

    def test_explicit_severity(self, make_logger, console) -> None:
        make_logger(production=True).report_error(
            ValueError("x"), LogSeverity.CRITICAL
        )
        assert parse(console.lines[0])["severity"] == "CRITICAL"

    def test_request_context(self, make_logger, console, asgi_scope) -> None:
        scope = asgi_scope(
            headers=[(b"host", b"example.com"), (b"user-agent", b"agent/1.0")]
        )
        logger = make_logger(production=True).request_child(
            scope, extract_user=lambda raw: f"user-of-{raw['path']}"
        )
        logger.report_error(ValueError("x"))
        assert parse(console.lines[0])["context"] == {
            "httpRequest": {
                "method": "GET",
                "url": "http://example.com/test",
                "userAgent": "agent/1.0",
                "remoteIp": "10.0.0.1",
            },
            "user": "user-of-/test",
        }

    def test_user_on_error_wins(self, make_logger, console, asgi_scope) -> None:
        error = ValueError("x")
        error.user = "from-error"  # type: ignore[attr-defined]
        logger = make_logger(production=True).request_child(
            asgi_scope(), extract_user=lambda raw: "from-request"
        )
        logger.report_error(error)
        assert parse(console.lines[0])["context"]["user"] == "from-error"

    def test_development_output(self, make_logger, console) -> None:
        make_logger().report_error(ValueError("boom"))
        method, line = console.calls[0]
        assert method == "error"
        assert "ValueError: boom" in line
