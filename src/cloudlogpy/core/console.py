"""Console sink and the human-readable development line format."""

import pprint
import sys
from typing import Any, TextIO

_COLORS = {"reset": "\033[0m", "dim": "\033[2m", "red": "\033[31m",
           "green": "\033[32m", "yellow": "\033[33m", "cyan": "\033[36m"}
_NO_COLORS = {k: "" for k in _COLORS}
_METHOD_COLORS = {"log": "dim", "debug": "cyan", "info": "green",
                  "warn": "yellow", "error": "red"}


def _is_tty(stream: TextIO) -> bool:
    return getattr(stream, "isatty", lambda: False)()


class Console:
    """Writes lines to the process streams.

    ``log``, ``debug`` and ``info`` go to stdout; ``warn`` and ``error`` go
    to stderr. Streams are looked up on every write unless given explicitly,
    so redirecting ``sys.stdout`` later still takes effect.
    """

    def __init__(self, stdout: TextIO | None = None, stderr: TextIO | None = None) -> None:
        self._stdout = stdout
        self._stderr = stderr

    @property
    def stdout(self) -> TextIO:
        return self._stdout or sys.stdout

    @property
    def stderr(self) -> TextIO:
        return self._stderr or sys.stderr

    def stream_for(self, method: str) -> TextIO:
        """Return the stream a console method writes to."""
        return self.stderr if method in ("warn", "error") else self.stdout

    def write(self, method: str, line: str) -> None:
        stream = self.stream_for(method)
        stream.write(line + "\n")
        stream.flush()


def render_dev_line(
    iso_timestamp: str,
    message: str | None,
    data: dict[str, Any],
    trace: str | None = None,
    method: str = "log",
    colors: bool = False,
) -> str:
    """Render a log record as one readable line.

    Args:
        iso_timestamp: Record time, already formatted.
        message: Message text, omitted when empty.
        data: Structured fields, pretty-printed when non-empty.
        trace: Full trace resource name; only the trace id is shown.
        method: Console method, selects the prefix colour.
        colors: Whether to wrap the prefix in ANSI colour codes.

    Returns:
        ``[<timestamp>[ / <trace id>]] <message> <data>``
    """
    prefix = iso_timestamp
    if trace:
        prefix += " / " + trace.rsplit("/", 1)[-1]
    c = _COLORS if colors else _NO_COLORS
    parts = [f"{c[_METHOD_COLORS.get(method, 'dim')]}[{prefix}]{c['reset']}"]
    if message:
        parts.append(message)
    if data:
        parts.append(pprint.pformat(data, sort_dicts=False))
    return " ".join(parts)


def stream_is_tty(console: Console, method: str) -> bool:
    """Check whether a console method writes to a terminal."""
    return _is_tty(console.stream_for(method))
