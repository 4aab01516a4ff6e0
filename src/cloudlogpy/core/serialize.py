"""Conversion of arbitrary values into JSON-safe structures.

``cleanup_for_json`` walks a value depth first and replaces everything
``json.dumps`` cannot encode (or would encode lossily) with a JSON-safe
equivalent:

* bytes become ``{"@type": "Buffer", "length": ..., "base64": ...}``
* compiled patterns become ``{"@type": "RegExp", "source": ..., "flags": ...}``
* dates and times become ISO-8601 strings
* sets become lists, mappings with non-string keys become
  ``[{"key": ..., "value": ...}]`` lists
* exceptions become ``{"name": ..., "stack": ..., "message": ...}`` objects
* a value reached again through its own descendants becomes ``"[Circular]"``

Handling is an ordered chain of ``(predicate, handler)`` pairs in
``SERIALIZERS``; the first matching predicate wins. New types are supported by
inserting a pair at the right position.
"""

import base64
import dataclasses
import inspect
import math
import re
import traceback
import types
from collections.abc import Callable, Iterable, Iterator, Mapping, Set
from contextlib import contextmanager
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

CIRCULAR = "[Circular]"

# Largest integer a JSON consumer using IEEE doubles reads back exactly
MAX_SAFE_INTEGER = 2**53 - 1

# Inline flag letters in the order Python documents them
_PATTERN_FLAGS = (
    (re.ASCII, "a"),
    (re.IGNORECASE, "i"),
    (re.LOCALE, "L"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
)

_ERROR_FIELDS = ("name", "message", "stack")


def pattern_flags(pattern: re.Pattern) -> str:
    """Return the inline flag letters set on a compiled pattern."""
    return "".join(letter for flag, letter in _PATTERN_FLAGS if pattern.flags & flag)


def pattern_source(pattern: re.Pattern) -> str:
    """Return the source of a compiled pattern as text."""
    source = pattern.pattern
    if isinstance(source, bytes):
        return source.decode("latin-1")
    return source


def format_datetime(value: date | time) -> str:
    """Format a date or time as ISO-8601 with millisecond precision.

    Datetimes are converted to UTC and suffixed with ``Z``; naive datetimes
    are taken as local time.
    """
    if isinstance(value, datetime):
        utc = value.astimezone(timezone.utc)
        return f"{utc:%Y-%m-%dT%H:%M:%S}.{utc.microsecond // 1000:03d}Z"
    if isinstance(value, date):
        return value.isoformat()
    return value.isoformat(timespec="milliseconds")


def format_exception_stack(error: BaseException) -> str | None:
    """Return the formatted traceback of a raised exception, if it has one."""
    if error.__traceback__ is None:
        return None
    return "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    ).rstrip("\n")


def own_properties(value: Any) -> dict[Any, Any]:
    """Return the fields a value exposes, as a new dict.

    Mappings give their items, sequences and byte strings give their items
    keyed by index (``"0"``, ``"1"``, ...), dataclasses give their fields and
    other objects give their public instance attributes. Anything else gives
    an empty dict.
    """
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (list, tuple, bytes, bytearray)):
        return {str(index): item for index, item in enumerate(value)}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    try:
        attributes = vars(value)
    except TypeError:
        return {}
    return {k: v for k, v in attributes.items() if not k.startswith("_")}


class _Serializer:
    """Single traversal of a value; tracks the identities being visited."""

    def __init__(self) -> None:
        self.visiting: set[int] = set()

    def convert(self, value: Any, parent_key: str = "", hooks: bool = True) -> Any:
        for predicate, handler in SERIALIZERS:
            if not hooks and predicate in _HOOK_PREDICATES:
                continue
            if predicate(self, value):
                return handler(self, value, parent_key)
        return str(value)

    @contextmanager
    def visit(self, value: Any) -> Iterator[None]:
        self.visiting.add(id(value))
        try:
            yield
        finally:
            self.visiting.discard(id(value))

    def convert_items(self, items: Iterable[tuple[Any, Any]]) -> dict[str, Any]:
        return {str(k): self.convert(v, str(k)) for k, v in items}

    def convert_sequence(self, values: Iterable[Any]) -> list[Any]:
        return [self.convert(v, str(i)) for i, v in enumerate(values)]


Predicate = Callable[[_Serializer, Any], bool]
Handler = Callable[[_Serializer, Any, str], Any]


def _is_buffer(_: _Serializer, value: Any) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview))


def _convert_buffer(_: _Serializer, value: Any, __: str) -> dict[str, Any]:
    data = bytes(value)
    return {
        "@type": "Buffer",
        "length": len(data),
        "base64": base64.b64encode(data).decode("ascii"),
    }


def _is_pattern(_: _Serializer, value: Any) -> bool:
    return isinstance(value, re.Pattern)


def _convert_pattern(_: _Serializer, value: re.Pattern, __: str) -> dict[str, str]:
    return {
        "@type": "RegExp",
        "source": pattern_source(value),
        "flags": pattern_flags(value),
    }


def _is_datetime(_: _Serializer, value: Any) -> bool:
    return isinstance(value, (date, time))


def _convert_datetime(_: _Serializer, value: Any, __: str) -> str:
    return format_datetime(value)


def _is_big_number(_: _Serializer, value: Any) -> bool:
    if isinstance(value, Decimal):
        return True
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and abs(value) > MAX_SAFE_INTEGER
    )


def _convert_big_number(_: _Serializer, value: Any, __: str) -> str:
    return str(value)


def _has_json_hook(_: _Serializer, value: Any) -> bool:
    return value is not None and callable(getattr(value, "__json__", None))


def _convert_hook_result(
    s: _Serializer, value: Any, result: Any, parent_key: str
) -> Any:
    # A hook returning its own object is walked as that object, hooks skipped
    if result is value:
        return s.convert(value, parent_key, hooks=False)
    with s.visit(value):
        return s.convert(result, parent_key)


def _convert_json_hook(s: _Serializer, value: Any, parent_key: str) -> Any:
    return _convert_hook_result(s, value, value.__json__(parent_key), parent_key)


def _has_asdict_hook(_: _Serializer, value: Any) -> bool:
    return value is not None and callable(getattr(value, "_asdict", None))


def _convert_asdict_hook(s: _Serializer, value: Any, parent_key: str) -> Any:
    return _convert_hook_result(s, value, value._asdict(), parent_key)


def _is_circular(s: _Serializer, value: Any) -> bool:
    return id(value) in s.visiting


def _convert_circular(_: _Serializer, __: Any, ___: str) -> str:
    return CIRCULAR


def _is_set(_: _Serializer, value: Any) -> bool:
    return isinstance(value, Set)


def _convert_set(s: _Serializer, value: Set, parent_key: str) -> list[Any]:
    with s.visit(value):
        return [s.convert(v, parent_key) for v in value]


def is_map_like(value: Any) -> bool:
    """Check for a mapping that cannot be written as a JSON object."""
    return isinstance(value, Mapping) and any(not isinstance(k, str) for k in value)


def _is_map_like(_: _Serializer, value: Any) -> bool:
    return is_map_like(value)


def _convert_map(s: _Serializer, value: Mapping, parent_key: str) -> list[Any]:
    with s.visit(value):
        return [
            {"key": s.convert(k, parent_key), "value": s.convert(v, str(k))}
            for k, v in value.items()
        ]


def _is_sequence(_: _Serializer, value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _convert_sequence(s: _Serializer, value: Any, _: str) -> list[Any]:
    with s.visit(value):
        return s.convert_sequence(value)


def _is_iterable(_: _Serializer, value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(value, (str, Mapping))


def _convert_iterable(s: _Serializer, value: Iterable, _: str) -> list[Any]:
    with s.visit(value):
        return s.convert_sequence(list(value))


def _is_error(_: _Serializer, value: Any) -> bool:
    if isinstance(value, BaseException):
        return True
    return not isinstance(value, Mapping) and all(
        hasattr(value, field) for field in _ERROR_FIELDS
    )


def _convert_error(s: _Serializer, value: Any, _: str) -> dict[str, Any]:
    props = {
        k: v for k, v in own_properties(value).items() if k not in _ERROR_FIELDS
    }
    if isinstance(value, BaseException):
        name = type(value).__name__
        stack = format_exception_stack(value)
        message = str(value)
        if value.__cause__ is not None:
            props.setdefault("cause", value.__cause__)
    else:
        name = getattr(value, "name", None)
        if not name or name == "Error":
            name = type(value).__name__
        stack = getattr(value, "stack", None)
        message = getattr(value, "message", None)
    with s.visit(value):
        return s.convert_items(
            {**props, "name": name, "stack": stack, "message": message}.items()
        )


def _is_opaque(_: _Serializer, value: Any) -> bool:
    return isinstance(value, (type, types.ModuleType)) or inspect.isroutine(value)


def _convert_opaque(_: _Serializer, value: Any, __: str) -> str:
    return repr(value)


def _is_plain_object(_: _Serializer, value: Any) -> bool:
    if isinstance(value, Mapping):
        return True
    if dataclasses.is_dataclass(value):
        return True
    return hasattr(value, "__dict__") and not isinstance(value, Enum)


def _convert_plain_object(s: _Serializer, value: Any, _: str) -> dict[str, Any]:
    with s.visit(value):
        return s.convert_items(own_properties(value).items())


def _is_enum(_: _Serializer, value: Any) -> bool:
    return isinstance(value, Enum)


def _convert_enum(s: _Serializer, value: Enum, parent_key: str) -> Any:
    return s.convert(value.value, parent_key)


def _is_primitive(_: _Serializer, value: Any) -> bool:
    return value is None or isinstance(value, (str, bool, int, float))


def _convert_primitive(_: _Serializer, value: Any, __: str) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


SERIALIZERS: list[tuple[Predicate, Handler]] = [
    (_is_buffer, _convert_buffer),
    (_is_pattern, _convert_pattern),
    (_is_datetime, _convert_datetime),
    (_is_big_number, _convert_big_number),
    (_is_circular, _convert_circular),
    (_has_json_hook, _convert_json_hook),
    (_has_asdict_hook, _convert_asdict_hook),
    (_is_set, _convert_set),
    (_is_map_like, _convert_map),
    (_is_sequence, _convert_sequence),
    (_is_enum, _convert_enum),
    (_is_primitive, _convert_primitive),
    (_is_iterable, _convert_iterable),
    (_is_error, _convert_error),
    (_is_opaque, _convert_opaque),
    (_is_plain_object, _convert_plain_object),
]

_HOOK_PREDICATES = (_has_json_hook, _has_asdict_hook)


def cleanup_for_json(value: Any) -> Any:
    """Convert value into a structure ``json.dumps`` can encode.

    Args:
        value: Anything.

    Returns:
        A tree of dicts, lists, strings, numbers, booleans and None.
        Objects reached again while still being visited are replaced with
        ``"[Circular]"``; objects shared between sibling branches are
        converted in full each time.
    """
    return _Serializer().convert(value)
