"""Turn the arguments of a logging call into a single payload."""

import inspect
import re
from collections.abc import Mapping, Set
from datetime import date, time
from decimal import Decimal
from typing import Any

from cloudlogpy.core.serialize import (
    format_datetime,
    is_map_like,
    own_properties,
    pattern_flags,
    pattern_source,
)

_SCALAR_TYPES = (str, int, float, complex, Decimal)


def is_object(value: Any) -> bool:
    """Check whether a value is structured rather than a printable scalar.

    None, strings, numbers, functions and classes are scalars; everything
    else (including bytes, containers and datetimes) is an object.
    """
    if value is None or isinstance(value, _SCALAR_TYPES):
        return False
    return not (inspect.isroutine(value) or isinstance(value, type))


def has_message(value: Any) -> bool:
    """Check whether a value carries its own ``message`` field."""
    if isinstance(value, Mapping):
        return "message" in value
    return hasattr(value, "message")


def _is_spreadable(value: Any) -> bool:
    if not is_object(value) or has_message(value):
        return False
    if isinstance(value, (Set, date, time, re.Pattern)):
        return False
    return not is_map_like(value)


def _inline(value: Any) -> str | None:
    """Return the text of a value that can join the message, else None."""
    if not is_object(value):
        return str(value)
    if isinstance(value, (date, time)):
        return format_datetime(value)
    if isinstance(value, re.Pattern):
        return f"/{pattern_source(value)}/{pattern_flags(value)}"
    return None


def _indexed(values: list[Any] | tuple[Any, ...]) -> dict[str, Any]:
    return {str(index): value for index, value in enumerate(values)}


def normalize_arguments(head: Any = None, *tail: Any) -> Any:
    """Merge the arguments of a logging call into one payload.

    Examples:
        >>> normalize_arguments("hello")
        'hello'
        >>> normalize_arguments("hello", {"thing": "world"})
        {'thing': 'world', 'message': 'hello'}
        >>> normalize_arguments("hello", {"message": "world"})
        {'0': {'message': 'world'}, 'message': 'hello'}
        >>> normalize_arguments("took", 12, "ms")
        'took 12 ms'

    Args:
        head: First argument of the call.
        *tail: Remaining arguments.

    Returns:
        ``head`` itself when there is nothing else. With a string ``head``,
        a single message-free object is merged with ``{"message": head}``;
        otherwise scalars are joined onto the message until the first
        object, and that object and everything after it are kept under
        index keys next to ``message``. Any other call is returned as an
        index-keyed dict of all arguments.
    """
    if not tail:
        return head
    if not isinstance(head, str):
        return _indexed((head, *tail))

    if len(tail) == 1 and _is_spreadable(tail[0]):
        return {**own_properties(tail[0]), "message": head}

    parts = [head]
    rest: list[Any] = []
    for value in tail:
        text = None if rest else _inline(value)
        if text is None:
            rest.append(value)
        else:
            parts.append(text)
    message = " ".join(parts)
    if rest:
        return {**_indexed(rest), "message": message}
    return message
