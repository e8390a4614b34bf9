"""Convert values between their wire representation and form-editable JSON values.

Wire values may contain integers of any size. Form values are consumed by JSON surfaces that
store numbers as double precision floats, so integers outside the safe range are carried as
decimal text and restored on the way back.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

from canister_mapper.config import MAX_SAFE_INTEGER
from canister_mapper.idl import LogicalType
from canister_mapper.models import ParameterRequirement, ParameterType

logger = logging.getLogger(__name__)

_INTEGER_PATTERN = re.compile(r"[+-]?\d+")
_NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def to_form(value: Any, max_safe_integer: int = MAX_SAFE_INTEGER) -> Any:
    """Convert a wire value into a form value.

    Examples:
        >>> to_form({"id": 1, "balance": 2**64})
        {'id': 1, 'balance': '18446744073709551616'}
    """
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, int):
        if -max_safe_integer <= value <= max_safe_integer:
            return value
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return list(value)
    if isinstance(value, (list, tuple)):
        return [to_form(item, max_safe_integer) for item in value]
    if isinstance(value, Mapping):
        return {key: to_form(item, max_safe_integer) for key, item in value.items()}
    return value


def _parse_number(text: str, max_safe_integer: int) -> Any:
    stripped = text.strip()
    if _INTEGER_PATTERN.fullmatch(stripped):
        return int(stripped)
    if not _NUMBER_PATTERN.fullmatch(stripped):
        return text

    number = float(stripped)
    if abs(number) <= max_safe_integer:
        return int(number) if number.is_integer() else number

    # Too large for a float to hold exactly; only integral literals can be widened.
    try:
        exact = Decimal(stripped)
    except InvalidOperation:
        return text
    if exact != exact.to_integral_value():
        return text
    return int(exact)


def to_wire(value: Any, max_safe_integer: int = MAX_SAFE_INTEGER) -> Any:
    """Convert a form value into a wire value.

    Numeric text is parsed, integral numbers become ints and numbers outside the safe range
    are widened to exact integers.
    """
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        return _parse_number(value, max_safe_integer)
    if isinstance(value, float):
        if value.is_integer() and abs(value) > max_safe_integer:
            return int(value)
        return value
    if isinstance(value, (list, tuple)):
        return [to_wire(item, max_safe_integer) for item in value]
    if isinstance(value, Mapping):
        return {key: to_wire(item, max_safe_integer) for key, item in value.items()}
    return value


def coerce_parameter(value: Any, parameter: ParameterType | None) -> Any:
    """Coerce one raw argument, e.g. typed into a query tool, to its parameter's logical type.

    Empty text and None mean the argument was not supplied and yield None.
    """
    if value is None or value == "":
        return None
    if parameter is None:
        return value

    logical_type = parameter.logical_type
    if logical_type in (LogicalType.UNBOUNDED_INTEGER, LogicalType.INTEGER):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            parsed = _parse_number(value, MAX_SAFE_INTEGER)
            # Fractional text is kept, so the typed proxy rejects it instead of truncating.
            return parsed if isinstance(parsed, int) else value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    elif logical_type == LogicalType.VECTOR:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                logger.debug(f"{parameter.name} is not a JSON array, wrapping the text")
                return [value]
        if not isinstance(value, (list, tuple)):
            return [value]
        return list(value)

    elif logical_type == LogicalType.OPTIONAL:
        if value == "null":
            return None
        return value

    return value


def coerce_arguments(values: Sequence[Any], requirement: ParameterRequirement | None) -> list[Any]:
    """Coerce positional arguments with the parameter types of a requirement, where known."""
    parameters = requirement.parameter_types if requirement and requirement.parameter_types else ()
    return [
        coerce_parameter(value, parameters[index] if index < len(parameters) else None)
        for index, value in enumerate(values)
    ]
