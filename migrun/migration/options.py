"""Option resolution for import and rollback requests.

Turns raw operator input (form text, checkbox values, JSON) into a
validated ExecutionOptions. Every function here is pure: the same raw
input always yields the same result.
"""

import re
from collections.abc import Mapping
from typing import Any

from migrun.migration.exceptions import InvalidOptionError, MissingOperationError
from migrun.migration.enums import Operation
from migrun.migration.models import ExecutionOptions

_DIGITS = re.compile(r"[0-9]+")

FALSY_STRINGS: frozenset[str] = frozenset({"", "0", "false", "no", "off"})


def parse_limit(value: Any) -> int:
    """Parse the record limit.

    Empty or absent means unbounded (0). Otherwise the value must be a
    non-negative integer or a string of ASCII digits.

    Raises:
        InvalidOptionError: For negative, signed, fractional or non-numeric input
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise InvalidOptionError("limit", value, "must be a non-negative integer")
    if isinstance(value, int):
        if value < 0:
            raise InvalidOptionError("limit", value, "must not be negative")
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if not _DIGITS.fullmatch(text):
            raise InvalidOptionError("limit", value, "must be a non-negative integer")
        return int(text)
    raise InvalidOptionError("limit", value, "must be a non-negative integer")


def parse_flag(value: Any) -> bool:
    """Parse a checkbox-style flag.

    Strings are compared case-insensitively against FALSY_STRINGS so that
    form values like "0" or "off" read as unchecked.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() not in FALSY_STRINGS
    return bool(value)


def resolve_options(raw: Mapping[str, Any] | None = None) -> ExecutionOptions:
    """Build ExecutionOptions from raw operator input.

    Recognized keys are `limit`, `update` and `force`; anything else is
    ignored.

    Raises:
        InvalidOptionError: If the limit cannot be parsed
    """
    raw = raw or {}
    return ExecutionOptions(
        limit=parse_limit(raw.get("limit")),
        update=parse_flag(raw.get("update")),
        force=parse_flag(raw.get("force")),
    )


def parse_operation(value: Any) -> Operation:
    """Parse the requested operation.

    Raises:
        MissingOperationError: If nothing was selected or the value is unknown
    """
    if isinstance(value, Operation):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingOperationError()
    if isinstance(value, str):
        try:
            return Operation(value.strip().lower())
        except ValueError:
            raise MissingOperationError(value) from None
    raise MissingOperationError(value)
