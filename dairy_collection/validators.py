"""Input validation for operator-entered collections and deductions."""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import voluptuous as vol

from .const import ALCOHOL_OPTIONS, COLLECTORS, DEFAULT_ALCOHOL, DEFAULT_COLLECTOR, UNSET

_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class InputValidationError(ValueError):
    """Raised when operator input is incomplete or malformed."""


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _required_number(value: Any) -> float:
    if _blank(value):
        raise vol.Invalid("value is required")
    try:
        return float(value)
    except (TypeError, ValueError) as err:
        raise vol.Invalid(f"expected a number, got {value!r}") from err


def _measurement(value: Any) -> float:
    """Optional quality reading; blank means it was not taken."""

    if _blank(value):
        return UNSET
    try:
        return float(value)
    except (TypeError, ValueError) as err:
        raise vol.Invalid(f"expected a number, got {value!r}") from err


def _non_empty_text(value: Any) -> str:
    if _blank(value):
        raise vol.Invalid("value is required")
    return str(value).strip()


def _arrival_time(value: Any) -> str | None:
    """Accept ``HH:MM`` or an ISO timestamp; ``None`` means now."""

    if _blank(value):
        return None
    text = str(value).strip()
    if _CLOCK_RE.match(text):
        return text
    try:
        datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as err:
        raise vol.Invalid(f"invalid arrival time {value!r}") from err
    return text


COLLECTION_INPUT_SCHEMA = vol.Schema(
    {
        vol.Optional("collector_name", default=DEFAULT_COLLECTOR): vol.In(COLLECTORS),
        vol.Optional("arrival_time", default=None): _arrival_time,
        vol.Required("quantity"): vol.All(_required_number, vol.Range(min=0)),
        vol.Optional("clr", default=None): _measurement,
        vol.Optional("fat", default=None): _measurement,
        vol.Optional("snf", default=None): _measurement,
        vol.Optional("water", default=None): _measurement,
        vol.Optional("mbrt", default=None): _measurement,
        vol.Optional("alcohol", default=DEFAULT_ALCOHOL): vol.In(ALCOHOL_OPTIONS),
        vol.Required("batch"): _non_empty_text,
    },
    extra=vol.REMOVE_EXTRA,
)

DEDUCTION_INPUT_SCHEMA = vol.Schema(
    {
        vol.Required("reason"): _non_empty_text,
        vol.Required("quantity"): vol.All(_required_number, vol.Range(min=0)),
    },
    extra=vol.REMOVE_EXTRA,
)


def _validate(schema: vol.Schema, data: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        raise InputValidationError("expected a mapping of form fields")
    try:
        return schema(dict(data))
    except vol.Invalid as err:
        raise InputValidationError(str(err)) from err


def validate_collection_input(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return cleaned collection fields or raise :class:`InputValidationError`."""

    return _validate(COLLECTION_INPUT_SCHEMA, data)


def validate_deduction_input(data: Mapping[str, Any]) -> dict[str, Any]:
    return _validate(DEDUCTION_INPUT_SCHEMA, data)
