"""Normalisation of audit payloads retained alongside events."""

from __future__ import annotations

import datetime as dt
import typing as typ

from devpulse.events.errors import (
    TimezoneAwareRequiredError,
    UnsupportedPayloadTypeError,
)

JSONValue: typ.TypeAlias = (
    dict[str, typ.Any] | list[typ.Any] | str | int | float | bool | None
)


def _normalise_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        raise TimezoneAwareRequiredError.for_payload()
    return value.astimezone(dt.UTC).isoformat()


def normalise_payload(payload: object) -> JSONValue:
    """Deep-copy ``payload`` into JSON-safe values.

    Mappings have their keys coerced to ``str``, tuples become lists and
    aware datetimes become ISO 8601 strings in UTC. Anything else raises
    ``UnsupportedPayloadTypeError`` so the stored audit copy always
    round-trips through the JSON column unchanged.
    """
    match payload:
        case dict():
            return {str(k): normalise_payload(v) for k, v in payload.items()}
        case list() | tuple():
            return [normalise_payload(item) for item in payload]
        case dt.datetime():
            return _normalise_datetime(payload)
        case None | bool() | int() | float() | str():
            return payload
        case _:
            raise UnsupportedPayloadTypeError(type(payload).__name__)


def normalise_raw_data(raw_data: typ.Mapping[str, typ.Any]) -> dict[str, JSONValue]:
    """Return a JSON-safe copy of an event's ``raw_data`` mapping."""
    return {str(k): normalise_payload(v) for k, v in raw_data.items()}
