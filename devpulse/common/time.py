"""Common time utilities."""

from __future__ import annotations

import datetime as dt

# Layouts GitLab uses outside strict ISO 8601, e.g. "2021-04-28 21:50:00 +0200".
_FALLBACK_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S UTC",
)


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def require_aware(value: dt.datetime, *, field: str) -> dt.datetime:
    """Return *value* converted to UTC, rejecting naive datetimes."""
    if value.tzinfo is None:
        msg = f"{field} must be timezone-aware"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)


def parse_timestamp(value: str) -> dt.datetime:
    """Parse a provider timestamp string into an aware UTC datetime.

    Raises
    ------
    ValueError
        If the text is not a recognised timestamp or carries no offset.

    """
    text = value.strip()
    try:
        parsed = dt.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = _parse_fallback(text)

    if parsed.tzinfo is None:
        msg = f"timestamp missing timezone: {value}"
        raise ValueError(msg)
    return parsed.astimezone(dt.UTC)


def _parse_fallback(text: str) -> dt.datetime:
    for layout in _FALLBACK_FORMATS:
        try:
            parsed = dt.datetime.strptime(text, layout)  # noqa: DTZ007 - offset handled below
        except ValueError:
            continue
        if layout.endswith("UTC"):
            return parsed.replace(tzinfo=dt.UTC)
        return parsed
    msg = f"unrecognised timestamp: {text!r}"
    raise ValueError(msg)


def isoformat_utc(value: dt.datetime) -> str:
    """Render an aware datetime as an ISO 8601 UTC string."""
    return value.astimezone(dt.UTC).isoformat()
