"""Ingestion pipeline error types."""

from __future__ import annotations

import typing as typ

from devpulse.common.errors import DevpulseError

if typ.TYPE_CHECKING:
    from devpulse.events.models import Event


class IngestionError(DevpulseError):
    """Raised when one event cannot be checked for duplicates or stored."""

    def __init__(self, message: str, *, event: Event | None = None) -> None:
        """Record the event that failed, when known."""
        self.event = event
        super().__init__(message)

    @classmethod
    def dedup_check_failed(cls, event: Event) -> IngestionError:
        """Return an error for a failed duplicate lookup."""
        return cls(
            f"duplicate check failed for {event.kind} on {event.service}",
            event=event,
        )

    @classmethod
    def insert_failed(cls, event: Event) -> IngestionError:
        """Return an error for a failed insert."""
        return cls(f"insert failed for {event.kind} on {event.service}", event=event)


class WebhookPayloadError(DevpulseError):
    """Raised when a webhook delivery cannot be turned into events."""

    @classmethod
    def invalid_shape(cls, source: str, detail: str) -> WebhookPayloadError:
        """Return an error for a payload that failed schema validation."""
        return cls(f"invalid {source} payload: {detail}")

    @classmethod
    def not_an_object(cls, source: str) -> WebhookPayloadError:
        """Return an error for a JSON body that is not an object."""
        return cls(f"{source} payload must be a JSON object")

    @classmethod
    def missing_field(cls, field: str) -> WebhookPayloadError:
        """Return an error for a required field absent for the event kind."""
        return cls(f"missing required field: {field}")

    @classmethod
    def invalid_timestamp(cls, value: str) -> WebhookPayloadError:
        """Return an error for an unparseable or naive timestamp."""
        return cls(f"invalid timestamp: {value!r}")

    @classmethod
    def unsupported_kind(cls, kind: str) -> WebhookPayloadError:
        """Return an error for an unknown manual event kind."""
        return cls(f"unsupported event type: {kind!r}")
