"""Structured log events for the ingestion pipeline."""

from __future__ import annotations

import enum
import typing as typ

from devpulse.events.models import describe_event
from devpulse.logging import get_logger, log_debug, log_error, log_info

if typ.TYPE_CHECKING:
    from devpulse.events.models import Event

    from .pipeline import BatchIngestionResult

logger = get_logger(__name__)


class IngestionEventType(enum.StrEnum):
    """Structured log event types for event ingestion."""

    EVENT_INSERTED = "ingestion.event.inserted"
    EVENT_SKIPPED = "ingestion.event.skipped"
    EVENT_FAILED = "ingestion.event.failed"
    BATCH_COMPLETED = "ingestion.batch.completed"
    DELIVERY_IGNORED = "ingestion.delivery.ignored"


class IngestionEventLogger:
    """Emit structured ingestion events via femtologging.

    Individual inserts and duplicate skips are logged at DEBUG so busy
    pollers stay quiet; batch summaries go out at INFO and failures at ERROR.
    """

    def log_event_inserted(self, event: Event) -> None:
        """Log a newly stored event."""
        log_debug(
            logger,
            "[%s] event=%s",
            IngestionEventType.EVENT_INSERTED,
            describe_event(event),
        )

    def log_event_skipped(self, event: Event) -> None:
        """Log an event dropped by the duplicate gate."""
        log_debug(
            logger,
            "[%s] event=%s",
            IngestionEventType.EVENT_SKIPPED,
            describe_event(event),
        )

    def log_event_failed(self, event: Event, error: BaseException) -> None:
        """Log a single event that could not be ingested."""
        log_error(
            logger,
            "[%s] event=%s error_type=%s error_message=%s",
            IngestionEventType.EVENT_FAILED,
            describe_event(event),
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_batch_completed(self, label: str, result: BatchIngestionResult) -> None:
        """Log the outcome of a batch."""
        log_info(
            logger,
            "[%s] batch=%s inserted=%d skipped=%d failed=%d",
            IngestionEventType.BATCH_COMPLETED,
            label,
            result.inserted,
            result.skipped,
            len(result.failures),
        )

    def log_delivery_ignored(self, source: str, event_name: str) -> None:
        """Log a webhook delivery whose event name is not tracked."""
        log_debug(
            logger,
            "[%s] source=%s event_name=%s",
            IngestionEventType.DELIVERY_IGNORED,
            source,
            event_name,
        )
