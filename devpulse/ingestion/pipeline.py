"""Dual-channel ingestion pipeline.

Webhook handlers and the poller both write through :class:`IngestionPipeline`
and never call the event store's ``insert`` directly. The pipeline applies the
per-kind duplicate gate, so a commit delivered by webhook and later observed
again by polling (or the reverse) is recorded once:

* ``commit`` events are keyed by ``(commit_sha, source)``;
* ``pr_merged`` events are keyed by ``(pr_number, service, source)``;
* ``pr_opened`` and ``deployment`` events are always inserted.

The store keeps a read-then-write contract, so the check and the insert are
not atomic at the database level. Within one process they run under a single
``asyncio.Lock``; concurrent writers in other processes can still race.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import enum
import typing as typ

from devpulse.events.errors import StorageError
from devpulse.events.models import CommitEvent, PullRequestMergedEvent

from .errors import IngestionError
from .observability import IngestionEventLogger

if typ.TYPE_CHECKING:
    from devpulse.events.models import Event
    from devpulse.events.store import EventStore


class IngestOutcome(enum.StrEnum):
    """Result of ingesting one event."""

    INSERTED = "inserted"
    SKIPPED_DUPLICATE = "skipped_duplicate"


@dc.dataclass(frozen=True, slots=True)
class IngestionFailure:
    """An event that could not be ingested and the error raised for it."""

    event: Event
    error: IngestionError


@dc.dataclass(frozen=True, slots=True)
class BatchIngestionResult:
    """Aggregate outcome of ingesting a batch of events."""

    inserted: int = 0
    skipped: int = 0
    failures: tuple[IngestionFailure, ...] = ()

    @property
    def failed(self) -> int:
        """Return the number of events that failed."""
        return len(self.failures)

    @property
    def ok(self) -> bool:
        """Return whether every event was inserted or skipped."""
        return not self.failures

    def merge(self, other: BatchIngestionResult) -> BatchIngestionResult:
        """Return the sum of this result and ``other``."""
        return BatchIngestionResult(
            inserted=self.inserted + other.inserted,
            skipped=self.skipped + other.skipped,
            failures=self.failures + other.failures,
        )


class IngestionPipeline:
    """Write events through the duplicate gate into the event store."""

    def __init__(
        self,
        store: EventStore,
        *,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Bind the pipeline to an event store."""
        self._store = store
        self._event_logger = event_logger or IngestionEventLogger()
        self._dedup_lock = asyncio.Lock()

    async def ingest(self, event: Event) -> IngestOutcome:
        """Store ``event`` unless an equivalent event already exists.

        Raises
        ------
        IngestionError
            If the duplicate lookup or the insert fails.

        """
        match event:
            case CommitEvent() | PullRequestMergedEvent():
                async with self._dedup_lock:
                    if await self._is_duplicate(event):
                        self._event_logger.log_event_skipped(event)
                        return IngestOutcome.SKIPPED_DUPLICATE
                    await self._insert(event)
            case _:
                await self._insert(event)

        self._event_logger.log_event_inserted(event)
        return IngestOutcome.INSERTED

    async def ingest_batch(
        self, events: typ.Iterable[Event], *, label: str = "batch"
    ) -> BatchIngestionResult:
        """Ingest every event independently and collect the outcomes.

        A failing event is recorded in ``failures`` and the remaining events
        are still attempted.
        """
        inserted = 0
        skipped = 0
        failures: list[IngestionFailure] = []
        for event in events:
            try:
                outcome = await self.ingest(event)
            except IngestionError as exc:
                self._event_logger.log_event_failed(event, exc)
                failures.append(IngestionFailure(event=event, error=exc))
                continue
            if outcome is IngestOutcome.INSERTED:
                inserted += 1
            else:
                skipped += 1

        result = BatchIngestionResult(
            inserted=inserted, skipped=skipped, failures=tuple(failures)
        )
        self._event_logger.log_batch_completed(label, result)
        return result

    async def _is_duplicate(self, event: CommitEvent | PullRequestMergedEvent) -> bool:
        try:
            match event:
                case CommitEvent():
                    return await self._store.commit_exists(
                        event.commit_sha, event.source
                    )
                case PullRequestMergedEvent():
                    return await self._store.merge_exists(
                        event.pr_number, event.service, event.source
                    )
        except StorageError as exc:
            raise IngestionError.dedup_check_failed(event) from exc

    async def _insert(self, event: Event) -> None:
        try:
            await self._store.insert(event)
        except (StorageError, ValueError) as exc:
            raise IngestionError.insert_failed(event) from exc
