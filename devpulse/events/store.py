"""Append-only event store with idempotency lookups."""

from __future__ import annotations

import typing as typ

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from devpulse.events.errors import StorageError, TimezoneAwareRequiredError
from devpulse.events.models import (
    CommitEvent,
    DeploymentEvent,
    DeploymentStatus,
    Event,
    EventKind,
    EventSource,
    PullRequestMergedEvent,
    PullRequestOpenedEvent,
    StoredEvent,
)
from devpulse.events.payload import normalise_raw_data
from devpulse.events.storage import ActivityEventRecord

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from sqlalchemy.sql import Select


def _to_record(event: Event) -> ActivityEventRecord:
    if event.timestamp.tzinfo is None:
        raise TimezoneAwareRequiredError.for_timestamp()

    record = ActivityEventRecord(
        source=str(event.source),
        kind=str(event.kind),
        service=event.service,
        timestamp=event.timestamp,
        author=event.author,
        raw_data=normalise_raw_data(event.raw_data),
    )
    match event:
        case CommitEvent():
            record.commit_sha = event.commit_sha
        case PullRequestOpenedEvent():
            record.pr_number = event.pr_number
        case PullRequestMergedEvent():
            record.pr_number = event.pr_number
            record.commit_sha = event.merge_commit_sha
        case DeploymentEvent():
            record.environment = event.environment
            record.status = str(event.status)
            record.commit_sha = event.commit_sha
    return record


def _to_event(record: ActivityEventRecord) -> Event:  # noqa: PLR0911
    source = EventSource(record.source)
    raw_data = dict(record.raw_data or {})
    match EventKind(record.kind):
        case EventKind.COMMIT:
            return CommitEvent(
                source=source,
                service=record.service,
                commit_sha=record.commit_sha or "",
                timestamp=record.timestamp,
                author=record.author,
                raw_data=raw_data,
            )
        case EventKind.PR_OPENED:
            return PullRequestOpenedEvent(
                source=source,
                service=record.service,
                pr_number=record.pr_number or "",
                timestamp=record.timestamp,
                author=record.author,
                raw_data=raw_data,
            )
        case EventKind.PR_MERGED:
            return PullRequestMergedEvent(
                source=source,
                service=record.service,
                pr_number=record.pr_number or "",
                timestamp=record.timestamp,
                merge_commit_sha=record.commit_sha,
                author=record.author,
                raw_data=raw_data,
            )
        case EventKind.DEPLOYMENT:
            return DeploymentEvent(
                source=source,
                service=record.service,
                environment=record.environment or "",
                status=DeploymentStatus(record.status),
                timestamp=record.timestamp,
                commit_sha=record.commit_sha,
                author=record.author,
                raw_data=raw_data,
            )


def _to_stored(record: ActivityEventRecord) -> StoredEvent:
    return StoredEvent(id=record.id, created_at=record.created_at, event=_to_event(record))


class EventStore:
    """Persist and query activity events.

    The store is a plain fact table: it never enforces deduplication itself.
    Callers decide whether an event is new by consulting
    :meth:`commit_exists` or :meth:`merge_exists` before calling
    :meth:`insert`.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for reads and writes."""
        self._session_factory = session_factory

    async def insert(self, event: Event) -> StoredEvent:
        """Append ``event`` to the log and return the stored row.

        Raises
        ------
        TimezoneAwareRequiredError
            If the event timestamp is naive.
        StorageError
            If the database rejects the write.

        """
        record = _to_record(event)
        async with self._session_factory() as session:
            session.add(record)
            try:
                await session.commit()
                await session.refresh(record)
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StorageError.for_insert() from exc
            return _to_stored(record)

    async def commit_exists(self, sha: str, source: EventSource) -> bool:
        """Return whether a commit event with ``(sha, source)`` is stored."""
        stmt = select(ActivityEventRecord.id).where(
            ActivityEventRecord.kind == EventKind.COMMIT.value,
            ActivityEventRecord.commit_sha == sha,
            ActivityEventRecord.source == str(source),
        )
        return await self._exists(stmt, "commit")

    async def merge_exists(
        self, number: str, service: str, source: EventSource
    ) -> bool:
        """Return whether a merge with ``(number, service, source)`` is stored."""
        stmt = select(ActivityEventRecord.id).where(
            ActivityEventRecord.kind == EventKind.PR_MERGED.value,
            ActivityEventRecord.pr_number == number,
            ActivityEventRecord.service == service,
            ActivityEventRecord.source == str(source),
        )
        return await self._exists(stmt, "merge")

    async def query_window(
        self, kind: EventKind, start: dt.datetime, end: dt.datetime
    ) -> list[StoredEvent]:
        """Return events of ``kind`` whose timestamp lies in ``[start, end)``.

        Results are ordered by timestamp, then by insertion order.
        """
        if start.tzinfo is None or end.tzinfo is None:
            raise TimezoneAwareRequiredError.for_window()
        stmt = self._kind_stmt(kind).where(
            ActivityEventRecord.timestamp >= start,
            ActivityEventRecord.timestamp < end,
        )
        return await self._fetch(stmt, kind)

    async def query_kind(
        self, kind: EventKind, *, since: dt.datetime | None = None
    ) -> list[StoredEvent]:
        """Return every event of ``kind``, optionally from ``since`` onwards."""
        stmt = self._kind_stmt(kind)
        if since is not None:
            if since.tzinfo is None:
                raise TimezoneAwareRequiredError.for_window()
            stmt = stmt.where(ActivityEventRecord.timestamp >= since)
        return await self._fetch(stmt, kind)

    async def count(self) -> int:
        """Return the total number of stored events."""
        async with self._session_factory() as session:
            try:
                total = await session.scalar(
                    select(func.count()).select_from(ActivityEventRecord)
                )
            except SQLAlchemyError as exc:
                raise StorageError.for_query("count") from exc
        return int(total or 0)

    @staticmethod
    def _kind_stmt(kind: EventKind) -> Select[tuple[ActivityEventRecord]]:
        return (
            select(ActivityEventRecord)
            .where(ActivityEventRecord.kind == kind.value)
            .order_by(ActivityEventRecord.timestamp, ActivityEventRecord.id)
        )

    async def _exists(self, stmt: Select[tuple[int]], key: str) -> bool:
        async with self._session_factory() as session:
            try:
                found = await session.scalar(stmt.limit(1))
            except SQLAlchemyError as exc:
                raise StorageError.for_lookup(key) from exc
        return found is not None

    async def _fetch(
        self, stmt: Select[tuple[ActivityEventRecord]], kind: EventKind
    ) -> list[StoredEvent]:
        async with self._session_factory() as session:
            try:
                records = (await session.scalars(stmt)).all()
            except SQLAlchemyError as exc:
                raise StorageError.for_query(kind.value) from exc
        return [_to_stored(record) for record in records]
