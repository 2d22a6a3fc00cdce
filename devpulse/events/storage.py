"""Persistence models for the activity event log."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import JSON, DateTime, Index, Integer, String, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from devpulse.common.time import utcnow
from devpulse.events.errors import TimezoneAwareRequiredError

SCHEMA_VERSION = 1


class Base(DeclarativeBase):
    """Base declarative class for event store models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_timestamp()
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class ActivityEventRecord(Base):
    """Append-only row for one developer activity event.

    Columns mirror the union of all event kinds; fields that do not apply to
    a row's ``kind`` stay ``NULL``. Rows are never updated after insert.
    """

    __tablename__ = "activity_events"
    __table_args__ = (
        Index("ix_activity_events_timestamp", "timestamp"),
        Index("ix_activity_events_service", "service"),
        Index("ix_activity_events_commit_sha", "commit_sha"),
        Index("ix_activity_events_kind", "kind"),
        Index("ix_activity_events_author", "author"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(16))
    kind: Mapped[str] = mapped_column(String(32))
    service: Mapped[str] = mapped_column(String(255))
    environment: Mapped[str | None] = mapped_column(String(128), default=None)
    commit_sha: Mapped[str | None] = mapped_column(String(64), default=None)
    pr_number: Mapped[str | None] = mapped_column(String(32), default=None)
    status: Mapped[str | None] = mapped_column(String(16), default=None)
    timestamp: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    author: Mapped[str | None] = mapped_column(String(255), default=None)
    raw_data: Mapped[dict[str, typ.Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


class SchemaMigration(Base):
    """Marker rows recording which schema versions have been applied."""

    __tablename__ = "schema_migrations"

    version: Mapped[int] = mapped_column(Integer, primary_key=True)
    applied_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


async def _record_schema_version(conn: AsyncConnection) -> None:
    applied = await conn.scalar(
        select(SchemaMigration.version).where(
            SchemaMigration.version == SCHEMA_VERSION
        )
    )
    if applied is None:
        await conn.execute(
            SchemaMigration.__table__.insert().values(
                version=SCHEMA_VERSION, applied_at=utcnow()
            )
        )


async def init_event_storage(engine: AsyncEngine) -> None:
    """Create the event store tables and record the schema version.

    Safe to call repeatedly; existing tables and version markers are left
    untouched.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await _record_schema_version(conn)
