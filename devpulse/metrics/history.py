"""Historical activity queries over the whole commit log."""

from __future__ import annotations

import collections
import datetime as dt
import decimal
import typing as typ

from devpulse.common.time import utcnow
from devpulse.events.errors import StorageError, TimezoneAwareRequiredError
from devpulse.events.models import EventKind

from .errors import AggregationError
from .models import (
    CommitFrequencyRow,
    HourlyPatternRow,
    ProjectActivityRow,
    WeeklyProductivityRow,
)

if typ.TYPE_CHECKING:
    from devpulse.events.models import StoredEvent
    from devpulse.events.store import EventStore

_WEEK = dt.timedelta(days=7)
_MONTH = dt.timedelta(days=30)
_ONE_DECIMAL = decimal.Decimal("0.1")


def round_one_decimal(value: float) -> float:
    """Round to one decimal place with halves going away from zero."""
    quantised = decimal.Decimal(str(value)).quantize(
        _ONE_DECIMAL, rounding=decimal.ROUND_HALF_UP
    )
    return float(quantised)


def _utc(stored: StoredEvent) -> dt.datetime:
    return stored.event.timestamp.astimezone(dt.UTC)


def _require_positive(name: str, value: int) -> None:
    if value < 1:
        msg = f"{name} must be positive, got: {value}"
        raise ValueError(msg)


def _resolve_now(now: dt.datetime | None) -> dt.datetime:
    if now is None:
        return utcnow()
    if now.tzinfo is None:
        raise TimezoneAwareRequiredError.for_window()
    return now.astimezone(dt.UTC)


class ActivityHistoryService:
    """Summarise commit history by day, project, week and hour."""

    def __init__(self, store: EventStore) -> None:
        """Create service bound to an event store."""
        self._store = store

    async def commit_frequency(
        self, days: int = 30, *, now: dt.datetime | None = None
    ) -> list[CommitFrequencyRow]:
        """Return per-date commit activity from ``today - days`` onwards."""
        _require_positive("days", days)
        first_day = _resolve_now(now).date() - dt.timedelta(days=days)
        since = dt.datetime.combine(first_day, dt.time.min, tzinfo=dt.UTC)
        commits = await self._commits(since=since)

        by_date: dict[dt.date, list[StoredEvent]] = collections.defaultdict(list)
        for stored in commits:
            by_date[_utc(stored).date()].append(stored)

        return [
            CommitFrequencyRow(
                date=date,
                commit_count=len(rows),
                projects_touched=len({row.event.service for row in rows}),
                authors=len({row.event.author for row in rows if row.event.author}),
            )
            for date, rows in sorted(by_date.items())
        ]

    async def project_activity(
        self, limit: int = 20, *, now: dt.datetime | None = None
    ) -> list[ProjectActivityRow]:
        """Return services with commits in the last 30 days, busiest first."""
        _require_positive("limit", limit)
        current = _resolve_now(now)
        commits = await self._commits()

        by_service: dict[str, list[StoredEvent]] = collections.defaultdict(list)
        for stored in commits:
            by_service[stored.event.service].append(stored)

        rows = [
            ProjectActivityRow(
                service=service,
                total_commits=len(events),
                days_active=len({_utc(stored).date() for stored in events}),
                last_commit=max(_utc(stored) for stored in events),
                commits_last_week=sum(
                    1 for stored in events if _utc(stored) >= current - _WEEK
                ),
                commits_last_month=sum(
                    1 for stored in events if _utc(stored) >= current - _MONTH
                ),
            )
            for service, events in by_service.items()
        ]
        active = [row for row in rows if row.commits_last_month > 0]
        active.sort(key=lambda row: (-row.commits_last_month, -row.total_commits))
        return active[:limit]

    async def weekly_productivity(self, weeks: int = 12) -> list[WeeklyProductivityRow]:
        """Return per-week commit activity, newest week first."""
        _require_positive("weeks", weeks)
        commits = await self._commits()

        by_week: dict[str, list[StoredEvent]] = collections.defaultdict(list)
        for stored in commits:
            by_week[_utc(stored).strftime("%Y-W%W")].append(stored)

        rows: list[WeeklyProductivityRow] = []
        for week in sorted(by_week, reverse=True)[:weeks]:
            events = by_week[week]
            days_active = len({_utc(stored).date() for stored in events})
            rows.append(
                WeeklyProductivityRow(
                    week=week,
                    commit_count=len(events),
                    days_active=days_active,
                    projects_touched=len({stored.event.service for stored in events}),
                    avg_commits_per_day=round_one_decimal(len(events) / days_active),
                )
            )
        return rows

    async def daily_commit_pattern(self) -> list[HourlyPatternRow]:
        """Return each active hour's share of all recorded commits."""
        commits = await self._commits()
        if not commits:
            return []
        counts = collections.Counter(_utc(stored).hour for stored in commits)
        total = len(commits)
        return [
            HourlyPatternRow(
                hour=hour,
                commit_count=counts[hour],
                percentage=round_one_decimal(counts[hour] * 100 / total),
            )
            for hour in sorted(counts)
        ]

    async def _commits(self, *, since: dt.datetime | None = None) -> list[StoredEvent]:
        try:
            return await self._store.query_kind(EventKind.COMMIT, since=since)
        except StorageError as exc:
            raise AggregationError.query_failed("commit history") from exc
