"""Compute weekly activity metrics from the event store.

All windows are half-open ``[start, end)`` and measured back from the
``now`` the caller supplies. Calendar dates and hours are taken in UTC.

Usage
-----
>>> import datetime as dt
>>> service = WeeklyMetricsService(EventStore(session_factory))
>>> metrics = await service.compute_weekly_metrics(
...     dt.datetime(2026, 3, 9, tzinfo=dt.UTC)
... )
>>> metrics.total_commits
42

"""

from __future__ import annotations

import collections
import datetime as dt
import math
import typing as typ

from devpulse.common.time import utcnow
from devpulse.events.errors import StorageError, TimezoneAwareRequiredError
from devpulse.events.models import DeploymentEvent, DeploymentStatus, EventKind

from .errors import AggregationError
from .models import (
    DeploymentStats,
    HourlyCommitCount,
    ProjectCommitCount,
    WeeklyMetrics,
)

if typ.TYPE_CHECKING:
    from devpulse.events.models import StoredEvent
    from devpulse.events.store import EventStore

WINDOW = dt.timedelta(days=7)
TOP_PROJECT_LIMIT = 5


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going towards +infinity."""
    return math.floor(value + 0.5)


def week_over_week(current: int, previous: int) -> tuple[int, int]:
    """Return the absolute and percentage change between two window counts.

    The percentage is ``0`` when ``previous`` is ``0`` rather than infinite.
    """
    change = current - previous
    if previous == 0:
        return change, 0
    return change, round_half_up(change / previous * 100)


def _top_projects(commits: list[StoredEvent]) -> tuple[ProjectCommitCount, ...]:
    # Counter preserves first-seen order, and sorted() is stable, so ties keep
    # the order the store returned them in.
    counts = collections.Counter(stored.event.service for stored in commits)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return tuple(
        ProjectCommitCount(service=service, commits=count)
        for service, count in ranked[:TOP_PROJECT_LIMIT]
    )


def _commit_patterns(commits: list[StoredEvent]) -> tuple[HourlyCommitCount, ...]:
    counts = collections.Counter(
        stored.event.timestamp.astimezone(dt.UTC).hour for stored in commits
    )
    return tuple(
        HourlyCommitCount(hour=hour, commits=counts[hour]) for hour in sorted(counts)
    )


def _deployment_stats(deployments: list[StoredEvent]) -> DeploymentStats | None:
    if not deployments:
        return None
    statuses = [
        stored.event.status
        for stored in deployments
        if isinstance(stored.event, DeploymentEvent)
    ]
    return DeploymentStats(
        deployments=len(deployments),
        successful_deployments=statuses.count(DeploymentStatus.SUCCESS),
        failed_deployments=statuses.count(DeploymentStatus.FAILURE),
    )


def _metrics_from_events(
    *,
    window_start: dt.datetime,
    window_end: dt.datetime,
    commits: list[StoredEvent],
    previous_commits: int,
    merges: list[StoredEvent],
    deployments: list[StoredEvent],
) -> WeeklyMetrics:
    """Build a metrics value from the events of the current window."""
    total_commits = len(commits)
    change, percent = week_over_week(total_commits, previous_commits)
    return WeeklyMetrics(
        window_start=window_start,
        window_end=window_end,
        total_commits=total_commits,
        active_projects=len({stored.event.service for stored in commits}),
        active_days=len(
            {stored.event.timestamp.astimezone(dt.UTC).date() for stored in commits}
        ),
        active_authors=len(
            {stored.event.author for stored in commits if stored.event.author}
        ),
        prs_merged=len(merges),
        top_projects=_top_projects(commits),
        commit_patterns=_commit_patterns(commits),
        week_over_week_change=change,
        week_over_week_percent=percent,
        deployment_stats=_deployment_stats(deployments),
    )


class WeeklyMetricsService:
    """Aggregate the trailing week of activity into :class:`WeeklyMetrics`."""

    def __init__(self, store: EventStore) -> None:
        """Create service bound to an event store."""
        self._store = store

    async def compute_weekly_metrics(
        self, now: dt.datetime | None = None
    ) -> WeeklyMetrics:
        """Return metrics for ``[now - 7d, now)`` compared with the week before.

        Raises
        ------
        TimezoneAwareRequiredError
            If ``now`` is naive.
        AggregationError
            If any underlying query fails.

        """
        window_end = utcnow() if now is None else now
        if window_end.tzinfo is None:
            raise TimezoneAwareRequiredError.for_window()
        window_end = window_end.astimezone(dt.UTC)
        window_start = window_end - WINDOW
        previous_start = window_start - WINDOW

        try:
            commits = await self._store.query_window(
                EventKind.COMMIT, window_start, window_end
            )
            previous = await self._store.query_window(
                EventKind.COMMIT, previous_start, window_start
            )
            merges = await self._store.query_window(
                EventKind.PR_MERGED, window_start, window_end
            )
            deployments = await self._store.query_window(
                EventKind.DEPLOYMENT, window_start, window_end
            )
        except StorageError as exc:
            raise AggregationError.query_failed("weekly metrics") from exc

        return _metrics_from_events(
            window_start=window_start,
            window_end=window_end,
            commits=commits,
            previous_commits=len(previous),
            merges=merges,
            deployments=deployments,
        )
