"""Unit tests for the weekly metrics engine."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from devpulse.events import DeploymentStatus, StorageError, TimezoneAwareRequiredError
from devpulse.metrics import (
    AggregationError,
    ProjectCommitCount,
    WeeklyMetricsService,
    round_half_up,
    week_over_week,
)
from tests.helpers.event_builders import NOW, commit, deployment, merged

if typ.TYPE_CHECKING:
    from devpulse.events.store import EventStore

DAY = dt.timedelta(days=1)


class _BrokenStore:
    async def query_window(self, *_args: object) -> list[object]:
        raise StorageError.for_query("commit")


@pytest.mark.parametrize(
    ("current", "previous", "expected"),
    [
        (10, 0, (10, 0)),
        (0, 0, (0, 0)),
        (15, 10, (5, 50)),
        (5, 10, (-5, -50)),
        (1, 3, (-2, -67)),
        (3, 2, (1, 50)),
        (7, 8, (-1, -12)),
    ],
)
def test_week_over_week(
    current: int, previous: int, expected: tuple[int, int]
) -> None:
    """Percent change rounds half up and is zero against an empty baseline."""
    assert week_over_week(current, previous) == expected


def test_round_half_up_rounds_negative_halves_upwards() -> None:
    """Halves always go towards positive infinity."""
    assert round_half_up(-12.5) == -12
    assert round_half_up(12.5) == 13


@pytest.mark.asyncio
async def test_window_counts_only_the_trailing_week(store: EventStore) -> None:
    """Events 8 days ago feed the baseline, not the current window."""
    await store.insert(commit("svc", "old", NOW - 8 * DAY))
    await store.insert(commit("svc", "mid", NOW - 6 * DAY))
    await store.insert(commit("svc", "new", NOW - 1 * DAY))

    metrics = await WeeklyMetricsService(store).compute_weekly_metrics(NOW)

    assert metrics.total_commits == 2
    assert metrics.week_over_week_change == 1
    assert metrics.week_over_week_percent == 100
    assert metrics.window_start == NOW - 7 * DAY
    assert metrics.window_end == NOW


@pytest.mark.asyncio
async def test_zero_baseline(store: EventStore) -> None:
    """With no commits last week, the percentage is zero."""
    for index in range(3):
        await store.insert(commit("svc", f"c{index}", NOW - DAY))

    metrics = await WeeklyMetricsService(store).compute_weekly_metrics(NOW)

    assert metrics.week_over_week_change == 3
    assert metrics.week_over_week_percent == 0


@pytest.mark.asyncio
async def test_top_projects_ranking_and_ties(store: EventStore) -> None:
    """Services rank by commit count; ties keep first-seen order."""
    counts = {"A": 10, "B": 7, "C": 7, "D": 1}
    offset = 0
    for service, count in counts.items():
        for index in range(count):
            offset += 1
            await store.insert(
                commit(service, f"{service}{index}", NOW - 2 * DAY + offset * dt.timedelta(minutes=1))
            )

    metrics = await WeeklyMetricsService(store).compute_weekly_metrics(NOW)

    assert metrics.top_projects == (
        ProjectCommitCount("A", 10),
        ProjectCommitCount("B", 7),
        ProjectCommitCount("C", 7),
        ProjectCommitCount("D", 1),
    )
    assert metrics.active_projects == 4


@pytest.mark.asyncio
async def test_top_projects_are_capped_at_five(store: EventStore) -> None:
    """At most five services are reported."""
    for index in range(7):
        await store.insert(commit(f"svc{index}", f"sha{index}", NOW - DAY))

    metrics = await WeeklyMetricsService(store).compute_weekly_metrics(NOW)

    assert len(metrics.top_projects) == 5


@pytest.mark.asyncio
async def test_days_authors_hours_and_merges(store: EventStore) -> None:
    """Distinct days, authors and hours are counted in UTC."""
    await store.insert(
        commit("svc", "a", dt.datetime(2026, 3, 8, 9, 30, tzinfo=dt.UTC), author="x")
    )
    await store.insert(
        commit("svc", "b", dt.datetime(2026, 3, 8, 9, 45, tzinfo=dt.UTC), author="y")
    )
    await store.insert(
        commit("svc", "c", dt.datetime(2026, 3, 6, 22, 0, tzinfo=dt.UTC), author=None)
    )
    await store.insert(merged("svc", "1", NOW - DAY))
    await store.insert(merged("svc", "2", NOW - 9 * DAY))

    metrics = await WeeklyMetricsService(store).compute_weekly_metrics(NOW)

    assert metrics.active_days == 2
    assert metrics.active_authors == 2
    assert metrics.prs_merged == 1
    assert [(p.hour, p.commits) for p in metrics.commit_patterns] == [(9, 2), (22, 1)]


@pytest.mark.asyncio
async def test_deployment_stats_are_optional(store: EventStore) -> None:
    """Deployment stats appear only when the window has deployments."""
    service = WeeklyMetricsService(store)

    assert (await service.compute_weekly_metrics(NOW)).deployment_stats is None

    await store.insert(deployment("svc", NOW - DAY))
    await store.insert(deployment("svc", NOW - DAY, status=DeploymentStatus.FAILURE))
    await store.insert(deployment("svc", NOW - DAY, status=DeploymentStatus.ROLLBACK))

    stats = (await service.compute_weekly_metrics(NOW)).deployment_stats
    assert stats is not None
    assert (
        stats.deployments,
        stats.successful_deployments,
        stats.failed_deployments,
    ) == (3, 1, 1)


@pytest.mark.asyncio
async def test_empty_store(store: EventStore) -> None:
    """An empty store yields an all-zero summary."""
    metrics = await WeeklyMetricsService(store).compute_weekly_metrics(NOW)

    assert metrics.total_commits == 0
    assert metrics.top_projects == ()
    assert metrics.commit_patterns == ()


@pytest.mark.asyncio
async def test_naive_now_is_rejected(store: EventStore) -> None:
    """``now`` must be timezone aware."""
    with pytest.raises(TimezoneAwareRequiredError):
        await WeeklyMetricsService(store).compute_weekly_metrics(
            dt.datetime(2026, 3, 9)  # noqa: DTZ001 - intentional naive now
        )


@pytest.mark.asyncio
async def test_query_failure_raises_aggregation_error() -> None:
    """Store failures never produce partial metrics."""
    service = WeeklyMetricsService(typ.cast("EventStore", _BrokenStore()))

    with pytest.raises(AggregationError) as excinfo:
        await service.compute_weekly_metrics(NOW)

    assert isinstance(excinfo.value.__cause__, StorageError)
