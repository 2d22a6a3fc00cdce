"""Value types produced by the metrics engine."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt


@dc.dataclass(frozen=True, slots=True)
class ProjectCommitCount:
    """Commits on one service within a window."""

    service: str
    commits: int


@dc.dataclass(frozen=True, slots=True)
class HourlyCommitCount:
    """Commits falling in one UTC hour of the day."""

    hour: int
    commits: int


@dc.dataclass(frozen=True, slots=True)
class DeploymentStats:
    """Deployment counts within a window."""

    deployments: int
    successful_deployments: int
    failed_deployments: int


@dc.dataclass(frozen=True, slots=True)
class WeeklyMetrics:
    """Trailing seven-day activity summary as of ``window_end``.

    Attributes
    ----------
    window_start
        Start of the current window (inclusive).
    window_end
        End of the current window (exclusive); the ``now`` it was computed at.
    total_commits
        Commit events in the window.
    active_projects
        Distinct services with at least one commit.
    active_days
        Distinct UTC calendar dates with at least one commit.
    active_authors
        Distinct non-empty commit authors.
    prs_merged
        Merged pull/merge request events in the window.
    top_projects
        Up to five services ordered by commit count, highest first.
    commit_patterns
        Commit counts per UTC hour, ascending, omitting empty hours.
    week_over_week_change
        ``total_commits`` minus the previous window's commit count.
    week_over_week_percent
        The change as an integer percentage of the previous window, or
        ``0`` when the previous window had no commits.
    deployment_stats
        Present only when the window contains a deployment.

    """

    window_start: dt.datetime
    window_end: dt.datetime
    total_commits: int
    active_projects: int
    active_days: int
    active_authors: int
    prs_merged: int
    top_projects: tuple[ProjectCommitCount, ...]
    commit_patterns: tuple[HourlyCommitCount, ...]
    week_over_week_change: int
    week_over_week_percent: int
    deployment_stats: DeploymentStats | None = None


@dc.dataclass(frozen=True, slots=True)
class CommitFrequencyRow:
    """Commit activity on one UTC date."""

    date: dt.date
    commit_count: int
    projects_touched: int
    authors: int


@dc.dataclass(frozen=True, slots=True)
class ProjectActivityRow:
    """All-time and recent commit activity for one service."""

    service: str
    total_commits: int
    days_active: int
    last_commit: dt.datetime
    commits_last_week: int
    commits_last_month: int


@dc.dataclass(frozen=True, slots=True)
class WeeklyProductivityRow:
    """Commit activity in one ``%Y-W%W`` week."""

    week: str
    commit_count: int
    days_active: int
    projects_touched: int
    avg_commits_per_day: float


@dc.dataclass(frozen=True, slots=True)
class HourlyPatternRow:
    """Share of all commits made in one UTC hour."""

    hour: int
    commit_count: int
    percentage: float
