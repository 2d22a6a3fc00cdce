"""Metrics aggregation over the activity event log."""

from __future__ import annotations

from .errors import AggregationError
from .history import ActivityHistoryService
from .markdown import format_metrics_as_markdown
from .models import (
    CommitFrequencyRow,
    DeploymentStats,
    HourlyCommitCount,
    HourlyPatternRow,
    ProjectActivityRow,
    ProjectCommitCount,
    WeeklyMetrics,
    WeeklyProductivityRow,
)
from .service import WeeklyMetricsService, round_half_up, week_over_week

__all__ = [
    "ActivityHistoryService",
    "AggregationError",
    "CommitFrequencyRow",
    "DeploymentStats",
    "HourlyCommitCount",
    "HourlyPatternRow",
    "ProjectActivityRow",
    "ProjectCommitCount",
    "WeeklyMetrics",
    "WeeklyMetricsService",
    "WeeklyProductivityRow",
    "format_metrics_as_markdown",
    "round_half_up",
    "week_over_week",
]
