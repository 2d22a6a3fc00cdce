"""Render weekly metrics as Markdown for reports."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from .models import WeeklyMetrics


def _signed(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def _hour_range(hour: int) -> str:
    return f"{hour:02d}:00-{hour + 1:02d}:00"


def format_metrics_as_markdown(metrics: WeeklyMetrics) -> str:
    """Return a Markdown summary of ``metrics``.

    Sections: summary counts and trend, per-project commits, hourly
    distribution, and deployments when the window had any.
    """
    lines = [
        "## Weekly Metrics",
        "",
        "### Summary",
        f"- **Total Commits**: {metrics.total_commits}",
        f"- **Active Projects**: {metrics.active_projects}",
        f"- **Active Days**: {metrics.active_days} of 7",
        f"- **Active Authors**: {metrics.active_authors}",
        f"- **PRs/MRs Merged**: {metrics.prs_merged}",
        (
            f"- **Week-over-Week Change**: {_signed(metrics.week_over_week_change)} "
            f"commits ({_signed(metrics.week_over_week_percent)}%)"
        ),
        "",
        "### Project Activity",
    ]
    if metrics.top_projects:
        lines.extend(
            f"- **{project.service}**: {project.commits} commits"
            for project in metrics.top_projects
        )
    else:
        lines.append("- No commits recorded this week")

    if metrics.commit_patterns:
        lines.extend(["", "### Hourly Commit Distribution"])
        lines.extend(
            f"- {_hour_range(pattern.hour)}: {pattern.commits} commits"
            for pattern in metrics.commit_patterns
        )

    stats = metrics.deployment_stats
    if stats is not None:
        lines.extend(
            [
                "",
                "### Deployments",
                f"- **Total Deployments**: {stats.deployments}",
                f"- **Successful**: {stats.successful_deployments}",
                f"- **Failed**: {stats.failed_deployments}",
            ]
        )

    return "\n".join(lines) + "\n"
