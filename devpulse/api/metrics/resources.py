"""Metrics API resources.

``GET /metrics/summary`` returns the trailing seven-day summary as JSON, or
as Markdown when ``?format=markdown`` is given. The history endpoints return
JSON arrays of rows. Query parameters that must be positive integers are
validated by Falcon and rejected with HTTP 400.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/metrics/summary", SummaryResource(metrics_service))
    app.add_route("/metrics/commits/frequency", CommitFrequencyResource(history))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

import msgspec

from devpulse.api.errors import InvalidInputError
from devpulse.metrics.markdown import format_metrics_as_markdown

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from devpulse.metrics.history import ActivityHistoryService
    from devpulse.metrics.service import WeeklyMetricsService

__all__ = [
    "CommitFrequencyResource",
    "CommitPatternResource",
    "ProjectActivityResource",
    "SummaryResource",
    "WeeklyProductivityResource",
]

SUMMARY_FORMATS = frozenset({"json", "markdown"})
MARKDOWN_CONTENT_TYPE = "text/markdown; charset=utf-8"


def _to_media(value: object) -> typ.Any:  # noqa: ANN401 - JSON-compatible builtins
    """Convert dataclass results into JSON-compatible builtins."""
    return msgspec.to_builtins(value)


class SummaryResource:
    """Resource for ``GET /metrics/summary``."""

    def __init__(self, metrics_service: WeeklyMetricsService) -> None:
        """Bind the resource to the weekly metrics service."""
        self._metrics_service = metrics_service

    async def on_get(self, req: Request, resp: Response) -> None:
        """Return weekly metrics as JSON or Markdown.

        Parameters
        ----------
        req
            Falcon request; ``format`` selects ``json`` (default) or
            ``markdown``.
        resp
            Falcon response populated with the summary.

        Raises
        ------
        InvalidInputError
            If ``format`` is not a supported value.

        """
        output_format = req.get_param("format", default="json").lower()
        if output_format not in SUMMARY_FORMATS:
            raise InvalidInputError.unsupported_choice(
                "format", output_format, SUMMARY_FORMATS
            )

        metrics = await self._metrics_service.compute_weekly_metrics()
        resp.status = HTTPStatus.OK
        if output_format == "markdown":
            resp.content_type = MARKDOWN_CONTENT_TYPE
            resp.text = format_metrics_as_markdown(metrics)
            return
        resp.media = _to_media(metrics)


class CommitFrequencyResource:
    """Resource for ``GET /metrics/commits/frequency?days=N``."""

    def __init__(self, history: ActivityHistoryService) -> None:
        """Bind the resource to the history service."""
        self._history = history

    async def on_get(self, req: Request, resp: Response) -> None:
        """Return per-date commit counts for the last ``days`` days."""
        days = req.get_param_as_int("days", min_value=1, default=30)
        resp.media = _to_media(await self._history.commit_frequency(days))
        resp.status = HTTPStatus.OK


class ProjectActivityResource:
    """Resource for ``GET /metrics/projects/activity?limit=N``."""

    def __init__(self, history: ActivityHistoryService) -> None:
        """Bind the resource to the history service."""
        self._history = history

    async def on_get(self, req: Request, resp: Response) -> None:
        """Return the most active services over the last 30 days."""
        limit = req.get_param_as_int("limit", min_value=1, default=20)
        resp.media = _to_media(await self._history.project_activity(limit))
        resp.status = HTTPStatus.OK


class WeeklyProductivityResource:
    """Resource for ``GET /metrics/productivity/weekly?weeks=N``."""

    def __init__(self, history: ActivityHistoryService) -> None:
        """Bind the resource to the history service."""
        self._history = history

    async def on_get(self, req: Request, resp: Response) -> None:
        """Return per-week commit activity, newest first."""
        weeks = req.get_param_as_int("weeks", min_value=1, default=12)
        resp.media = _to_media(await self._history.weekly_productivity(weeks))
        resp.status = HTTPStatus.OK


class CommitPatternResource:
    """Resource for ``GET /metrics/commits/patterns``."""

    def __init__(self, history: ActivityHistoryService) -> None:
        """Bind the resource to the history service."""
        self._history = history

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Return each active hour's share of all commits."""
        resp.media = _to_media(await self._history.daily_commit_pattern())
        resp.status = HTTPStatus.OK
