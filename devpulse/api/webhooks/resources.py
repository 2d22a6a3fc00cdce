"""Webhook receiver resources.

Each resource decodes the JSON body, normalises it into events for its
channel and writes them through the ingestion pipeline. Every event in a
delivery is attempted; if any fails, the response is a 500 carrying the
counts so the sender can retry the delivery. Retried deliveries are safe
because commits and merges are deduplicated on ingest.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/webhooks/github", GitHubWebhookResource(pipeline))
    app.add_route("/webhooks/gitlab", GitLabWebhookResource(pipeline))
    app.add_route("/webhooks/manual", ManualWebhookResource(pipeline))

"""

from __future__ import annotations

import abc
import typing as typ
from http import HTTPStatus

from devpulse.api.errors import InvalidInputError
from devpulse.events.models import EventSource
from devpulse.ingestion.webhooks import (
    normalise_github_delivery,
    normalise_gitlab_delivery,
    normalise_manual_delivery,
)
from devpulse.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from devpulse.events.models import Event
    from devpulse.ingestion.pipeline import BatchIngestionResult, IngestionPipeline

__all__ = [
    "GitHubWebhookResource",
    "GitLabWebhookResource",
    "ManualWebhookResource",
]

logger = get_logger(__name__)

GITHUB_EVENT_HEADER = "X-GitHub-Event"
GITLAB_EVENT_HEADER = "X-Gitlab-Event"


def _serialize_result(result: BatchIngestionResult) -> dict[str, typ.Any]:
    if result.ok:
        return {"status": "ok", "inserted": result.inserted, "skipped": result.skipped}
    return {
        "status": "error",
        "inserted": result.inserted,
        "skipped": result.skipped,
        "failed": result.failed,
    }


class _WebhookResource(abc.ABC):
    """Shared POST handling for webhook channels."""

    source: typ.ClassVar[EventSource]

    def __init__(self, pipeline: IngestionPipeline) -> None:
        """Bind the resource to the ingestion pipeline."""
        self._pipeline = pipeline

    @abc.abstractmethod
    def _normalise(self, req: Request, payload: typ.Any) -> list[Event]:  # noqa: ANN401 - decoded JSON
        """Translate the decoded body into events."""

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle a webhook delivery.

        Parameters
        ----------
        req
            Falcon request carrying the JSON delivery.
        resp
            Falcon response populated with ingestion counts.

        """
        payload = await req.get_media()
        events = self._normalise(req, payload)
        result = await self._pipeline.ingest_batch(
            events, label=f"webhook:{self.source}"
        )
        log_info(
            logger,
            "Webhook from %s: %d events, %d inserted, %d skipped, %d failed",
            self.source,
            len(events),
            result.inserted,
            result.skipped,
            result.failed,
        )
        resp.media = _serialize_result(result)
        resp.status = HTTPStatus.OK if result.ok else HTTPStatus.INTERNAL_SERVER_ERROR


def _event_name(req: Request, header: str) -> str:
    name = req.get_header(header)
    if not name:
        raise InvalidInputError.missing_header(header)
    return name


class GitHubWebhookResource(_WebhookResource):
    """``POST /webhooks/github``; event name from ``X-GitHub-Event``."""

    source = EventSource.GITHUB

    def _normalise(self, req: Request, payload: typ.Any) -> list[Event]:  # noqa: ANN401 - decoded JSON
        return normalise_github_delivery(_event_name(req, GITHUB_EVENT_HEADER), payload)


class GitLabWebhookResource(_WebhookResource):
    """``POST /webhooks/gitlab``; event name from ``X-Gitlab-Event``."""

    source = EventSource.GITLAB

    def _normalise(self, req: Request, payload: typ.Any) -> list[Event]:  # noqa: ANN401 - decoded JSON
        return normalise_gitlab_delivery(_event_name(req, GITLAB_EVENT_HEADER), payload)


class ManualWebhookResource(_WebhookResource):
    """``POST /webhooks/manual``; the body describes exactly one event."""

    source = EventSource.MANUAL

    def _normalise(self, _req: Request, payload: typ.Any) -> list[Event]:  # noqa: ANN401 - decoded JSON
        return [normalise_manual_delivery(payload)]
