"""Application factory for the devpulse Falcon ASGI application.

This module provides ``create_app()`` which builds and configures the
Falcon ASGI application with health endpoints and, when service
dependencies are supplied, the webhook receivers and metrics queries.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with domain endpoints::

    from devpulse.api.app import AppDependencies, create_app

    deps = AppDependencies(
        store=store,
        pipeline=pipeline,
        metrics_service=metrics_service,
        history_service=history_service,
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from devpulse.api.errors import (
    InvalidInputError,
    handle_aggregation_error,
    handle_invalid_input,
    handle_webhook_payload,
)
from devpulse.api.health.resources import HealthResource, ReadyResource
from devpulse.api.lifespan import LifespanHooks
from devpulse.ingestion.errors import WebhookPayloadError
from devpulse.metrics.errors import AggregationError

if typ.TYPE_CHECKING:
    from devpulse.api.lifespan import Hook
    from devpulse.events.store import EventStore
    from devpulse.ingestion.pipeline import IngestionPipeline
    from devpulse.metrics.history import ActivityHistoryService
    from devpulse.metrics.service import WeeklyMetricsService

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    store
        Event store used by the readiness probe.
    pipeline
        Ingestion pipeline shared by all webhook receivers.
    metrics_service
        Service computing the weekly summary.
    history_service
        Service answering historical activity queries.
    startup_hooks
        Coroutines awaited in order when the server starts.
    shutdown_hooks
        Coroutines awaited in order when the server stops.

    """

    store: EventStore
    pipeline: IngestionPipeline
    metrics_service: WeeklyMetricsService
    history_service: ActivityHistoryService
    startup_hooks: tuple[Hook, ...] = ()
    shutdown_hooks: tuple[Hook, ...] = ()


def _add_domain_routes(app: falcon.asgi.App, deps: AppDependencies) -> None:
    from devpulse.api.metrics.resources import (
        CommitFrequencyResource,
        CommitPatternResource,
        ProjectActivityResource,
        SummaryResource,
        WeeklyProductivityResource,
    )
    from devpulse.api.webhooks.resources import (
        GitHubWebhookResource,
        GitLabWebhookResource,
        ManualWebhookResource,
    )

    app.add_route("/webhooks/github", GitHubWebhookResource(deps.pipeline))
    app.add_route("/webhooks/gitlab", GitLabWebhookResource(deps.pipeline))
    app.add_route("/webhooks/manual", ManualWebhookResource(deps.pipeline))

    app.add_route("/metrics/summary", SummaryResource(deps.metrics_service))
    app.add_route(
        "/metrics/commits/frequency", CommitFrequencyResource(deps.history_service)
    )
    app.add_route(
        "/metrics/projects/activity", ProjectActivityResource(deps.history_service)
    )
    app.add_route(
        "/metrics/productivity/weekly",
        WeeklyProductivityResource(deps.history_service),
    )
    app.add_route(
        "/metrics/commits/patterns", CommitPatternResource(deps.history_service)
    )


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    When *dependencies* is given, the app registers the webhook receivers,
    the metrics endpoints and lifespan middleware running the supplied
    hooks. Otherwise only ``/health`` and ``/ready`` are registered.

    Parameters
    ----------
    dependencies
        Optional application dependencies.  When ``None``, only health
        endpoints are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    middleware: list[object] = []
    if dependencies is not None:
        middleware.append(
            LifespanHooks(
                on_startup=dependencies.startup_hooks,
                on_shutdown=dependencies.shutdown_hooks,
            )
        )

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route(
        "/ready", ReadyResource(dependencies.store if dependencies else None)
    )

    if dependencies is not None:
        _add_domain_routes(app, dependencies)

    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(WebhookPayloadError, handle_webhook_payload)
    app.add_error_handler(AggregationError, handle_aggregation_error)

    return app
