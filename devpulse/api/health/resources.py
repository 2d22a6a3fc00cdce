"""Health probe resources for liveness and readiness checks.

``/health`` never touches the database. ``/ready`` runs a cheap count
against the event store when one is configured and reports 503 if the
store cannot be queried.

Usage
-----
Register health endpoints on the Falcon app::

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(store))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from devpulse.common.time import isoformat_utc, utcnow
from devpulse.events.errors import StorageError
from devpulse.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from devpulse.events.store import EventStore

__all__ = ["HealthResource", "ReadyResource"]

logger = get_logger(__name__)


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with liveness status.

        """
        resp.media = {"status": "ok", "timestamp": isoformat_utc(utcnow())}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource returning ``{"status": "ready"}``.

    When constructed with an event store, readiness also requires the
    store to answer a count query.
    """

    def __init__(self, store: EventStore | None = None) -> None:
        """Optionally bind the probe to the event store."""
        self._store = store

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with readiness status.

        """
        if self._store is not None:
            try:
                await self._store.count()
            except StorageError as exc:
                log_warning(logger, "Readiness check failed: %s", exc)
                resp.media = {"status": "unavailable"}
                resp.status = HTTPStatus.SERVICE_UNAVAILABLE
                return

        resp.media = {"status": "ready"}
        resp.status = HTTPStatus.OK
