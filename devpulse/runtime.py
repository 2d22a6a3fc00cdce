"""devpulse runtime entrypoint.

This module provides the ASGI application factory used by Granian. The
factory builds the shared services, then hands them to
:func:`devpulse.api.app.create_app` with lifespan hooks that create the
storage tables and start the polling scheduler on startup, and stop the
scheduler, close provider clients and dispose of the engine on shutdown.

Configuration is driven by environment variables:

- ``DEVPULSE_HOST``: Bind address (default ``0.0.0.0``)
- ``DEVPULSE_PORT``: Listen port (default ``8080``)
- ``DEVPULSE_LOG_LEVEL``: Log level (default ``INFO``)
- ``DEVPULSE_DATABASE_URL``: Database connection URL (default
  ``sqlite+aiosqlite:///data/devpulse.db``)
- ``DEVPULSE_POLLING_*``, ``DEVPULSE_GITHUB_*``, ``DEVPULSE_GITLAB_*``:
  polling timing and provider credentials

Run the service directly with ``python -m devpulse.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from devpulse.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid DEVPULSE_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create the fully wired Falcon ASGI application.

    Returns
    -------
    falcon.asgi.App
        Application serving webhooks, metrics and health probes.

    """
    from devpulse.api.app import AppDependencies
    from devpulse.api.app import create_app as _create_api_app
    from devpulse.services import build_services, resolve_database_url

    services = build_services(resolve_database_url())
    deps = AppDependencies(
        store=services.store,
        pipeline=services.pipeline,
        metrics_service=services.metrics_service,
        history_service=services.history_service,
        startup_hooks=(services.start_storage, services.scheduler.start),
        shutdown_hooks=(services.scheduler.stop, services.aclose),
    )
    return _create_api_app(deps)


def main() -> None:
    """Start the devpulse server using Granian.

    Reads ``DEVPULSE_HOST``, ``DEVPULSE_PORT``, and ``DEVPULSE_LOG_LEVEL``
    from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("DEVPULSE_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = _parse_port(os.environ.get("DEVPULSE_PORT", "8080"))
    log_level_str = os.environ.get("DEVPULSE_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid DEVPULSE_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting devpulse on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "devpulse.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
