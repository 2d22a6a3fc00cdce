"""ASGI lifespan middleware running startup and shutdown hooks.

Falcon calls ``process_startup`` once before serving and
``process_shutdown`` once when the server stops. The runtime uses these to
create storage tables, start the polling scheduler, and later stop the
scheduler, close provider clients and dispose of the engine.

Usage
-----
Register the middleware when creating the Falcon app::

    lifespan = LifespanHooks(
        on_startup=(init_storage, scheduler.start),
        on_shutdown=(scheduler.stop, engine.dispose),
    )
    app = falcon.asgi.App(middleware=[lifespan])

"""

from __future__ import annotations

import typing as typ

from devpulse.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

__all__ = ["Hook", "LifespanHooks"]

type Hook = cabc.Callable[[], cabc.Awaitable[None]]

logger = get_logger(__name__)


class LifespanHooks:
    """Falcon middleware that awaits hooks at server startup and shutdown.

    Startup hooks run in the given order. Shutdown hooks also run in the
    given order, so list them in teardown order (stop producers before
    closing what they use).
    """

    def __init__(
        self,
        *,
        on_startup: cabc.Sequence[Hook] = (),
        on_shutdown: cabc.Sequence[Hook] = (),
    ) -> None:
        """Store the hooks to run."""
        self._on_startup = tuple(on_startup)
        self._on_shutdown = tuple(on_shutdown)

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Run startup hooks."""
        for hook in self._on_startup:
            await hook()
        log_info(logger, "Startup complete (%d hooks)", len(self._on_startup))

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Run shutdown hooks."""
        for hook in self._on_shutdown:
            await hook()
        log_info(logger, "Shutdown complete (%d hooks)", len(self._on_shutdown))
