"""Wiring of the storage, ingestion, polling and metrics services.

``build_services`` turns a database URL plus the ``DEVPULSE_*`` provider
and polling variables into one :class:`ServiceContainer`. Both the HTTP
runtime and the command line build their collaborators through it so
they share the same configuration rules.

Usage
-----
Build services and run a single poll::

    services = build_services(resolve_database_url())
    await services.start_storage()
    await services.scheduler.run_cycle()
    await services.aclose()

"""

from __future__ import annotations

import contextlib
import dataclasses as dc
import os
import typing as typ
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from devpulse.events.models import EventSource
from devpulse.events.storage import init_event_storage
from devpulse.events.store import EventStore
from devpulse.ingestion.pipeline import IngestionPipeline
from devpulse.logging import get_logger, log_info
from devpulse.metrics.history import ActivityHistoryService
from devpulse.metrics.service import WeeklyMetricsService
from devpulse.polling.config import PollingConfig
from devpulse.polling.scanner import ProviderScanner
from devpulse.polling.scheduler import PollingScheduler
from devpulse.providers.github import GitHubRestClient, GitHubRestConfig
from devpulse.providers.gitlab import GitLabRestClient, GitLabRestConfig

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from devpulse.providers.base import SourceClient

__all__ = [
    "DEFAULT_DATABASE_URL",
    "ServiceContainer",
    "build_services",
    "resolve_database_url",
]

logger = get_logger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///data/devpulse.db"


def resolve_database_url() -> str:
    """Return ``DEVPULSE_DATABASE_URL`` or the bundled SQLite default."""
    return os.environ.get("DEVPULSE_DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or url.database in (None, "", ":memory:"):
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


@dc.dataclass(frozen=True, slots=True)
class ServiceContainer:
    """Collaborators shared by the API, the scheduler and the CLI."""

    engine: AsyncEngine
    store: EventStore
    pipeline: IngestionPipeline
    metrics_service: WeeklyMetricsService
    history_service: ActivityHistoryService
    scanners: tuple[ProviderScanner, ...]
    scheduler: PollingScheduler

    async def start_storage(self) -> None:
        """Create tables and record the schema version."""
        await init_event_storage(self.engine)

    async def aclose(self) -> None:
        """Close provider clients and dispose of the engine.

        Every step runs even when an earlier one raises; the first error
        propagates once teardown finishes.
        """
        async with contextlib.AsyncExitStack() as stack:
            stack.push_async_callback(self.engine.dispose)
            for scanner in self.scanners:
                stack.push_async_callback(scanner.aclose)
        log_info(logger, "Services closed")


def _build_scanners(
    pipeline: IngestionPipeline, config: PollingConfig, max_pages: int | None
) -> tuple[ProviderScanner, ...]:
    github_config = GitHubRestConfig.from_env()
    gitlab_config = GitLabRestConfig.from_env()
    if max_pages is not None and github_config is not None:
        github_config = dc.replace(github_config, max_pages=max_pages)
    if max_pages is not None and gitlab_config is not None:
        gitlab_config = dc.replace(gitlab_config, max_pages=max_pages)
    github: SourceClient | None = (
        GitHubRestClient(github_config) if github_config is not None else None
    )
    gitlab: SourceClient | None = (
        GitLabRestClient(gitlab_config) if gitlab_config is not None else None
    )
    return (
        ProviderScanner(EventSource.GITHUB, github, pipeline, lookback=config.lookback),
        ProviderScanner(EventSource.GITLAB, gitlab, pipeline, lookback=config.lookback),
    )


def build_services(
    database_url: str,
    *,
    polling_config: PollingConfig | None = None,
    max_pages: int | None = None,
) -> ServiceContainer:
    """Build every service from a database URL and the environment.

    Parameters
    ----------
    database_url
        SQLAlchemy async URL for the event store.
    polling_config
        Polling timing; read from the environment when omitted.
    max_pages
        Page cap for provider listings; the client default when omitted.

    Returns
    -------
    ServiceContainer
        Wired services; storage is not initialised until
        :meth:`ServiceContainer.start_storage` is awaited.

    Raises
    ------
    ValueError
        If a ``DEVPULSE_POLLING_*`` variable is invalid.

    """
    config = polling_config or PollingConfig.from_env()
    _ensure_sqlite_directory(database_url)

    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    store = EventStore(session_factory)
    pipeline = IngestionPipeline(store)
    scanners = _build_scanners(pipeline, config, max_pages)

    return ServiceContainer(
        engine=engine,
        store=store,
        pipeline=pipeline,
        metrics_service=WeeklyMetricsService(store),
        history_service=ActivityHistoryService(store),
        scanners=scanners,
        scheduler=PollingScheduler(scanners, config),
    )
