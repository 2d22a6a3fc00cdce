"""Per-provider scan: identity, projects, recent activity, ingestion."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from devpulse.common.errors import DevpulseError
from devpulse.ingestion.pipeline import BatchIngestionResult
from devpulse.providers.errors import ProviderScanError

from .observability import PollingEventLogger

if typ.TYPE_CHECKING:
    import datetime as dt

    from devpulse.events.models import EventSource
    from devpulse.ingestion.pipeline import IngestionPipeline
    from devpulse.providers.base import SourceClient
    from devpulse.providers.models import ProviderProject


@dc.dataclass(frozen=True, slots=True)
class ProjectScanFailure:
    """A project whose activity could not be fetched."""

    service: str
    error: Exception


@dc.dataclass(frozen=True, slots=True)
class ProviderScanResult:
    """Summary of one provider's scan within a cycle."""

    provider: str
    identity: str
    projects_scanned: int
    ingestion: BatchIngestionResult
    project_failures: tuple[ProjectScanFailure, ...] = ()


class ProviderScanner:
    """Scan one provider for activity by its authenticated identity.

    A scanner built without a client represents a provider that has no
    credentials configured; the scheduler skips it.
    """

    def __init__(
        self,
        provider: EventSource,
        client: SourceClient | None,
        pipeline: IngestionPipeline,
        *,
        lookback: dt.timedelta,
        event_logger: PollingEventLogger | None = None,
    ) -> None:
        """Bind the scanner to a provider client and the ingestion pipeline."""
        self._provider = provider
        self._client = client
        self._pipeline = pipeline
        self._lookback = lookback
        self._event_logger = event_logger or PollingEventLogger()

    @property
    def provider(self) -> str:
        """Return the provider name."""
        return str(self._provider)

    @property
    def configured(self) -> bool:
        """Return whether the provider has a client to scan with."""
        return self._client is not None

    async def scan(
        self, *, now: dt.datetime, since: dt.datetime | None = None
    ) -> ProviderScanResult:
        """Fetch and ingest activity since ``since``, or ``now - lookback``.

        Raises
        ------
        ProviderScanError
            If the identity lookup or the project listing fails. Failures
            while fetching an individual project are recorded on the result
            and the remaining projects are still scanned.

        """
        client = self._require_client()
        if since is None:
            since = now - self._lookback

        try:
            identity = await client.resolve_identity()
        except (DevpulseError, ValueError) as exc:
            raise ProviderScanError.identity_failed(self.provider) from exc

        try:
            projects = await client.list_projects()
        except (DevpulseError, ValueError) as exc:
            raise ProviderScanError.listing_failed(self.provider) from exc

        ingestion = BatchIngestionResult()
        failures: list[ProjectScanFailure] = []
        for project in projects:
            try:
                batch = await self._scan_project(
                    client, project, identity=identity, since=since
                )
            except (DevpulseError, ValueError) as exc:
                self._event_logger.log_project_failed(self.provider, project.service, exc)
                failures.append(ProjectScanFailure(service=project.service, error=exc))
                continue
            ingestion = ingestion.merge(batch)

        return ProviderScanResult(
            provider=self.provider,
            identity=identity,
            projects_scanned=len(projects),
            ingestion=ingestion,
            project_failures=tuple(failures),
        )

    async def aclose(self) -> None:
        """Close the underlying client, if any."""
        if self._client is not None:
            await self._client.aclose()

    async def _scan_project(
        self,
        client: SourceClient,
        project: ProviderProject,
        *,
        identity: str,
        since: dt.datetime,
    ) -> BatchIngestionResult:
        commits = await client.fetch_commits(project, author=identity, since=since)
        merges = await client.fetch_merged_requests(
            project, author=identity, since=since
        )
        return await self._pipeline.ingest_batch(
            [*commits, *merges], label=f"{self.provider}:{project.service}"
        )

    def _require_client(self) -> SourceClient:
        if self._client is None:
            msg = f"{self.provider} has no credentials configured"
            raise RuntimeError(msg)
        return self._client
