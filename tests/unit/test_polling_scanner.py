"""Unit tests for the per-provider scanner."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from devpulse.events import EventSource
from devpulse.ingestion import IngestionPipeline
from devpulse.polling import ProviderScanner
from devpulse.providers import ProviderAPIError, ProviderProject, ProviderScanError
from tests.helpers.event_builders import NOW, commit, merged

if typ.TYPE_CHECKING:
    from devpulse.events.models import Event
    from devpulse.events.store import EventStore


class _FakeClient:
    """In-memory ``SourceClient`` keyed by project service."""

    def __init__(
        self,
        projects: dict[str, list[Event]],
        *,
        failing: frozenset[str] = frozenset(),
        identity_error: Exception | None = None,
    ) -> None:
        self.projects = projects
        self.failing = failing
        self.identity_error = identity_error
        self.calls: list[tuple[str, str, dt.datetime]] = []
        self.closed = False

    @property
    def provider(self) -> EventSource:
        return EventSource.GITHUB

    async def resolve_identity(self) -> str:
        if self.identity_error is not None:
            raise self.identity_error
        return "ada"

    async def list_projects(self) -> list[ProviderProject]:
        return [ProviderProject(key=name, service=name) for name in self.projects]

    async def fetch_commits(
        self, project: ProviderProject, *, author: str, since: dt.datetime
    ) -> list[Event]:
        self.calls.append((project.service, author, since))
        if project.service in self.failing:
            raise ProviderAPIError.http_error("github", 502)
        return [e for e in self.projects[project.service] if e.kind == "commit"]

    async def fetch_merged_requests(
        self, project: ProviderProject, *, author: str, since: dt.datetime
    ) -> list[Event]:
        return [e for e in self.projects[project.service] if e.kind == "pr_merged"]

    async def aclose(self) -> None:
        self.closed = True


def _scanner(client: _FakeClient | None, store: EventStore) -> ProviderScanner:
    return ProviderScanner(
        EventSource.GITHUB,
        client,
        IngestionPipeline(store),
        lookback=dt.timedelta(hours=24),
    )


@pytest.mark.asyncio
async def test_scan_fetches_by_identity_since_lookback(store: EventStore) -> None:
    """Activity is requested for the identity over the lookback window."""
    client = _FakeClient({"acme/api": [commit("acme/api", "a1", NOW)]})

    result = await _scanner(client, store).scan(now=NOW)

    assert client.calls == [("acme/api", "ada", NOW - dt.timedelta(hours=24))]
    assert result.identity == "ada"
    assert result.projects_scanned == 1
    assert result.ingestion.inserted == 1


@pytest.mark.asyncio
async def test_explicit_since_replaces_the_lookback(store: EventStore) -> None:
    """Backfills fetch from the given start rather than ``now - lookback``."""
    since = NOW - dt.timedelta(days=60)
    old = commit("acme/api", "old", NOW - dt.timedelta(days=40))
    client = _FakeClient({"acme/api": [old]})

    result = await _scanner(client, store).scan(now=NOW, since=since)

    assert client.calls == [("acme/api", "ada", since)]
    assert result.ingestion.inserted == 1


@pytest.mark.asyncio
async def test_rescanning_the_same_window_inserts_nothing(store: EventStore) -> None:
    """Overlapping lookback windows are absorbed by deduplication."""
    client = _FakeClient(
        {"acme/api": [commit("acme/api", "a1", NOW), merged("acme/api", "4", NOW)]}
    )
    scanner = _scanner(client, store)

    await scanner.scan(now=NOW)
    second = await scanner.scan(now=NOW + dt.timedelta(minutes=15))

    assert (second.ingestion.inserted, second.ingestion.skipped) == (0, 2)
    assert await store.count() == 2


@pytest.mark.asyncio
async def test_project_failure_does_not_stop_other_projects(store: EventStore) -> None:
    """One project failing is recorded and the rest are still ingested."""
    client = _FakeClient(
        {
            "acme/broken": [],
            "acme/api": [commit("acme/api", "a1", NOW)],
        },
        failing=frozenset({"acme/broken"}),
    )

    result = await _scanner(client, store).scan(now=NOW)

    assert [failure.service for failure in result.project_failures] == ["acme/broken"]
    assert result.ingestion.inserted == 1


@pytest.mark.asyncio
async def test_identity_failure_fails_the_scan(store: EventStore) -> None:
    """Without an identity nothing can be scanned."""
    client = _FakeClient({}, identity_error=ProviderAPIError.http_error("github", 401))

    with pytest.raises(ProviderScanError) as excinfo:
        await _scanner(client, store).scan(now=NOW)

    assert excinfo.value.reason == "identity"
    assert isinstance(excinfo.value.__cause__, ProviderAPIError)


@pytest.mark.asyncio
async def test_unconfigured_scanner(store: EventStore) -> None:
    """A scanner without a client reports itself unconfigured."""
    scanner = _scanner(None, store)

    assert not scanner.configured
    assert scanner.provider == "github"
    await scanner.aclose()


@pytest.mark.asyncio
async def test_aclose_closes_client(store: EventStore) -> None:
    """Closing the scanner closes its client."""
    client = _FakeClient({})

    await _scanner(client, store).aclose()

    assert client.closed
