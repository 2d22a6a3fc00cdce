"""Unit tests for the append-only event store."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from devpulse.events import (
    CommitEvent,
    DeploymentStatus,
    EventKind,
    EventSource,
    PullRequestMergedEvent,
    TimezoneAwareRequiredError,
)
from tests.helpers.event_builders import NOW, commit, deployment, merged, opened

if typ.TYPE_CHECKING:
    from devpulse.events.store import EventStore


@pytest.mark.asyncio
async def test_insert_assigns_identity_and_round_trips_fields(store: EventStore) -> None:
    """Inserted events come back with an id, created_at and their fields."""
    stored = await store.insert(commit("acme/api", "abc123", NOW, author="a@x.io"))

    assert stored.id > 0
    assert stored.created_at.tzinfo is not None
    assert stored.kind is EventKind.COMMIT
    event = stored.event
    assert isinstance(event, CommitEvent)
    assert event.commit_sha == "abc123"
    assert event.author == "a@x.io"
    assert event.timestamp == NOW
    assert event.raw_data == {"id": "abc123"}


@pytest.mark.asyncio
async def test_store_does_not_deduplicate(store: EventStore) -> None:
    """The store itself appends every insert, duplicates included."""
    event = commit("acme/api", "abc123", NOW)
    await store.insert(event)
    await store.insert(event)

    assert await store.count() == 2


@pytest.mark.asyncio
async def test_commit_exists_is_scoped_to_source(store: EventStore) -> None:
    """The same SHA from another channel is not considered present."""
    await store.insert(commit("acme/api", "abc123", NOW, source=EventSource.GITHUB))

    assert await store.commit_exists("abc123", EventSource.GITHUB)
    assert not await store.commit_exists("abc123", EventSource.GITLAB)
    assert not await store.commit_exists("other", EventSource.GITHUB)


@pytest.mark.asyncio
async def test_merge_exists_matches_number_service_and_source(store: EventStore) -> None:
    """Merge lookups key on pull request number, service and source."""
    await store.insert(merged("acme/api", "42", NOW))

    assert await store.merge_exists("42", "acme/api", EventSource.GITHUB)
    assert not await store.merge_exists("42", "acme/web", EventSource.GITHUB)
    assert not await store.merge_exists("43", "acme/api", EventSource.GITHUB)


@pytest.mark.asyncio
async def test_merge_commit_sha_round_trips(store: EventStore) -> None:
    """The merge commit SHA survives storage."""
    stored = await store.insert(merged("acme/api", "7", NOW))

    assert isinstance(stored.event, PullRequestMergedEvent)
    assert stored.event.merge_commit_sha == "merge-7"


@pytest.mark.asyncio
async def test_query_window_is_half_open_and_ordered(store: EventStore) -> None:
    """Events at ``start`` are included; events at ``end`` are not."""
    start = NOW - dt.timedelta(days=7)
    await store.insert(commit("svc", "late", NOW - dt.timedelta(hours=1)))
    await store.insert(commit("svc", "at-start", start))
    await store.insert(commit("svc", "at-end", NOW))
    await store.insert(commit("svc", "before", start - dt.timedelta(seconds=1)))

    rows = await store.query_window(EventKind.COMMIT, start, NOW)

    shas = [typ.cast("CommitEvent", row.event).commit_sha for row in rows]
    assert shas == ["at-start", "late"]


@pytest.mark.asyncio
async def test_query_window_filters_by_kind(store: EventStore) -> None:
    """Only events of the requested kind are returned."""
    await store.insert(commit("svc", "abc", NOW - dt.timedelta(hours=2)))
    await store.insert(opened("svc", "1", NOW - dt.timedelta(hours=2)))
    await store.insert(
        deployment("svc", NOW - dt.timedelta(hours=1), status=DeploymentStatus.FAILURE)
    )

    rows = await store.query_window(
        EventKind.DEPLOYMENT, NOW - dt.timedelta(days=1), NOW
    )

    assert [row.kind for row in rows] == [EventKind.DEPLOYMENT]


@pytest.mark.asyncio
async def test_query_window_rejects_naive_bounds(store: EventStore) -> None:
    """Naive window bounds are rejected before querying."""
    naive = dt.datetime(2026, 3, 1)  # noqa: DTZ001 - intentional naive bound

    with pytest.raises(TimezoneAwareRequiredError):
        await store.query_window(EventKind.COMMIT, naive, NOW)


@pytest.mark.asyncio
async def test_insert_rejects_naive_timestamp(store: EventStore) -> None:
    """Events with naive timestamps are not stored."""
    naive = dt.datetime(2026, 3, 1, 12, 0)  # noqa: DTZ001 - intentional naive timestamp

    with pytest.raises(TimezoneAwareRequiredError):
        await store.insert(commit("svc", "abc", naive))
    assert await store.count() == 0


@pytest.mark.asyncio
async def test_query_kind_since(store: EventStore) -> None:
    """``query_kind`` returns every row of a kind from ``since`` onwards."""
    await store.insert(commit("svc", "old", NOW - dt.timedelta(days=90)))
    await store.insert(commit("svc", "new", NOW - dt.timedelta(days=1)))

    everything = await store.query_kind(EventKind.COMMIT)
    recent = await store.query_kind(EventKind.COMMIT, since=NOW - dt.timedelta(days=30))

    assert len(everything) == 2
    assert [typ.cast("CommitEvent", row.event).commit_sha for row in recent] == ["new"]
