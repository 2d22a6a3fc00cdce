"""Deterministic activity event builders shared by unit and feature tests.

Examples
--------
>>> import datetime as dt
>>> from tests.helpers.event_builders import commit
>>> event = commit("acme/api", "abc123", dt.datetime(2026, 3, 2, tzinfo=dt.UTC))
>>> event.kind
<EventKind.COMMIT: 'commit'>

"""

from __future__ import annotations

import datetime as dt

from devpulse.events.models import (
    CommitEvent,
    DeploymentEvent,
    DeploymentStatus,
    EventSource,
    PullRequestMergedEvent,
    PullRequestOpenedEvent,
)

NOW = dt.datetime(2026, 3, 9, 12, 0, tzinfo=dt.UTC)


def commit(
    service: str,
    sha: str,
    timestamp: dt.datetime,
    *,
    source: EventSource = EventSource.GITHUB,
    author: str | None = "dev@example.com",
) -> CommitEvent:
    """Return a commit event."""
    return CommitEvent(
        source=source,
        service=service,
        commit_sha=sha,
        timestamp=timestamp,
        author=author,
        raw_data={"id": sha},
    )


def merged(
    service: str,
    number: str,
    timestamp: dt.datetime,
    *,
    source: EventSource = EventSource.GITHUB,
) -> PullRequestMergedEvent:
    """Return a merged pull request event."""
    return PullRequestMergedEvent(
        source=source,
        service=service,
        pr_number=number,
        timestamp=timestamp,
        merge_commit_sha=f"merge-{number}",
        author="dev",
    )


def opened(service: str, number: str, timestamp: dt.datetime) -> PullRequestOpenedEvent:
    """Return an opened pull request event."""
    return PullRequestOpenedEvent(
        source=EventSource.GITHUB,
        service=service,
        pr_number=number,
        timestamp=timestamp,
        author="dev",
    )


def deployment(
    service: str,
    timestamp: dt.datetime,
    *,
    status: DeploymentStatus = DeploymentStatus.SUCCESS,
    environment: str = "production",
) -> DeploymentEvent:
    """Return a deployment event."""
    return DeploymentEvent(
        source=EventSource.MANUAL,
        service=service,
        environment=environment,
        status=status,
        timestamp=timestamp,
    )
