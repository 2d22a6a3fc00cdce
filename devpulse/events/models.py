"""Typed activity events.

Each event kind carries only the fields that are meaningful for it, so a
deployment can never be constructed with a pull request number and a commit
can never lack its SHA. ``Event`` is the union the rest of the system passes
around; pattern matching on the concrete class selects per-kind behaviour.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

Payload: typ.TypeAlias = dict[str, typ.Any]


class EventSource(enum.StrEnum):
    """Channel that produced an event."""

    GITHUB = "github"
    GITLAB = "gitlab"
    MANUAL = "manual"


class EventKind(enum.StrEnum):
    """Kinds of developer activity tracked by the store."""

    COMMIT = "commit"
    PR_OPENED = "pr_opened"
    PR_MERGED = "pr_merged"
    DEPLOYMENT = "deployment"


class DeploymentStatus(enum.StrEnum):
    """Outcome classification for deployments."""

    SUCCESS = "success"
    FAILURE = "failure"
    ROLLBACK = "rollback"


@dc.dataclass(frozen=True, slots=True, kw_only=True)
class CommitEvent:
    """A commit authored on a tracked project."""

    kind: typ.ClassVar[EventKind] = EventKind.COMMIT

    source: EventSource
    service: str
    commit_sha: str
    timestamp: dt.datetime
    author: str | None = None
    raw_data: Payload = dc.field(default_factory=dict)


@dc.dataclass(frozen=True, slots=True, kw_only=True)
class PullRequestOpenedEvent:
    """A pull or merge request that was opened."""

    kind: typ.ClassVar[EventKind] = EventKind.PR_OPENED

    source: EventSource
    service: str
    pr_number: str
    timestamp: dt.datetime
    author: str | None = None
    raw_data: Payload = dc.field(default_factory=dict)


@dc.dataclass(frozen=True, slots=True, kw_only=True)
class PullRequestMergedEvent:
    """A pull or merge request that was merged."""

    kind: typ.ClassVar[EventKind] = EventKind.PR_MERGED

    source: EventSource
    service: str
    pr_number: str
    timestamp: dt.datetime
    merge_commit_sha: str | None = None
    author: str | None = None
    raw_data: Payload = dc.field(default_factory=dict)


@dc.dataclass(frozen=True, slots=True, kw_only=True)
class DeploymentEvent:
    """A deployment of a service to an environment."""

    kind: typ.ClassVar[EventKind] = EventKind.DEPLOYMENT

    source: EventSource
    service: str
    environment: str
    status: DeploymentStatus
    timestamp: dt.datetime
    commit_sha: str | None = None
    author: str | None = None
    raw_data: Payload = dc.field(default_factory=dict)


type Event = CommitEvent | PullRequestOpenedEvent | PullRequestMergedEvent | DeploymentEvent


@dc.dataclass(frozen=True, slots=True)
class StoredEvent:
    """An event as persisted, with the identity and time the store assigned."""

    id: int
    created_at: dt.datetime
    event: Event

    @property
    def kind(self) -> EventKind:
        """Return the kind of the wrapped event."""
        return self.event.kind


def describe_event(event: Event) -> str:
    """Return a short human-readable identifier used in log lines."""
    match event:
        case CommitEvent(commit_sha=sha):
            ref = sha[:12]
        case PullRequestOpenedEvent(pr_number=number) | PullRequestMergedEvent(
            pr_number=number
        ):
            ref = f"#{number}"
        case DeploymentEvent(environment=environment):
            ref = environment
    return f"{event.source}:{event.kind}:{event.service}:{ref}"
