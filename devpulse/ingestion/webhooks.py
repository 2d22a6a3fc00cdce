"""Normalise webhook deliveries into typed events.

Each provider sends a different JSON document per event name. The shapes the
pipeline relies on are declared as ``msgspec`` structs and decoded with
``msgspec.convert``; unknown keys are ignored. The original decoded JSON is
kept as each event's ``raw_data`` for audit.

Event names that are not tracked produce no events. Payloads that do not
match the expected shape raise :class:`WebhookPayloadError`.
"""

from __future__ import annotations

import typing as typ

import msgspec

from devpulse.common.time import parse_timestamp, utcnow
from devpulse.events.models import (
    CommitEvent,
    DeploymentEvent,
    DeploymentStatus,
    EventKind,
    EventSource,
    PullRequestMergedEvent,
    PullRequestOpenedEvent,
)

from .errors import WebhookPayloadError
from .observability import IngestionEventLogger

if typ.TYPE_CHECKING:
    import datetime as dt

    from devpulse.events.models import Event

_event_logger = IngestionEventLogger()

GITLAB_DEFAULT_ENVIRONMENT = "production"
GITLAB_UNKNOWN_PROJECT = "unknown"


# GitHub payload shapes


class _GitHubCommitAuthor(msgspec.Struct, kw_only=True):
    name: str | None = None
    email: str | None = None
    username: str | None = None


class _GitHubPushCommit(msgspec.Struct, kw_only=True):
    id: str
    timestamp: str
    author: _GitHubCommitAuthor | None = None


class _GitHubRepository(msgspec.Struct, kw_only=True):
    full_name: str


class _GitHubUser(msgspec.Struct, kw_only=True):
    login: str | None = None
    email: str | None = None


class GitHubPushPayload(msgspec.Struct, kw_only=True):
    """Fields of a GitHub ``push`` delivery."""

    repository: _GitHubRepository
    commits: list[_GitHubPushCommit] = msgspec.field(default_factory=list)


class _GitHubPullRequest(msgspec.Struct, kw_only=True):
    number: int
    merged: bool = False
    created_at: str | None = None
    merged_at: str | None = None
    merge_commit_sha: str | None = None
    user: _GitHubUser | None = None


class GitHubPullRequestPayload(msgspec.Struct, kw_only=True):
    """Fields of a GitHub ``pull_request`` delivery."""

    action: str
    pull_request: _GitHubPullRequest
    repository: _GitHubRepository


class _GitHubDeployment(msgspec.Struct, kw_only=True):
    environment: str
    sha: str | None = None


class _GitHubDeploymentStatus(msgspec.Struct, kw_only=True):
    state: str
    created_at: str


class GitHubDeploymentStatusPayload(msgspec.Struct, kw_only=True):
    """Fields of a GitHub ``deployment_status`` delivery."""

    deployment: _GitHubDeployment
    deployment_status: _GitHubDeploymentStatus
    repository: _GitHubRepository


# GitLab payload shapes


class _GitLabProject(msgspec.Struct, kw_only=True):
    path_with_namespace: str | None = None
    name: str | None = None


class _GitLabCommitAuthor(msgspec.Struct, kw_only=True):
    name: str | None = None
    email: str | None = None


class _GitLabPushCommit(msgspec.Struct, kw_only=True):
    id: str
    timestamp: str
    author: _GitLabCommitAuthor | None = None


class _GitLabUser(msgspec.Struct, kw_only=True):
    username: str | None = None
    email: str | None = None


class GitLabPushPayload(msgspec.Struct, kw_only=True):
    """Fields of a GitLab ``Push Hook`` delivery."""

    project: _GitLabProject | None = None
    commits: list[_GitLabPushCommit] = msgspec.field(default_factory=list)


class _GitLabMergeRequestAttributes(msgspec.Struct, kw_only=True):
    iid: int
    state: str | None = None
    action: str | None = None
    merge_commit_sha: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    merged_at: str | None = None


class GitLabMergeRequestPayload(msgspec.Struct, kw_only=True):
    """Fields of a GitLab ``Merge Request Hook`` delivery."""

    object_attributes: _GitLabMergeRequestAttributes
    project: _GitLabProject | None = None
    user: _GitLabUser | None = None


class _GitLabCommitRef(msgspec.Struct, kw_only=True):
    id: str | None = None


class GitLabDeploymentPayload(msgspec.Struct, kw_only=True):
    """Fields of a GitLab ``Deployment Hook`` delivery."""

    status: str | None = None
    environment: str | None = None
    sha: str | None = None
    commit: _GitLabCommitRef | None = None
    created_at: str | None = None
    project: _GitLabProject | None = None


class ManualEventPayload(msgspec.Struct, kw_only=True):
    """A hand-submitted event description."""

    type: str
    service: str
    timestamp: str | None = None
    author: str | None = None
    commit_sha: str | None = None
    pr_number: str | int | None = None
    merge_commit_sha: str | None = None
    environment: str | None = None
    status: str | None = None
    raw_data: dict[str, typ.Any] | None = None


def _convert[T](payload: object, target: type[T], source: str) -> T:
    if not isinstance(payload, dict):
        raise WebhookPayloadError.not_an_object(source)
    try:
        return msgspec.convert(payload, type=target)
    except msgspec.ValidationError as exc:
        raise WebhookPayloadError.invalid_shape(source, str(exc)) from exc


def _timestamp(value: str) -> dt.datetime:
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise WebhookPayloadError.invalid_timestamp(value) from exc


def _optional_timestamp(value: str | None, *, default: dt.datetime) -> dt.datetime:
    return default if not value else _timestamp(value)


def _raw_items(payload: dict[str, typ.Any], key: str) -> list[dict[str, typ.Any]]:
    items = payload.get(key) or []
    return [item if isinstance(item, dict) else {} for item in items]


def _github_deployment_status(state: str) -> DeploymentStatus:
    match state:
        case "success":
            return DeploymentStatus.SUCCESS
        case "failure":
            return DeploymentStatus.FAILURE
        case _:
            return DeploymentStatus.ROLLBACK


def _gitlab_deployment_status(status: str | None) -> DeploymentStatus:
    match status:
        case "success":
            return DeploymentStatus.SUCCESS
        case "failed":
            return DeploymentStatus.FAILURE
        case _:
            return DeploymentStatus.ROLLBACK


def normalise_github_delivery(
    event_name: str, payload: dict[str, typ.Any]
) -> list[Event]:
    """Translate a GitHub webhook delivery into zero or more events.

    Parameters
    ----------
    event_name
        Value of the ``X-GitHub-Event`` header.
    payload
        Decoded JSON body of the delivery.

    Returns
    -------
    list[Event]
        One commit per pushed commit, one merged or opened pull request, one
        deployment, or nothing for untracked deliveries.

    """
    match event_name:
        case "push":
            return _github_push(payload)
        case "pull_request":
            return _github_pull_request(payload)
        case "deployment_status":
            return [_github_deployment(payload)]
        case _:
            _event_logger.log_delivery_ignored(EventSource.GITHUB, event_name)
            return []


def _github_push(payload: dict[str, typ.Any]) -> list[Event]:
    push = _convert(payload, GitHubPushPayload, EventSource.GITHUB)
    raw_commits = _raw_items(payload, "commits")
    return [
        CommitEvent(
            source=EventSource.GITHUB,
            service=push.repository.full_name,
            commit_sha=commit.id,
            timestamp=_timestamp(commit.timestamp),
            author=commit.author.email if commit.author else None,
            raw_data=raw,
        )
        for commit, raw in zip(push.commits, raw_commits, strict=True)
    ]


def _github_pull_request(payload: dict[str, typ.Any]) -> list[Event]:
    delivery = _convert(payload, GitHubPullRequestPayload, EventSource.GITHUB)
    pr = delivery.pull_request
    author = (pr.user.email or pr.user.login) if pr.user else None

    if delivery.action == "closed" and pr.merged:
        if not pr.merged_at:
            raise WebhookPayloadError.missing_field("pull_request.merged_at")
        return [
            PullRequestMergedEvent(
                source=EventSource.GITHUB,
                service=delivery.repository.full_name,
                pr_number=str(pr.number),
                timestamp=_timestamp(pr.merged_at),
                merge_commit_sha=pr.merge_commit_sha,
                author=author,
                raw_data=payload,
            )
        ]
    if delivery.action == "opened":
        if not pr.created_at:
            raise WebhookPayloadError.missing_field("pull_request.created_at")
        return [
            PullRequestOpenedEvent(
                source=EventSource.GITHUB,
                service=delivery.repository.full_name,
                pr_number=str(pr.number),
                timestamp=_timestamp(pr.created_at),
                author=author,
                raw_data=payload,
            )
        ]

    _event_logger.log_delivery_ignored(
        EventSource.GITHUB, f"pull_request.{delivery.action}"
    )
    return []


def _github_deployment(payload: dict[str, typ.Any]) -> Event:
    delivery = _convert(payload, GitHubDeploymentStatusPayload, EventSource.GITHUB)
    return DeploymentEvent(
        source=EventSource.GITHUB,
        service=delivery.repository.full_name,
        environment=delivery.deployment.environment,
        status=_github_deployment_status(delivery.deployment_status.state),
        timestamp=_timestamp(delivery.deployment_status.created_at),
        commit_sha=delivery.deployment.sha,
        raw_data=payload,
    )


def _gitlab_service(project: _GitLabProject | None) -> str:
    if project is None:
        return GITLAB_UNKNOWN_PROJECT
    return project.path_with_namespace or project.name or GITLAB_UNKNOWN_PROJECT


def normalise_gitlab_delivery(
    event_name: str,
    payload: dict[str, typ.Any],
    *,
    now: dt.datetime | None = None,
) -> list[Event]:
    """Translate a GitLab webhook delivery into zero or more events.

    ``event_name`` is the ``X-Gitlab-Event`` header. Deployments are also
    recognised by ``object_kind == "deployment"`` whatever the header says.
    ``now`` stands in for deployments that carry no ``created_at``.
    """
    match event_name:
        case "Push Hook" | "push":
            return _gitlab_push(payload)
        case "Merge Request Hook":
            return _gitlab_merge_request(payload, now=now or utcnow())
        case "Deployment Hook":
            return [_gitlab_deployment(payload, now=now or utcnow())]
        case _ if isinstance(payload, dict) and payload.get("object_kind") == "deployment":
            return [_gitlab_deployment(payload, now=now or utcnow())]
        case _:
            _event_logger.log_delivery_ignored(EventSource.GITLAB, event_name)
            return []


def _gitlab_push(payload: dict[str, typ.Any]) -> list[Event]:
    push = _convert(payload, GitLabPushPayload, EventSource.GITLAB)
    service = _gitlab_service(push.project)
    raw_commits = _raw_items(payload, "commits")
    return [
        CommitEvent(
            source=EventSource.GITLAB,
            service=service,
            commit_sha=commit.id,
            timestamp=_timestamp(commit.timestamp),
            author=commit.author.email if commit.author else None,
            raw_data=raw,
        )
        for commit, raw in zip(push.commits, raw_commits, strict=True)
    ]


def _gitlab_merge_request(
    payload: dict[str, typ.Any], *, now: dt.datetime
) -> list[Event]:
    delivery = _convert(payload, GitLabMergeRequestPayload, EventSource.GITLAB)
    attrs = delivery.object_attributes
    service = _gitlab_service(delivery.project)
    author = (delivery.user.email or delivery.user.username) if delivery.user else None

    if attrs.state == "merged":
        return [
            PullRequestMergedEvent(
                source=EventSource.GITLAB,
                service=service,
                pr_number=str(attrs.iid),
                timestamp=_optional_timestamp(
                    attrs.merged_at or attrs.updated_at, default=now
                ),
                merge_commit_sha=attrs.merge_commit_sha,
                author=author,
                raw_data=payload,
            )
        ]
    if attrs.action == "open":
        return [
            PullRequestOpenedEvent(
                source=EventSource.GITLAB,
                service=service,
                pr_number=str(attrs.iid),
                timestamp=_optional_timestamp(attrs.created_at, default=now),
                author=author,
                raw_data=payload,
            )
        ]

    _event_logger.log_delivery_ignored(
        EventSource.GITLAB, f"merge_request.{attrs.action or attrs.state}"
    )
    return []


def _gitlab_deployment(payload: dict[str, typ.Any], *, now: dt.datetime) -> Event:
    delivery = _convert(payload, GitLabDeploymentPayload, EventSource.GITLAB)
    commit_sha = delivery.sha or (delivery.commit.id if delivery.commit else None)
    return DeploymentEvent(
        source=EventSource.GITLAB,
        service=_gitlab_service(delivery.project),
        environment=delivery.environment or GITLAB_DEFAULT_ENVIRONMENT,
        status=_gitlab_deployment_status(delivery.status),
        timestamp=_optional_timestamp(delivery.created_at, default=now),
        commit_sha=commit_sha,
        raw_data=payload,
    )


def normalise_manual_delivery(
    payload: dict[str, typ.Any], *, now: dt.datetime | None = None
) -> Event:
    """Build one ``manual`` event from a hand-submitted description.

    ``type`` selects the event kind and decides which further fields are
    required: ``commit_sha`` for commits, ``pr_number`` for pull requests and
    ``environment`` plus ``status`` for deployments. A missing ``timestamp``
    defaults to ``now``.
    """
    manual = _convert(payload, ManualEventPayload, EventSource.MANUAL)
    try:
        kind = EventKind(manual.type)
    except ValueError as exc:
        raise WebhookPayloadError.unsupported_kind(manual.type) from exc

    timestamp = _optional_timestamp(manual.timestamp, default=now or utcnow())
    raw_data = manual.raw_data if manual.raw_data is not None else payload

    match kind:
        case EventKind.COMMIT:
            return CommitEvent(
                source=EventSource.MANUAL,
                service=manual.service,
                commit_sha=_required(manual.commit_sha, "commit_sha"),
                timestamp=timestamp,
                author=manual.author,
                raw_data=raw_data,
            )
        case EventKind.PR_OPENED:
            return PullRequestOpenedEvent(
                source=EventSource.MANUAL,
                service=manual.service,
                pr_number=_required(manual.pr_number, "pr_number"),
                timestamp=timestamp,
                author=manual.author,
                raw_data=raw_data,
            )
        case EventKind.PR_MERGED:
            return PullRequestMergedEvent(
                source=EventSource.MANUAL,
                service=manual.service,
                pr_number=_required(manual.pr_number, "pr_number"),
                timestamp=timestamp,
                merge_commit_sha=manual.merge_commit_sha,
                author=manual.author,
                raw_data=raw_data,
            )
        case EventKind.DEPLOYMENT:
            return DeploymentEvent(
                source=EventSource.MANUAL,
                service=manual.service,
                environment=_required(manual.environment, "environment"),
                status=_manual_status(manual.status),
                timestamp=timestamp,
                commit_sha=manual.commit_sha,
                author=manual.author,
                raw_data=raw_data,
            )


def _required(value: str | int | None, field: str) -> str:
    if value is None or value == "":
        raise WebhookPayloadError.missing_field(field)
    return str(value)


def _manual_status(value: str | None) -> DeploymentStatus:
    status = _required(value, "status")
    try:
        return DeploymentStatus(status)
    except ValueError as exc:
        raise WebhookPayloadError.invalid_shape(
            EventSource.MANUAL, f"unknown deployment status {status!r}"
        ) from exc
