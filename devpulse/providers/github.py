"""GitHub REST client used by the poller."""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ

import httpx
import msgspec

from devpulse.common.time import parse_timestamp, require_aware, utcnow
from devpulse.events.models import CommitEvent, EventSource, PullRequestMergedEvent

from .errors import ProviderConfigError
from .http import decode_items, decode_object, get_json_response
from .models import ProviderProject

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from devpulse.events.models import Event

DEFAULT_GITHUB_API_URL = "https://api.github.com"
_PER_PAGE = 100


@dc.dataclass(frozen=True, slots=True)
class GitHubRestConfig:
    """Configuration for the GitHub REST API client."""

    token: str
    api_url: str = DEFAULT_GITHUB_API_URL
    timeout_s: float = 20.0
    user_agent: str = "devpulse/0.1"
    max_pages: int = 10

    @classmethod
    def from_env(cls) -> GitHubRestConfig | None:
        """Build configuration from ``DEVPULSE_GITHUB_*`` variables.

        Returns ``None`` when ``DEVPULSE_GITHUB_TOKEN`` is unset so callers
        can skip GitHub polling entirely.
        """
        token = os.environ.get("DEVPULSE_GITHUB_TOKEN", "").strip()
        if not token:
            return None
        api_url = os.environ.get("DEVPULSE_GITHUB_API_URL", "").strip()
        return cls(token=token, api_url=(api_url or DEFAULT_GITHUB_API_URL).rstrip("/"))


class _User(msgspec.Struct, kw_only=True):
    login: str


class _Owner(msgspec.Struct, kw_only=True):
    login: str | None = None


class _Repository(msgspec.Struct, kw_only=True):
    full_name: str
    owner: _Owner | None = None


class _GitActor(msgspec.Struct, kw_only=True):
    email: str | None = None
    date: str | None = None


class _GitCommit(msgspec.Struct, kw_only=True):
    author: _GitActor | None = None
    committer: _GitActor | None = None


class _CommitItem(msgspec.Struct, kw_only=True):
    sha: str
    commit: _GitCommit


class _PullUser(msgspec.Struct, kw_only=True):
    login: str | None = None


class _PullHead(msgspec.Struct, kw_only=True):
    sha: str | None = None


class _PullItem(msgspec.Struct, kw_only=True):
    number: int
    updated_at: str
    merged_at: str | None = None
    merge_commit_sha: str | None = None
    user: _PullUser | None = None
    head: _PullHead | None = None


def _commit_timestamp(commit: _GitCommit) -> dt.datetime:
    for actor in (commit.author, commit.committer):
        if actor is not None and actor.date:
            return parse_timestamp(actor.date)
    return utcnow()


class GitHubRestClient:
    """GitHub implementation of :class:`~devpulse.providers.base.SourceClient`."""

    def __init__(
        self,
        config: GitHubRestConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise ProviderConfigError.empty_token(EventSource.GITHUB)

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.token}",
                "User-Agent": config.user_agent,
                "Accept": "application/vnd.github+json",
            },
        )

    @property
    def provider(self) -> EventSource:
        """Return ``EventSource.GITHUB``."""
        return EventSource.GITHUB

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def resolve_identity(self) -> str:
        """Return the login of the token's owner."""
        response = await self._get(f"{self._config.api_url}/user")
        return decode_object(response, _User, self.provider).login

    async def list_projects(self) -> list[ProviderProject]:
        """Return repositories the user owns, collaborates on or can see via orgs."""
        params: dict[str, str | int] = {
            "visibility": "all",
            "affiliation": "owner,collaborator,organization_member",
            "sort": "pushed",
            "per_page": _PER_PAGE,
        }
        projects: list[ProviderProject] = []
        async for response in self._paginate(
            f"{self._config.api_url}/user/repos", params
        ):
            projects.extend(
                ProviderProject(key=repo.full_name, service=repo.full_name)
                for repo, _raw in decode_items(response, _Repository, self.provider)
            )
        return projects

    async def fetch_commits(
        self, project: ProviderProject, *, author: str, since: dt.datetime
    ) -> list[Event]:
        """Return commits authored by ``author`` since ``since``."""
        since_utc = require_aware(since, field="since")
        params: dict[str, str | int] = {
            "author": author,
            "since": since_utc.isoformat(),
            "per_page": _PER_PAGE,
        }
        events: list[Event] = []
        async for response in self._paginate(
            f"{self._config.api_url}/repos/{project.key}/commits", params
        ):
            for item, raw in decode_items(response, _CommitItem, self.provider):
                email = item.commit.author.email if item.commit.author else None
                events.append(
                    CommitEvent(
                        source=EventSource.GITHUB,
                        service=project.service,
                        commit_sha=item.sha,
                        timestamp=_commit_timestamp(item.commit),
                        author=email or author,
                        raw_data=raw,
                    )
                )
        return events

    async def fetch_merged_requests(
        self, project: ProviderProject, *, author: str, since: dt.datetime
    ) -> list[Event]:
        """Return pull requests by ``author`` merged at or after ``since``.

        Closed pull requests are listed newest-updated first, so paging stops
        at the first item last updated before ``since``.
        """
        since_utc = require_aware(since, field="since")
        params: dict[str, str | int] = {
            "state": "closed",
            "sort": "updated",
            "direction": "desc",
            "per_page": _PER_PAGE,
        }
        events: list[Event] = []
        async for response in self._paginate(
            f"{self._config.api_url}/repos/{project.key}/pulls", params
        ):
            exhausted = False
            for item, raw in decode_items(response, _PullItem, self.provider):
                if parse_timestamp(item.updated_at) < since_utc:
                    exhausted = True
                    break
                event = self._merged_event(project, item, raw, author=author)
                if event is not None and event.timestamp >= since_utc:
                    events.append(event)
            if exhausted:
                break
        return events

    @staticmethod
    def _merged_event(
        project: ProviderProject,
        item: _PullItem,
        raw: dict[str, typ.Any],
        *,
        author: str,
    ) -> PullRequestMergedEvent | None:
        if item.merged_at is None:
            return None
        if item.user is None or item.user.login != author:
            return None
        head_sha = item.head.sha if item.head else None
        return PullRequestMergedEvent(
            source=EventSource.GITHUB,
            service=project.service,
            pr_number=str(item.number),
            timestamp=parse_timestamp(item.merged_at),
            merge_commit_sha=item.merge_commit_sha or head_sha,
            author=author,
            raw_data=raw,
        )

    async def _get(
        self, url: str, params: dict[str, str | int] | None = None
    ) -> httpx.Response:
        return await get_json_response(self._client, self.provider, url, params=params)

    async def _paginate(
        self, url: str, params: dict[str, str | int]
    ) -> cabc.AsyncIterator[httpx.Response]:
        """Yield pages following ``Link: rel="next"`` up to ``max_pages``."""
        next_url: str | None = url
        next_params: dict[str, str | int] | None = params
        pages = 0
        while next_url is not None and pages < self._config.max_pages:
            response = await self._get(next_url, next_params)
            yield response
            pages += 1
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string.
            next_params = None
