"""GitLab REST client used by the poller."""

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

DEFAULT_GITLAB_URL = "https://gitlab.com"
_PER_PAGE = 100


@dc.dataclass(frozen=True, slots=True)
class GitLabRestConfig:
    """Configuration for the GitLab REST API client."""

    token: str
    base_url: str = DEFAULT_GITLAB_URL
    timeout_s: float = 20.0
    user_agent: str = "devpulse/0.1"
    max_pages: int = 10

    @property
    def api_url(self) -> str:
        """Return the v4 API root for ``base_url``."""
        return f"{self.base_url}/api/v4"

    @classmethod
    def from_env(cls) -> GitLabRestConfig | None:
        """Build configuration from ``DEVPULSE_GITLAB_*`` variables.

        Returns ``None`` when ``DEVPULSE_GITLAB_TOKEN`` is unset.
        """
        token = os.environ.get("DEVPULSE_GITLAB_TOKEN", "").strip()
        if not token:
            return None
        base_url = os.environ.get("DEVPULSE_GITLAB_URL", "").strip()
        return cls(token=token, base_url=(base_url or DEFAULT_GITLAB_URL).rstrip("/"))


class _User(msgspec.Struct, kw_only=True):
    username: str


class _Project(msgspec.Struct, kw_only=True):
    id: int
    path_with_namespace: str


class _CommitItem(msgspec.Struct, kw_only=True):
    id: str
    created_at: str | None = None
    authored_date: str | None = None
    author_email: str | None = None


class _MergeRequestItem(msgspec.Struct, kw_only=True):
    iid: int
    updated_at: str
    merged_at: str | None = None
    merge_commit_sha: str | None = None
    sha: str | None = None


class GitLabRestClient:
    """GitLab implementation of :class:`~devpulse.providers.base.SourceClient`."""

    def __init__(
        self,
        config: GitLabRestConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise ProviderConfigError.empty_token(EventSource.GITLAB)

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "PRIVATE-TOKEN": config.token,
                "User-Agent": config.user_agent,
                "Accept": "application/json",
            },
        )

    @property
    def provider(self) -> EventSource:
        """Return ``EventSource.GITLAB``."""
        return EventSource.GITLAB

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def resolve_identity(self) -> str:
        """Return the username of the token's owner."""
        response = await get_json_response(
            self._client, self.provider, f"{self._config.api_url}/user"
        )
        return decode_object(response, _User, self.provider).username

    async def list_projects(self) -> list[ProviderProject]:
        """Return projects the user is a member of."""
        projects: list[ProviderProject] = []
        async for response in self._paginate(
            f"{self._config.api_url}/projects",
            {"membership": "true", "per_page": _PER_PAGE},
        ):
            projects.extend(
                ProviderProject(key=str(project.id), service=project.path_with_namespace)
                for project, _raw in decode_items(response, _Project, self.provider)
            )
        return projects

    async def fetch_commits(
        self, project: ProviderProject, *, author: str, since: dt.datetime
    ) -> list[Event]:
        """Return commits authored by ``author`` since ``since``."""
        since_utc = require_aware(since, field="since")
        events: list[Event] = []
        async for response in self._paginate(
            f"{self._config.api_url}/projects/{project.key}/repository/commits",
            {"since": since_utc.isoformat(), "author": author, "per_page": _PER_PAGE},
        ):
            for item, raw in decode_items(response, _CommitItem, self.provider):
                when = item.created_at or item.authored_date
                events.append(
                    CommitEvent(
                        source=EventSource.GITLAB,
                        service=project.service,
                        commit_sha=item.id,
                        timestamp=parse_timestamp(when) if when else utcnow(),
                        author=item.author_email or author,
                        raw_data=raw,
                    )
                )
        return events

    async def fetch_merged_requests(
        self, project: ProviderProject, *, author: str, since: dt.datetime
    ) -> list[Event]:
        """Return merge requests by ``author`` merged at or after ``since``.

        ``updated_after`` narrows the listing server-side; merge requests
        updated recently but merged earlier are dropped here.
        """
        since_utc = require_aware(since, field="since")
        events: list[Event] = []
        async for response in self._paginate(
            f"{self._config.api_url}/projects/{project.key}/merge_requests",
            {
                "state": "merged",
                "author_username": author,
                "updated_after": since_utc.isoformat(),
                "per_page": _PER_PAGE,
            },
        ):
            for item, raw in decode_items(response, _MergeRequestItem, self.provider):
                event = PullRequestMergedEvent(
                    source=EventSource.GITLAB,
                    service=project.service,
                    pr_number=str(item.iid),
                    timestamp=parse_timestamp(item.merged_at or item.updated_at),
                    merge_commit_sha=item.merge_commit_sha or item.sha,
                    author=author,
                    raw_data=raw,
                )
                if event.timestamp >= since_utc:
                    events.append(event)
        return events

    async def _paginate(
        self, url: str, params: dict[str, str | int]
    ) -> cabc.AsyncIterator[httpx.Response]:
        """Yield pages following ``X-Next-Page`` up to ``max_pages``."""
        page = 1
        for _ in range(self._config.max_pages):
            response = await get_json_response(
                self._client, self.provider, url, params={**params, "page": page}
            )
            yield response
            next_page = response.headers.get("X-Next-Page", "").strip()
            if not next_page.isdigit():
                return
            page = int(next_page)
