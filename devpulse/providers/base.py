"""Interface implemented by source provider clients."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

    from devpulse.events.models import Event, EventSource

    from .models import ProviderProject


class SourceClient(typ.Protocol):
    """Fetch recent activity for the authenticated identity on one provider."""

    @property
    def provider(self) -> EventSource:
        """Return the source recorded on events this client produces."""
        ...

    async def resolve_identity(self) -> str:
        """Return the username the client is authenticated as."""
        ...

    async def list_projects(self) -> list[ProviderProject]:
        """Return the projects the identity can access."""
        ...

    async def fetch_commits(
        self, project: ProviderProject, *, author: str, since: dt.datetime
    ) -> list[Event]:
        """Return commit events by ``author`` on ``project`` since ``since``."""
        ...

    async def fetch_merged_requests(
        self, project: ProviderProject, *, author: str, since: dt.datetime
    ) -> list[Event]:
        """Return merged request events by ``author`` since ``since``."""
        ...

    async def aclose(self) -> None:
        """Release any owned HTTP resources."""
        ...
