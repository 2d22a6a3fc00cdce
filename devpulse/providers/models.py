"""Typed models shared by provider clients."""

from __future__ import annotations

import dataclasses as dc


@dc.dataclass(frozen=True, slots=True)
class ProviderProject:
    """A project visible to the authenticated identity.

    ``key`` is whatever the provider's API uses to address the project
    (``owner/name`` on GitHub, the numeric id on GitLab). ``service`` is the
    identifier recorded on events.
    """

    key: str
    service: str
