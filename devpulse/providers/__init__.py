"""REST clients for the source providers polled for activity."""

from __future__ import annotations

from .base import SourceClient
from .errors import (
    ProviderAPIError,
    ProviderConfigError,
    ProviderResponseShapeError,
    ProviderScanError,
)
from .github import GitHubRestClient, GitHubRestConfig
from .gitlab import GitLabRestClient, GitLabRestConfig
from .models import ProviderProject

__all__ = [
    "GitHubRestClient",
    "GitHubRestConfig",
    "GitLabRestClient",
    "GitLabRestConfig",
    "ProviderAPIError",
    "ProviderConfigError",
    "ProviderProject",
    "ProviderResponseShapeError",
    "ProviderScanError",
    "SourceClient",
]
