"""Ingestion pipeline and webhook normalisers."""

from __future__ import annotations

from .errors import IngestionError, WebhookPayloadError
from .observability import IngestionEventLogger, IngestionEventType
from .pipeline import (
    BatchIngestionResult,
    IngestionFailure,
    IngestionPipeline,
    IngestOutcome,
)
from .webhooks import (
    normalise_github_delivery,
    normalise_gitlab_delivery,
    normalise_manual_delivery,
)

__all__ = [
    "BatchIngestionResult",
    "IngestOutcome",
    "IngestionError",
    "IngestionEventLogger",
    "IngestionEventType",
    "IngestionFailure",
    "IngestionPipeline",
    "WebhookPayloadError",
    "normalise_github_delivery",
    "normalise_gitlab_delivery",
    "normalise_manual_delivery",
]
