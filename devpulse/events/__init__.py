"""Event store: typed activity events and their append-only log."""

from __future__ import annotations

from .errors import StorageError, TimezoneAwareRequiredError, UnsupportedPayloadTypeError
from .models import (
    CommitEvent,
    DeploymentEvent,
    DeploymentStatus,
    Event,
    EventKind,
    EventSource,
    PullRequestMergedEvent,
    PullRequestOpenedEvent,
    StoredEvent,
    describe_event,
)
from .storage import (
    SCHEMA_VERSION,
    ActivityEventRecord,
    Base,
    SchemaMigration,
    init_event_storage,
)
from .store import EventStore

__all__ = [
    "SCHEMA_VERSION",
    "ActivityEventRecord",
    "Base",
    "CommitEvent",
    "DeploymentEvent",
    "DeploymentStatus",
    "Event",
    "EventKind",
    "EventSource",
    "EventStore",
    "PullRequestMergedEvent",
    "PullRequestOpenedEvent",
    "SchemaMigration",
    "StorageError",
    "StoredEvent",
    "TimezoneAwareRequiredError",
    "UnsupportedPayloadTypeError",
    "describe_event",
    "init_event_storage",
]
