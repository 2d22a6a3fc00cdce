"""Shared fixtures for BDD feature tests.

Steps are synchronous and drive coroutines with ``asyncio.run``, so the
store used here opens a fresh connection per operation instead of pooling
connections across event loops.
"""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from devpulse.events import EventStore, init_event_storage

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def feature_store(tmp_path: Path) -> typ.Iterator[EventStore]:
    """Yield an event store over a fresh SQLite file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'devpulse_feature.db'}",
        poolclass=NullPool,
    )
    asyncio.run(init_event_storage(engine))
    try:
        yield EventStore(async_sessionmaker(engine, expire_on_commit=False))
    finally:
        asyncio.run(engine.dispose())
