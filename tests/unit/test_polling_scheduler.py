"""Unit tests for the single-flight polling scheduler."""

from __future__ import annotations

import asyncio
import datetime as dt

import pytest

from devpulse.ingestion import BatchIngestionResult
from devpulse.polling import (
    PollingConfig,
    PollingScheduler,
    ProviderScanResult,
)
from devpulse.providers import ProviderAPIError, ProviderScanError
from tests.helpers.event_builders import NOW


class _FakeScanner:
    """Scanner double that counts scans and can block, fail or stall."""

    def __init__(
        self,
        provider: str,
        *,
        inserted: int = 1,
        configured: bool = True,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
        delay: float = 0.0,
    ) -> None:
        self.provider = provider
        self.configured = configured
        self.inserted = inserted
        self.error = error
        self.gate = gate
        self.delay = delay
        self.scans = 0
        self.since: dt.datetime | None = None
        self.started = asyncio.Event()

    async def scan(
        self, *, now: dt.datetime, since: dt.datetime | None = None
    ) -> ProviderScanResult:
        self.scans += 1
        self.since = since
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ProviderScanResult(
            provider=self.provider,
            identity="ada",
            projects_scanned=1,
            ingestion=BatchIngestionResult(inserted=self.inserted),
        )


def _config(**overrides: dt.timedelta | None) -> PollingConfig:
    values: dict[str, dt.timedelta | None] = {
        "interval": dt.timedelta(minutes=15),
        "scan_timeout": dt.timedelta(seconds=5),
    }
    values.update(overrides)
    return PollingConfig(**values)  # type: ignore[arg-type]


def _scheduler(*scanners: _FakeScanner, config: PollingConfig | None = None) -> PollingScheduler:
    return PollingScheduler(scanners, config or _config(), clock=lambda: NOW)


@pytest.mark.asyncio
async def test_cycle_collects_every_provider() -> None:
    """A cycle scans each configured provider once and sums the results."""
    github = _FakeScanner("github", inserted=2)
    gitlab = _FakeScanner("gitlab", inserted=3)

    cycle = await _scheduler(github, gitlab).run_cycle()

    assert cycle is not None
    assert cycle.inserted == 5
    assert (github.scans, gitlab.scans) == (1, 1)
    assert cycle.started_at == NOW


@pytest.mark.asyncio
async def test_failing_provider_does_not_block_the_other() -> None:
    """Cross-provider isolation: one failure leaves the other's results intact."""
    github = _FakeScanner("github", error=ProviderAPIError.http_error("github", 500))
    gitlab = _FakeScanner("gitlab", inserted=4)

    cycle = await _scheduler(github, gitlab).run_cycle()

    assert cycle is not None
    assert [result.provider for result in cycle.results] == ["gitlab"]
    assert cycle.inserted == 4
    assert [failure.provider for failure in cycle.failures] == ["github"]


@pytest.mark.asyncio
async def test_provider_timeout_is_isolated() -> None:
    """A provider exceeding the scan timeout fails alone."""
    slow = _FakeScanner("github", delay=1.0)
    fast = _FakeScanner("gitlab", inserted=1)
    config = _config(scan_timeout=dt.timedelta(milliseconds=50))

    cycle = await _scheduler(slow, fast, config=config).run_cycle()

    assert cycle is not None
    (failure,) = cycle.failures
    assert isinstance(failure.error, ProviderScanError)
    assert failure.error.reason == "timeout"
    assert cycle.inserted == 1


@pytest.mark.asyncio
async def test_unconfigured_providers_are_skipped() -> None:
    """Providers without credentials are listed as skipped, never scanned."""
    github = _FakeScanner("github")
    gitlab = _FakeScanner("gitlab", configured=False)

    cycle = await _scheduler(github, gitlab).run_cycle()

    assert cycle is not None
    assert cycle.skipped_providers == ("gitlab",)
    assert gitlab.scans == 0


@pytest.mark.asyncio
async def test_overlapping_trigger_is_dropped() -> None:
    """A second trigger during a running cycle does not scan again."""
    gate = asyncio.Event()
    scanner = _FakeScanner("github", gate=gate)
    scheduler = _scheduler(scanner)

    first = asyncio.create_task(scheduler.run_cycle())
    await scanner.started.wait()
    assert scheduler.is_running

    second = await scheduler.run_cycle()
    gate.set()
    completed = await first

    assert second is None
    assert completed is not None
    assert scanner.scans == 1
    assert not scheduler.is_running


@pytest.mark.asyncio
async def test_lock_is_released_after_a_failed_cycle() -> None:
    """The next trigger runs even when every provider failed."""
    scanner = _FakeScanner("github", error=ProviderAPIError.http_error("github", 500))
    scheduler = _scheduler(scanner)

    await scheduler.run_cycle()
    await scheduler.run_cycle()

    assert scanner.scans == 2


@pytest.mark.asyncio
async def test_start_runs_a_cycle_and_stop_drains_it() -> None:
    """Starting runs an immediate cycle; stopping waits for it."""
    scanner = _FakeScanner("github", delay=0.01)
    scheduler = _scheduler(scanner)

    await scheduler.start()
    assert scheduler.is_started
    await scheduler.start()
    await scheduler.stop()

    assert scanner.scans == 1
    assert not scheduler.is_started


@pytest.mark.asyncio
async def test_start_is_a_no_op_when_disabled() -> None:
    """An interval of ``None`` disables the timer."""
    scanner = _FakeScanner("github")
    scheduler = _scheduler(scanner, config=_config(interval=None))

    await scheduler.start()
    await scheduler.stop()

    assert not scheduler.is_started
    assert scanner.scans == 0


@pytest.mark.asyncio
async def test_start_is_a_no_op_without_configured_providers() -> None:
    """Nothing is scheduled when no provider has credentials."""
    scheduler = _scheduler(_FakeScanner("github", configured=False))

    await scheduler.start()

    assert not scheduler.is_started


@pytest.mark.asyncio
async def test_timer_triggers_further_cycles() -> None:
    """Each interval tick launches a new cycle."""
    scanner = _FakeScanner("github")
    config = _config(interval=dt.timedelta(milliseconds=20))
    scheduler = _scheduler(scanner, config=config)

    await scheduler.start()
    await asyncio.sleep(0.1)
    await scheduler.stop()

    assert scanner.scans >= 2


@pytest.mark.asyncio
async def test_tick_during_running_cycle_is_skipped() -> None:
    """Timer ticks while a cycle is gated never start a second scan."""
    gate = asyncio.Event()
    scanner = _FakeScanner("github", gate=gate)
    config = _config(interval=dt.timedelta(milliseconds=10))
    scheduler = _scheduler(scanner, config=config)

    await scheduler.start()
    await scanner.started.wait()
    await asyncio.sleep(0.08)

    assert scheduler.is_running
    assert scanner.scans == 1

    gate.set()
    await scheduler.stop()


@pytest.mark.asyncio
async def test_backfill_passes_since_and_skips_the_timeout() -> None:
    """Backfills scan from the given date and outlive the scan timeout."""
    since = NOW - dt.timedelta(days=90)
    slow = _FakeScanner("github", delay=0.1, inserted=7)
    failing = _FakeScanner("gitlab", error=ProviderAPIError.http_error("gitlab", 502))
    config = _config(scan_timeout=dt.timedelta(milliseconds=20))

    cycle = await _scheduler(slow, failing, config=config).backfill(since)

    assert cycle is not None
    assert slow.since == since
    assert cycle.inserted == 7
    assert [failure.provider for failure in cycle.failures] == ["gitlab"]


@pytest.mark.asyncio
async def test_backfill_rejects_naive_since() -> None:
    """A naive start date is refused before any scan runs."""
    scanner = _FakeScanner("github")

    with pytest.raises(ValueError, match="timezone-aware"):
        await _scheduler(scanner).backfill(dt.datetime(2026, 1, 1))  # noqa: DTZ001

    assert scanner.scans == 0


@pytest.mark.asyncio
async def test_backfill_is_dropped_while_a_cycle_runs() -> None:
    """Backfills share the single-flight lock with regular cycles."""
    gate = asyncio.Event()
    scanner = _FakeScanner("github", gate=gate)
    scheduler = _scheduler(scanner)

    running = asyncio.create_task(scheduler.run_cycle())
    await scanner.started.wait()
    backfill = await scheduler.backfill(NOW - dt.timedelta(days=30))
    gate.set()
    await running

    assert backfill is None
    assert scanner.scans == 1
