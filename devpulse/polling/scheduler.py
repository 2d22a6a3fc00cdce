"""Single-flight polling scheduler.

The scheduler owns its own state instead of relying on module globals: an
``asyncio.Lock`` marks a cycle as running, the interval timer is a task, and
the most recent cycle is tracked so ``stop`` can wait for it. A trigger that
arrives while a cycle is running is logged and dropped; cycles are never
queued behind one another.

Within a cycle every configured provider is scanned concurrently and the
results are collected settle-all style, so one provider failing (or timing
out) never prevents the others from finishing their ingestion.

Backfills reuse the same lock and fan-out with an explicit start date and no
per-scan timeout.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses as dc
import typing as typ

from devpulse.common.time import require_aware, utcnow
from devpulse.providers.errors import ProviderScanError

from .observability import PollingEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .config import PollingConfig
    from .scanner import ProviderScanResult


class Scanner(typ.Protocol):
    """Interface the scheduler needs from a provider scanner."""

    @property
    def provider(self) -> str:
        """Return the provider name."""
        ...

    @property
    def configured(self) -> bool:
        """Return whether the provider has credentials."""
        ...

    async def scan(
        self, *, now: dt.datetime, since: dt.datetime | None = None
    ) -> ProviderScanResult:
        """Scan the provider and ingest what it returns."""
        ...


@dc.dataclass(frozen=True, slots=True)
class ProviderScanFailure:
    """A provider whose scan failed as a whole."""

    provider: str
    error: Exception


@dc.dataclass(frozen=True, slots=True)
class PollCycleResult:
    """Outcome of one polling cycle across all providers."""

    started_at: dt.datetime
    finished_at: dt.datetime
    results: tuple[ProviderScanResult, ...] = ()
    failures: tuple[ProviderScanFailure, ...] = ()
    skipped_providers: tuple[str, ...] = ()

    @property
    def duration(self) -> dt.timedelta:
        """Return the wall-clock duration of the cycle."""
        return self.finished_at - self.started_at

    @property
    def inserted(self) -> int:
        """Return the number of events inserted across providers."""
        return sum(result.ingestion.inserted for result in self.results)

    @property
    def skipped(self) -> int:
        """Return the number of duplicates skipped across providers."""
        return sum(result.ingestion.skipped for result in self.results)


def _settle(
    scanners: cabc.Sequence[Scanner],
    gathered: list[ProviderScanResult | BaseException],
) -> tuple[list[ProviderScanResult], list[ProviderScanFailure]]:
    """Split ``asyncio.gather`` output into successes and failures.

    Raises
    ------
    BaseException
        Re-raised immediately for system-level exceptions such as
        ``KeyboardInterrupt`` or cancellation.

    """
    results: list[ProviderScanResult] = []
    failures: list[ProviderScanFailure] = []
    for scanner, outcome in zip(scanners, gathered, strict=True):
        if isinstance(outcome, Exception):
            failures.append(ProviderScanFailure(provider=scanner.provider, error=outcome))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results.append(outcome)
    return results, failures


class PollingScheduler:
    """Run provider scans on a fixed interval, one cycle at a time."""

    def __init__(
        self,
        scanners: cabc.Sequence[Scanner],
        config: PollingConfig,
        *,
        event_logger: PollingEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Bind the scheduler to its scanners and timing configuration."""
        self._scanners = tuple(scanners)
        self._config = config
        self._event_logger = event_logger or PollingEventLogger()
        self._clock = clock
        self._cycle_lock = asyncio.Lock()
        self._timer: asyncio.Task[None] | None = None
        self._cycle_task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Return whether a cycle is currently in flight."""
        return self._cycle_lock.locked()

    @property
    def is_started(self) -> bool:
        """Return whether the interval timer is active."""
        return self._timer is not None

    async def run_cycle(self) -> PollCycleResult | None:
        """Scan every configured provider once.

        Returns ``None`` without scanning when another cycle is already
        running.
        """
        if self._cycle_lock.locked():
            self._event_logger.log_cycle_skipped()
            return None

        async with self._cycle_lock:
            return await self._run_locked_cycle()

    async def backfill(self, since: dt.datetime) -> PollCycleResult | None:
        """Scan every configured provider for activity since ``since``.

        Shares the single-flight lock with :meth:`run_cycle` and settles
        providers the same way. No scan timeout applies.

        Raises
        ------
        ValueError
            If ``since`` is naive.

        """
        since_utc = require_aware(since, field="since")
        if self._cycle_lock.locked():
            self._event_logger.log_cycle_skipped()
            return None

        async with self._cycle_lock:
            configured = sum(1 for scanner in self._scanners if scanner.configured)
            self._event_logger.log_backfill_started(since_utc, configured)
            return await self._run_locked_cycle(since=since_utc)

    async def start(self) -> None:
        """Run a cycle now and then on every interval tick.

        Does nothing when polling is disabled, no provider has credentials,
        or the scheduler is already started.
        """
        interval = self._config.interval
        if interval is None:
            self._event_logger.log_scheduler_disabled("interval_never")
            return
        configured = sum(1 for scanner in self._scanners if scanner.configured)
        if not configured:
            self._event_logger.log_scheduler_disabled("no_providers")
            return
        if self._timer is not None:
            return

        self._event_logger.log_scheduler_started(interval, configured)
        self._launch_cycle()
        self._timer = asyncio.create_task(self._tick(interval.total_seconds()))

    async def stop(self) -> None:
        """Cancel the timer and wait for any in-flight cycle to finish."""
        if self._timer is not None:
            self._timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer
            self._timer = None

        if self._cycle_task is not None:
            await self._cycle_task
            self._cycle_task = None

        self._event_logger.log_scheduler_stopped()

    async def _tick(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            self._launch_cycle()

    def _launch_cycle(self) -> None:
        if self._cycle_task is not None and not self._cycle_task.done():
            self._event_logger.log_cycle_skipped()
            return
        self._cycle_task = asyncio.create_task(self._run_background_cycle())

    async def _run_background_cycle(self) -> None:
        try:
            await self.run_cycle()
        except Exception as exc:  # noqa: BLE001 - the timer must survive a bad cycle
            self._event_logger.log_cycle_crashed(exc)

    async def _run_locked_cycle(
        self, *, since: dt.datetime | None = None
    ) -> PollCycleResult:
        started_at = self._clock()
        active = [scanner for scanner in self._scanners if scanner.configured]
        skipped = tuple(
            scanner.provider for scanner in self._scanners if not scanner.configured
        )
        for provider in skipped:
            self._event_logger.log_provider_skipped(provider)
        self._event_logger.log_cycle_started(started_at, len(active))

        gathered = await asyncio.gather(
            *(self._scan(scanner, started_at, since) for scanner in active),
            return_exceptions=True,
        )
        results, failures = _settle(active, gathered)

        for result in results:
            self._event_logger.log_provider_completed(result)
        for failure in failures:
            self._event_logger.log_provider_failed(failure.provider, failure.error)

        cycle = PollCycleResult(
            started_at=started_at,
            finished_at=self._clock(),
            results=tuple(results),
            failures=tuple(failures),
            skipped_providers=skipped,
        )
        self._event_logger.log_cycle_completed(cycle)
        return cycle

    async def _scan(
        self, scanner: Scanner, now: dt.datetime, since: dt.datetime | None
    ) -> ProviderScanResult:
        if since is not None:
            return await scanner.scan(now=now, since=since)
        timeout_s = self._config.scan_timeout.total_seconds()
        try:
            async with asyncio.timeout(timeout_s):
                return await scanner.scan(now=now)
        except TimeoutError as exc:
            raise ProviderScanError.timed_out(scanner.provider, timeout_s) from exc
