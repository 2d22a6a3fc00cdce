"""Observability primitives for the polling scheduler.

Provides structured log events and error categorisation for poll cycles,
provider scans and per-project fetch failures. Events are emitted through
femtologging in ``[event] key=value`` form for log aggregators.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from devpulse.events.errors import StorageError
from devpulse.ingestion.errors import IngestionError
from devpulse.logging import get_logger, log_debug, log_error, log_info, log_warning
from devpulse.providers.errors import ProviderAPIError, ProviderScanError

if typ.TYPE_CHECKING:
    import datetime as dt

    from .scanner import ProviderScanResult
    from .scheduler import PollCycleResult

logger = get_logger(__name__)

# HTTP status code threshold for server errors (5xx)
_HTTP_SERVER_ERROR_THRESHOLD = 500


class PollingEventType(enum.StrEnum):
    """Structured log event types for polling observability."""

    SCHEDULER_STARTED = "polling.scheduler.started"
    SCHEDULER_DISABLED = "polling.scheduler.disabled"
    SCHEDULER_STOPPED = "polling.scheduler.stopped"
    CYCLE_STARTED = "polling.cycle.started"
    CYCLE_COMPLETED = "polling.cycle.completed"
    CYCLE_SKIPPED = "polling.cycle.skipped"
    CYCLE_CRASHED = "polling.cycle.crashed"
    BACKFILL_STARTED = "polling.backfill.started"
    PROVIDER_SKIPPED = "polling.provider.skipped"
    PROVIDER_COMPLETED = "polling.provider.completed"
    PROVIDER_FAILED = "polling.provider.failed"
    PROJECT_FAILED = "polling.project.failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    TIMEOUT = "timeout"
    DATABASE = "database"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (TimeoutError, ErrorCategory.TIMEOUT),
    (StorageError, ErrorCategory.DATABASE),
    (IngestionError, ErrorCategory.DATABASE),
    (SQLAlchemyError, ErrorCategory.DATABASE),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Provider scan failures are classified by their underlying cause, so an
    identity lookup that failed with HTTP 503 counts as transient.
    """
    if isinstance(exc, ProviderScanError):
        if exc.reason == "timeout":
            return ErrorCategory.TIMEOUT
        if exc.__cause__ is not None:
            return categorize_error(exc.__cause__)
        return ErrorCategory.UNKNOWN

    if isinstance(exc, ProviderAPIError):
        if exc.timed_out:
            return ErrorCategory.TIMEOUT
        if (
            exc.status_code is None
            or exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        ):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class PollingEventLogger:
    """Emit structured polling events via femtologging.

    Cycle and provider lifecycle events go out at INFO, skipped triggers at
    DEBUG, per-project failures at WARNING and provider failures at ERROR.
    """

    def log_scheduler_started(self, interval: dt.timedelta, providers: int) -> None:
        """Log that periodic polling has begun."""
        log_info(
            logger,
            "[%s] interval_seconds=%d providers=%d",
            PollingEventType.SCHEDULER_STARTED,
            int(interval.total_seconds()),
            providers,
        )

    def log_scheduler_disabled(self, reason: str) -> None:
        """Log that ``start`` did nothing."""
        log_info(logger, "[%s] reason=%s", PollingEventType.SCHEDULER_DISABLED, reason)

    def log_scheduler_stopped(self) -> None:
        """Log that the timer was cancelled and in-flight work drained."""
        log_info(logger, "[%s]", PollingEventType.SCHEDULER_STOPPED)

    def log_cycle_started(self, started_at: dt.datetime, providers: int) -> None:
        """Log the start of a poll cycle."""
        log_info(
            logger,
            "[%s] started_at=%s providers=%d",
            PollingEventType.CYCLE_STARTED,
            started_at.isoformat(),
            providers,
        )

    def log_backfill_started(self, since: dt.datetime, providers: int) -> None:
        """Log the start of a backfill from ``since``."""
        log_info(
            logger,
            "[%s] since=%s providers=%d",
            PollingEventType.BACKFILL_STARTED,
            since.isoformat(),
            providers,
        )

    def log_cycle_completed(self, result: PollCycleResult) -> None:
        """Log a finished cycle with its totals."""
        log_info(
            logger,
            "[%s] duration_seconds=%.3f providers_succeeded=%d "
            "providers_failed=%d providers_skipped=%d inserted=%d skipped=%d",
            PollingEventType.CYCLE_COMPLETED,
            result.duration.total_seconds(),
            len(result.results),
            len(result.failures),
            len(result.skipped_providers),
            result.inserted,
            result.skipped,
        )

    def log_cycle_skipped(self) -> None:
        """Log a trigger that arrived while a cycle was running."""
        log_debug(
            logger,
            "[%s] reason=cycle_in_flight",
            PollingEventType.CYCLE_SKIPPED,
        )

    def log_cycle_crashed(self, error: BaseException) -> None:
        """Log a cycle that raised outside the per-provider isolation."""
        log_error(
            logger,
            "[%s] error_type=%s error_message=%s",
            PollingEventType.CYCLE_CRASHED,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_provider_skipped(self, provider: str) -> None:
        """Log a provider left out of the cycle for lack of credentials."""
        log_info(
            logger,
            "[%s] provider=%s reason=no_credentials",
            PollingEventType.PROVIDER_SKIPPED,
            provider,
        )

    def log_provider_completed(self, result: ProviderScanResult) -> None:
        """Log a provider scan that ran to completion."""
        log_info(
            logger,
            "[%s] provider=%s identity=%s projects_scanned=%d "
            "projects_failed=%d inserted=%d skipped=%d failed=%d",
            PollingEventType.PROVIDER_COMPLETED,
            result.provider,
            result.identity,
            result.projects_scanned,
            len(result.project_failures),
            result.ingestion.inserted,
            result.ingestion.skipped,
            result.ingestion.failed,
        )

    def log_provider_failed(self, provider: str, error: BaseException) -> None:
        """Log a provider scan that failed as a whole."""
        log_error(
            logger,
            "[%s] provider=%s error_type=%s error_category=%s error_message=%s",
            PollingEventType.PROVIDER_FAILED,
            provider,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_project_failed(
        self, provider: str, service: str, error: BaseException
    ) -> None:
        """Log a single project's fetch failure."""
        log_warning(
            logger,
            "[%s] provider=%s service=%s error_type=%s error_category=%s "
            "error_message=%s",
            PollingEventType.PROJECT_FAILED,
            provider,
            service,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )
