"""Periodic provider polling."""

from __future__ import annotations

from .config import PollingConfig
from .observability import (
    ErrorCategory,
    PollingEventLogger,
    PollingEventType,
    categorize_error,
)
from .scanner import ProjectScanFailure, ProviderScanner, ProviderScanResult
from .scheduler import (
    PollCycleResult,
    PollingScheduler,
    ProviderScanFailure,
    Scanner,
)

__all__ = [
    "ErrorCategory",
    "PollCycleResult",
    "PollingConfig",
    "PollingEventLogger",
    "PollingEventType",
    "PollingScheduler",
    "ProjectScanFailure",
    "ProviderScanFailure",
    "ProviderScanResult",
    "ProviderScanner",
    "Scanner",
    "categorize_error",
]
