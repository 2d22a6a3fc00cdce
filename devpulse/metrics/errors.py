"""Metrics aggregation errors."""

from __future__ import annotations

from devpulse.common.errors import DevpulseError


class AggregationError(DevpulseError):
    """Raised when a metrics query fails; no partial result is returned."""

    def __init__(self, metric: str) -> None:
        """Record which metric could not be computed."""
        self.metric = metric
        super().__init__(f"failed to compute {metric}")

    @classmethod
    def query_failed(cls, metric: str) -> AggregationError:
        """Return an error for a failed underlying store query."""
        return cls(metric)
