"""Configuration for the polling scheduler.

Usage
-----
Polling is disabled unless an interval is configured:

>>> PollingConfig().enabled
False

Load from environment variables:

>>> import os
>>> os.environ["DEVPULSE_POLLING_INTERVAL_MINUTES"] = "15"
>>> PollingConfig.from_env().interval
datetime.timedelta(seconds=900)

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import os

_DISABLED = "never"


@dc.dataclass(frozen=True, slots=True)
class PollingConfig:
    """Timing knobs for periodic provider scans.

    Attributes
    ----------
    interval
        Time between cycle ticks, or ``None`` when polling is disabled.
    lookback
        How far back each scan asks providers for activity. Overlapping
        windows are harmless because ingestion skips duplicates.
    scan_timeout
        Upper bound on one provider's scan within a cycle.

    """

    interval: dt.timedelta | None = None
    lookback: dt.timedelta = dt.timedelta(hours=24)
    scan_timeout: dt.timedelta = dt.timedelta(seconds=300)

    @property
    def enabled(self) -> bool:
        """Return whether periodic polling should run."""
        return self.interval is not None

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def _parse_interval(cls) -> dt.timedelta | None:
        env_var = "DEVPULSE_POLLING_INTERVAL_MINUTES"
        raw = os.environ.get(env_var, "").strip()
        if not raw or raw.lower() == _DISABLED:
            return None
        return dt.timedelta(minutes=cls._parse_positive_int(env_var, 0))

    @classmethod
    def from_env(cls) -> PollingConfig:
        """Create configuration from environment variables.

        Reads ``DEVPULSE_POLLING_INTERVAL_MINUTES`` (a positive integer or
        ``never``), ``DEVPULSE_POLLING_LOOKBACK_HOURS`` and
        ``DEVPULSE_POLLING_SCAN_TIMEOUT_SECONDS``.

        Raises
        ------
        ValueError
            If any variable is set to something other than a positive
            integer (or ``never`` for the interval).

        """
        return cls(
            interval=cls._parse_interval(),
            lookback=dt.timedelta(
                hours=cls._parse_positive_int("DEVPULSE_POLLING_LOOKBACK_HOURS", 24)
            ),
            scan_timeout=dt.timedelta(
                seconds=cls._parse_positive_int(
                    "DEVPULSE_POLLING_SCAN_TIMEOUT_SECONDS", 300
                )
            ),
        )
