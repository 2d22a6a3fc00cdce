"""Root of the devpulse exception hierarchy."""

from __future__ import annotations


class DevpulseError(Exception):
    """Base class for errors raised by devpulse components."""
