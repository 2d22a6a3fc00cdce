"""Event store error types."""

from __future__ import annotations

from devpulse.common.errors import DevpulseError


class TimezoneAwareRequiredError(ValueError):
    """Raised when datetime inputs lack timezone information."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")

    @classmethod
    def for_payload(cls) -> TimezoneAwareRequiredError:
        """Return an error indicating raw payload timestamps were naive."""
        return cls("raw_data datetime values")

    @classmethod
    def for_timestamp(cls) -> TimezoneAwareRequiredError:
        """Return an error indicating an event timestamp was naive."""
        return cls("timestamp")

    @classmethod
    def for_window(cls) -> TimezoneAwareRequiredError:
        """Return an error indicating query window bounds were naive."""
        return cls("window bounds")


class UnsupportedPayloadTypeError(ValueError):
    """Raised when raw_data contains non JSON-serialisable types."""

    def __init__(self, type_name: str) -> None:
        """Record the offending type name for diagnostics."""
        super().__init__(f"raw_data contains unsupported type {type_name}")


class StorageError(DevpulseError):
    """Raised when the underlying database rejects a read or write."""

    def __init__(self, operation: str) -> None:
        """Record which store operation failed."""
        self.operation = operation
        super().__init__(f"event store {operation} failed")

    @classmethod
    def for_insert(cls) -> StorageError:
        """Return an error for a failed event insert."""
        return cls("insert")

    @classmethod
    def for_lookup(cls, key: str) -> StorageError:
        """Return an error for a failed dedup lookup."""
        return cls(f"{key} lookup")

    @classmethod
    def for_query(cls, kind: str) -> StorageError:
        """Return an error for a failed windowed query."""
        return cls(f"{kind} query")
