"""Source provider errors."""

from __future__ import annotations

import typing as typ

from devpulse.common.errors import DevpulseError


class ProviderAPIError(DevpulseError):
    """Raised when a provider API call fails."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: int | None = None,
        timed_out: bool = False,
    ) -> None:
        """Initialise with a message, the provider and optional HTTP status."""
        self.provider = provider
        self.status_code = status_code
        self.timed_out = timed_out
        super().__init__(message)

    @classmethod
    def http_error(cls, provider: str, status_code: int) -> ProviderAPIError:
        """Return an error for non-2xx HTTP responses."""
        return cls(
            f"{provider} API HTTP {status_code}",
            provider=provider,
            status_code=status_code,
        )

    @classmethod
    def transport_error(cls, provider: str, exc: BaseException) -> ProviderAPIError:
        """Return an error for connection-level failures."""
        return cls(f"{provider} API request failed: {exc}", provider=provider)

    @classmethod
    def request_timeout(cls, provider: str) -> ProviderAPIError:
        """Return an error for a request that exceeded the client timeout."""
        return cls(f"{provider} API request timed out", provider=provider, timed_out=True)


class ProviderResponseShapeError(DevpulseError):
    """Raised when a provider response is missing expected fields."""

    @classmethod
    def invalid(cls, provider: str, field: str) -> ProviderResponseShapeError:
        """Return an error for an unexpected response shape."""
        return cls(f"{provider} API response has unexpected shape: {field}")


class ProviderConfigError(DevpulseError):
    """Raised when provider client configuration is invalid."""

    @classmethod
    def empty_token(cls, provider: str) -> ProviderConfigError:
        """Return an error when the provided token is empty."""
        return cls(f"{provider} token must be non-empty")


class ProviderScanError(DevpulseError):
    """Raised when a provider scan fails as a whole."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        reason: typ.Literal["identity", "listing", "timeout"],
    ) -> None:
        """Record which provider failed and at which step."""
        self.provider = provider
        self.reason = reason
        super().__init__(message)

    @classmethod
    def identity_failed(cls, provider: str) -> ProviderScanError:
        """Return an error for a failed identity lookup."""
        return cls(
            f"{provider} identity lookup failed", provider=provider, reason="identity"
        )

    @classmethod
    def listing_failed(cls, provider: str) -> ProviderScanError:
        """Return an error for a failed project listing."""
        return cls(
            f"{provider} project listing failed", provider=provider, reason="listing"
        )

    @classmethod
    def timed_out(cls, provider: str, timeout_s: float) -> ProviderScanError:
        """Return an error for a scan that exceeded its time budget."""
        return cls(
            f"{provider} scan exceeded {timeout_s:g}s timeout",
            provider=provider,
            reason="timeout",
        )
