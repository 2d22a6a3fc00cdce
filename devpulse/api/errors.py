"""Domain exceptions and Falcon error handlers for the API layer.

Usage
-----
Register error handlers on the Falcon app::

    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(WebhookPayloadError, handle_webhook_payload)
    app.add_error_handler(AggregationError, handle_aggregation_error)

"""

from __future__ import annotations

import typing as typ

import falcon

from devpulse.logging import get_logger, log_exception

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from devpulse.ingestion.errors import WebhookPayloadError
    from devpulse.metrics.errors import AggregationError

__all__ = [
    "InvalidInputError",
    "handle_aggregation_error",
    "handle_invalid_input",
    "handle_webhook_payload",
]

logger = get_logger(__name__)


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field (query parameter or header) that
        failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)

    @classmethod
    def missing_header(cls, header: str) -> InvalidInputError:
        """Return an error for a required request header that is absent."""
        return cls("required header is missing", field=header)

    @classmethod
    def unsupported_choice(
        cls, field: str, value: str, choices: typ.Iterable[str]
    ) -> InvalidInputError:
        """Return an error for a parameter outside its allowed values."""
        allowed = ", ".join(sorted(choices))
        return cls(f"unsupported value {value!r} (expected one of: {allowed})", field=field)


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media


async def handle_webhook_payload(
    _req: Request,
    resp: Response,
    ex: WebhookPayloadError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``WebhookPayloadError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    resp.media = {
        "title": "Invalid webhook payload",
        "description": str(ex),
    }


async def handle_aggregation_error(
    req: Request,
    resp: Response,
    ex: AggregationError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``AggregationError`` to an HTTP 500 JSON response.

    The failure is logged with its cause; the response carries no partial
    metrics.
    """
    log_exception(logger, f"Metrics request {req.path} failed: {ex}", ex)
    resp.status = falcon.HTTP_500
    resp.media = {
        "title": "Metrics unavailable",
        "description": str(ex),
    }
