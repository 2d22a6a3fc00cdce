"""HTTP helpers shared by the REST provider clients."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from .errors import ProviderAPIError, ProviderResponseShapeError

_HTTP_ERROR_STATUS_THRESHOLD = 400


async def get_json_response(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    *,
    params: dict[str, str | int] | None = None,
) -> httpx.Response:
    """Issue a GET request and raise :class:`ProviderAPIError` on failure."""
    try:
        response = await client.get(url, params=params)
    except httpx.TimeoutException as exc:
        raise ProviderAPIError.request_timeout(provider) from exc
    except httpx.HTTPError as exc:
        raise ProviderAPIError.transport_error(provider, exc) from exc
    if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
        raise ProviderAPIError.http_error(provider, response.status_code)
    return response


def _response_json(response: httpx.Response, provider: str) -> object:
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderResponseShapeError.invalid(provider, "body") from exc


def decode_object[T](
    response: httpx.Response, target: type[T], provider: str
) -> T:
    """Decode a JSON object response into ``target``."""
    payload = _response_json(response, provider)
    try:
        return msgspec.convert(payload, type=target)
    except msgspec.ValidationError as exc:
        raise ProviderResponseShapeError.invalid(provider, str(exc)) from exc


def decode_items[T](
    response: httpx.Response, target: type[T], provider: str
) -> list[tuple[T, dict[str, typ.Any]]]:
    """Decode a JSON array response, pairing each item with its raw mapping."""
    payload = _response_json(response, provider)
    if not isinstance(payload, list):
        raise ProviderResponseShapeError.invalid(provider, "expected a list")
    items: list[tuple[T, dict[str, typ.Any]]] = []
    for raw in payload:
        if not isinstance(raw, dict):
            raise ProviderResponseShapeError.invalid(provider, "list item")
        try:
            items.append((msgspec.convert(raw, type=target), raw))
        except msgspec.ValidationError as exc:
            raise ProviderResponseShapeError.invalid(provider, str(exc)) from exc
    return items
