"""Shared HTTP and decoding helpers for provider adapters.

Every adapter goes through get_json() and decode(), so transport, status and
schema problems surface as the same ProviderError subclasses for every
service kind.
"""

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from homers.core.errors import (
    DecodeError,
    UnauthorizedError,
    UnreachableError,
    UpstreamError,
)
from homers.core.models import InstanceDescriptor
from homers.core.ports import CollectionContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNAUTHORIZED_STATUSES = {401, 403}


def api_key_headers(descriptor: InstanceDescriptor) -> dict[str, str]:
    """Headers for services authenticating with X-Api-Key."""
    return {"X-Api-Key": descriptor.credential, "Accept": "application/json"}


async def get_json(
    context: CollectionContext,
    descriptor: InstanceDescriptor,
    path: str,
    params: Mapping[str, str | int] | None = None,
    headers: Mapping[str, str] | None = None,
) -> Any:
    """GET a JSON document from an instance.

    Args:
        context: Collection context holding the shared client.
        descriptor: Instance to query; path is appended to its address.
        path: Absolute API path (e.g., "/api/v3/movie").
        params: Optional query parameters.
        headers: Optional request headers (credentials included).

    Returns:
        The parsed JSON payload.

    Raises:
        UnreachableError: On connection failures and timeouts.
        UnauthorizedError: On 401 and 403 responses.
        UpstreamError: On any other non-2xx response.
        DecodeError: If the body is not valid JSON.
    """
    url = f"{descriptor.address}{path}"
    logger.debug("Requesting %s for %s", path, descriptor.identity)
    try:
        response = await context.client.get(
            url,
            params=dict(params) if params else None,
            headers=dict(headers) if headers else None,
            timeout=context.timeout,
        )
    except httpx.TimeoutException as exc:
        raise UnreachableError(f"timeout while requesting {path}: {exc!s}") from exc
    except httpx.TransportError as exc:
        raise UnreachableError(f"cannot reach {descriptor.address}: {exc!s}") from exc

    if response.status_code in _UNAUTHORIZED_STATUSES:
        raise UnauthorizedError(f"{path} rejected the credential ({response.status_code})")
    if not response.is_success:
        raise UpstreamError(f"{path} returned HTTP {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:
        raise DecodeError(f"{path} did not return JSON: {exc!s}") from exc


def decode(schema: type[T] | Any, payload: Any) -> T:
    """Validate a payload against a pydantic model or type.

    Args:
        schema: Pydantic model class or any type TypeAdapter accepts
            (e.g., list[Movie]).
        payload: Parsed JSON payload.

    Returns:
        The validated object.

    Raises:
        DecodeError: If the payload does not match the schema.
    """
    try:
        result: T = TypeAdapter(schema).validate_python(payload)
        return result
    except ValidationError as exc:
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise DecodeError(
            f"unexpected response shape at '{location}': {first.get('msg', exc)}"
        ) from exc
