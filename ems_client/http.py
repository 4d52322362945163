"""
Request helper shared by the auth service and the resource wrappers:
sends through the intercepted AsyncClient and maps failures to the client error taxonomy.
"""
import logging
from typing import Any

import httpx

from ems_client.errors import TransportError, error_from_response

logger = logging.getLogger(__name__)


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    json: Any = None,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> Any:
    """
    Send one request. Returns the decoded JSON body (None for empty bodies).
    Raises TransportError when the server is unreachable, ApiError subclasses for non-2xx.
    """
    if params:
        params = {k: v for k, v in params.items() if v is not None}
    try:
        response = await client.request(method, url, json=json, params=params, headers=headers)
    except httpx.TransportError as e:
        logger.warning("%s %s failed: %s", method, url, e)
        raise TransportError(path=url) from e

    if response.is_error:
        raise error_from_response(response)
    if not response.content:
        return None
    if response.headers.get("content-type", "").startswith("application/json"):
        return response.json()
    return response.text
