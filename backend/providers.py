"""Shared httpx request helper for the external providers."""

import json
import logging
from typing import Any

import httpx

from errors import NetworkError, ParseError, RateLimitError

logger = logging.getLogger(__name__)


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: float,
    **kwargs: Any,
) -> Any:
    """Send one request and decode the JSON body.

    Raises NetworkError (timeout / offline / server), RateLimitError for 429,
    and ParseError when the body is empty or not JSON.
    """
    try:
        resp = await client.request(method, url, timeout=timeout, **kwargs)
    except httpx.TimeoutException as exc:
        raise NetworkError(f"{method} {url} timed out", kind="timeout") from exc
    except httpx.TransportError as exc:
        raise NetworkError(f"{method} {url} unreachable: {exc}", kind="offline") from exc

    if resp.status_code == 429:
        raise RateLimitError(f"{method} {url} rate limited")
    if resp.status_code >= 400:
        raise NetworkError(
            f"{method} {url} HTTP {resp.status_code}",
            kind="server",
            status_code=resp.status_code,
        )

    if not resp.content:
        raise ParseError(f"{method} {url} returned an empty body")
    try:
        return resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError(f"{method} {url} returned invalid JSON") from exc
