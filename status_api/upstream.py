"""Upstream monitoring service client.

Single plain-HTTP GET per call, no redirects, no retries. The whole call,
connect through the last body byte, is bounded by one deadline so a slow
or hung upstream cannot stall a request forever.
"""

import asyncio
import json
from typing import Any, Optional

import httpx
from loguru import logger


class UpstreamError(Exception):
    """Upstream call failed. `kind` is one of timeout, network, http, malformed."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP = "http"
    MALFORMED = "malformed"

    def __init__(self, kind: str, url: str, detail: str = ""):
        self.kind = kind
        self.url = url
        self.detail = detail
        message = f"{kind} error fetching {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


async def _get(url: str, timeout: float, transport: Optional[httpx.AsyncBaseTransport]) -> httpx.Response:
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=False, transport=transport) as client:
        response = await client.get(url)
        response.raise_for_status()
        return response


async def fetch_json(
    url: str,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    """GET `url` and parse the full body as JSON.

    Raises:
        UpstreamError: on timeout, connection failure, non-2xx status
            or a body that is not valid JSON
    """
    try:
        response = await asyncio.wait_for(_get(url, timeout, transport), timeout=timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise UpstreamError(UpstreamError.TIMEOUT, url, f"no complete response within {timeout}s") from e
    except httpx.HTTPStatusError as e:
        raise UpstreamError(UpstreamError.HTTP, url, f"status {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise UpstreamError(UpstreamError.NETWORK, url, str(e) or type(e).__name__) from e

    logger.debug(f"GET {url} -> {response.status_code} ({len(response.content)} bytes)")
    try:
        return json.loads(response.content)
    except ValueError as e:
        raise UpstreamError(UpstreamError.MALFORMED, url, str(e)) from e
