"""Async HTTP helper shared by the market and RPC clients."""

import asyncio
import logging
from typing import Optional

import httpx

from curvemm.errors import TransientUpstream

logger = logging.getLogger("curvemm")

# Retry settings
MAX_RETRIES = 3
RETRY_BASE_DELAY = 0.5  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}


async def request_with_retry(
    method: str,
    url: str,
    *,
    label: str = "HTTP",
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    timeout: float = 10.0,
    **kwargs,
) -> httpx.Response:
    """Execute an HTTP request with exponential-backoff retry.

    Retries on transient server errors (502, 503, 504) and rate-limits
    (429) as well as transport failures. Other error statuses raise
    ``httpx.HTTPStatusError`` immediately.

    Raises:
        TransientUpstream: When every attempt failed transiently.
    """
    last_exc: Optional[Exception] = None

    for attempt in range(max_retries):
        delay = base_delay * (2 ** attempt)
        try:
            async with httpx.AsyncClient() as client:
                resp = await getattr(client, method)(url, timeout=timeout, **kwargs)

            if resp.status_code in _RETRYABLE_STATUS_CODES:
                logger.warning(
                    "%s %s %s returned %d, retry %d/%d in %.1fs",
                    label, method.upper(), url, resp.status_code,
                    attempt + 1, max_retries, delay,
                )
                last_exc = httpx.HTTPStatusError(
                    f"Server error '{resp.status_code}'",
                    request=resp.request,
                    response=resp,
                )
            else:
                resp.raise_for_status()
                return resp

        except httpx.TransportError as exc:
            logger.warning(
                "%s %s %s transport error (%s), retry %d/%d in %.1fs",
                label, method.upper(), url, exc,
                attempt + 1, max_retries, delay,
            )
            last_exc = exc

        if attempt + 1 < max_retries:
            await asyncio.sleep(delay)

    raise TransientUpstream(f"{label} request failed: {last_exc}") from last_exc
