"""
Shared utilities for provider modules.
"""
import asyncio
import logging
from typing import Optional, Any
from contextlib import asynccontextmanager

import aiohttp

from .base import ProviderRateLimitError, ProviderTimeoutError, UpstreamError

USER_AGENT = "OSMSmart/1.0 (https://osmsmart.com)"


@asynccontextmanager
async def get_session(session: Optional[aiohttp.ClientSession] = None):
    """Context manager for aiohttp session handling.

    If session is provided, yields it.
    If not, creates a new session and closes it after use.
    """
    if session is not None:
        yield session
    else:
        async with aiohttp.ClientSession(headers={"User-Agent": USER_AGENT}) as new_session:
            yield new_session


async def request_json(
    method: str,
    url: str,
    provider_name: str,
    timeout: float,
    session: Optional[aiohttp.ClientSession] = None,
    **kwargs: Any,
) -> Any:
    """Unified HTTP request returning decoded JSON.

    Args:
        method: HTTP method
        url: The URL to request
        provider_name: Provider reported on raised errors
        timeout: Total request timeout in seconds
        session: Optional aiohttp session to reuse
        **kwargs: Passed through to ``session.request`` (params, data, json, headers)

    Returns:
        Decoded JSON body

    Raises:
        ProviderRateLimitError: On HTTP 429
        ProviderTimeoutError: When the request exceeds ``timeout``
        UpstreamError: On any other non-2xx status, transport failure or non-JSON body
    """
    try:
        async with get_session(session) as sess:
            async with sess.request(method, url, timeout=aiohttp.ClientTimeout(total=timeout), **kwargs) as resp:
                if resp.status == 429:
                    raise ProviderRateLimitError(f"{provider_name} rate limited", provider_name)
                if resp.status >= 400:
                    body = await resp.text()
                    logging.error(f"HTTP {method} {url} failed: {resp.status} {body[:200]}")
                    raise UpstreamError(
                        f"{provider_name} API error",
                        provider_name,
                        details={"status": resp.status},
                    )
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise UpstreamError(f"{provider_name} returned invalid JSON", provider_name) from e
    except asyncio.TimeoutError as e:
        raise ProviderTimeoutError(f"{provider_name} timed out after {timeout}s", provider_name) from e
    except aiohttp.ClientError as e:
        logging.error(f"HTTP {method} {url} failed: {e}")
        raise UpstreamError(f"{provider_name} unreachable: {e}", provider_name) from e
