"""Shared JSON-over-HTTP helper for the provider clients.

Converts transport failures, non-2xx statuses and undecodable bodies into
the UpstreamError / ParseError taxonomy so callers only deal with one
family of exceptions.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from dateplanner.errors import ParseError, UpstreamError

logger = structlog.get_logger(__name__)

_RETRY_DELAY = 1.0


def _error_detail(response: httpx.Response) -> str | None:
    """Pull a provider error message out of a failed response, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        return error.get("message")
    if isinstance(error, str):
        return error
    return None


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    provider: str,
    max_retries: int = 0,
    **kwargs: Any,
) -> dict:
    """Make a request and return the decoded JSON object.

    Server errors (5xx) are retried up to ``max_retries`` times.

    Args:
        client: The httpx client to use.
        method: HTTP method ("GET" or "POST").
        url: Absolute URL to request.
        provider: Provider name used in error messages and logs.
        max_retries: Number of retries for 5xx responses.
        **kwargs: Passed through to ``client.request`` (params, json, headers).

    Returns:
        The parsed JSON object.

    Raises:
        UpstreamError: On timeouts, connection errors and non-2xx responses.
        ParseError: When the body is not a JSON object.
    """
    last_error = None
    for attempt in range(max_retries + 1):
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise UpstreamError(f"Request to {provider} timed out.") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"HTTP error communicating with {provider}: {exc}") from exc

        if response.status_code >= 500:
            last_error = UpstreamError(
                _error_detail(response)
                or f"{provider} server error (HTTP {response.status_code}).",
                status_code=response.status_code,
            )
            if attempt < max_retries:
                logger.warning(
                    "Retrying after server error",
                    provider=provider,
                    status_code=response.status_code,
                    attempt=attempt + 1,
                )
                await asyncio.sleep(_RETRY_DELAY)
                continue
            raise last_error

        if not response.is_success:
            raise UpstreamError(
                _error_detail(response)
                or f"{provider} error: HTTP {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ParseError(f"Received invalid JSON from {provider}.") from exc
        if not isinstance(body, dict):
            raise ParseError(f"Unexpected response format from {provider}.")
        return body

    raise last_error  # pragma: no cover
