"""HTTP utilities providing retry/backoff semantics for idempotent provider calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Collection

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})


class RetryConfig:
    def __init__(
        self,
        *,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        retry_statuses: Collection[int] = RETRYABLE_STATUS_CODES,
    ) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.retry_statuses = frozenset(retry_statuses)


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **kwargs,
) -> httpx.Response:
    """Call ``func`` until it returns a 2xx response or attempts run out.

    Transport errors and the configured status codes are retried with linear
    backoff. Any other 4xx is raised immediately.
    """
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: Exception | None = None

    while attempt < config.attempts:
        try:
            response = await func(*args, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code not in config.retry_statuses:
                raise
            last_exception = exc
        except httpx.TransportError as exc:
            last_exception = exc
        attempt += 1
        if attempt >= config.attempts:
            break
        logger.debug("Retrying request (attempt %s/%s): %s", attempt + 1, config.attempts, last_exception)
        await sleep(config.backoff_seconds * attempt)

    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Request failed without raising an exception")


__all__ = ["RETRYABLE_STATUS_CODES", "RetryConfig", "request_with_retry"]
