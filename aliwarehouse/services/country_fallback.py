"""
Ship-to country fallback for product lookups.

A product can be unsaleable for one destination and fine for another, so
lookups walk a prioritized list of EU countries until one succeeds.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from aliwarehouse.clients.aliexpress import AliExpressClient, ApiResult, ErrorKind
from aliwarehouse.core.config import DEFAULT_FALLBACK_COUNTRIES, FallbackSettings

logger = logging.getLogger(__name__)

EXHAUSTED_MESSAGE = "Product not available in any EU country"

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class FallbackAttemptResult:
    country: str
    error_kind: Optional[ErrorKind]
    message: Optional[str]
    retried: bool = False


@dataclass(slots=True)
class FallbackResult:
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    country: Optional[str] = None
    attempts: List[FallbackAttemptResult] = field(default_factory=list)


class CountryFallbackStrategy:
    """Try ``get_product`` for each candidate country in order."""

    def __init__(
        self,
        client: AliExpressClient,
        *,
        countries: Sequence[str] = DEFAULT_FALLBACK_COUNTRIES,
        skip_delay_seconds: float = 1.5,
        rate_limit_delay_seconds: float = 2.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not countries:
            raise ValueError("At least one fallback country is required.")
        self._client = client
        self._countries = tuple(countries)
        self._skip_delay = skip_delay_seconds
        self._rate_limit_delay = rate_limit_delay_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, client: AliExpressClient, settings: FallbackSettings, **kwargs: Any
    ) -> "CountryFallbackStrategy":
        return cls(
            client,
            countries=settings.countries,
            skip_delay_seconds=settings.skip_delay_seconds,
            rate_limit_delay_seconds=settings.rate_limit_delay_seconds,
            **kwargs,
        )

    @property
    def countries(self) -> tuple[str, ...]:
        return self._countries

    async def _fetch(self, product_id: str, country: str) -> ApiResult:
        return await self._client.get_product(product_id, country=country)

    async def fetch_product(self, product_id: str) -> FallbackResult:
        attempts: List[FallbackAttemptResult] = []

        for country in self._countries:
            result = await self._fetch(product_id, country)
            if result.success:
                return FallbackResult(
                    success=True, data=result.data, country=country, attempts=attempts
                )

            kind = result.error_kind or ErrorKind.UNKNOWN
            attempts.append(FallbackAttemptResult(country, kind, result.error))

            if kind is ErrorKind.UNAVAILABLE:
                logger.debug("Product %s unavailable for %s: %s", product_id, country, result.error)
                await self._sleep(self._skip_delay)
                continue

            if kind is ErrorKind.RATE_LIMITED:
                logger.info("Rate limit hit for %s, waiting %.1fs", country, self._rate_limit_delay)
                await self._sleep(self._rate_limit_delay)
                retry = await self._fetch(product_id, country)
                if retry.success:
                    return FallbackResult(
                        success=True, data=retry.data, country=country, attempts=attempts
                    )
                attempts.append(
                    FallbackAttemptResult(
                        country, retry.error_kind or ErrorKind.UNKNOWN, retry.error, retried=True
                    )
                )
                continue

            logger.warning(
                "Aborting fallback for product %s at %s (%s): %s",
                product_id,
                country,
                kind.value,
                result.error,
            )
            return FallbackResult(
                success=False,
                error=result.error,
                error_kind=kind,
                attempts=attempts,
            )

        return FallbackResult(
            success=False,
            error=EXHAUSTED_MESSAGE,
            error_kind=ErrorKind.UNAVAILABLE,
            attempts=attempts,
        )


__all__ = [
    "CountryFallbackStrategy",
    "EXHAUSTED_MESSAGE",
    "FallbackAttemptResult",
    "FallbackResult",
]
