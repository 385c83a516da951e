"""ScraperAPI access for rendering AliExpress search pages behind EU proxies."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from aliwarehouse.core.config import ScraperSettings

logger = logging.getLogger(__name__)

SCRAPER_API_URL = "https://api.scraperapi.com"
SCRAPER_API_PROXY = "proxy-server.scraperapi.com:8001"
# Hobby plans only accept the "us" and "eu" regions.
SCRAPER_API_COUNTRY = "eu"


class ScraperError(RuntimeError):
    """Raised when a page cannot be fetched or rendered."""


class ScraperAPIClient:
    def __init__(
        self,
        settings: ScraperSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 90.0,
    ) -> None:
        if not settings.scraper_api_key:
            raise ScraperError("SCRAPER_API_KEY is not configured")
        self._api_key = settings.scraper_api_key
        self._transport = transport
        self._timeout = timeout

    @property
    def proxy_server(self) -> str:
        return f"http://{SCRAPER_API_PROXY}"

    def proxy_credentials(self) -> dict[str, str]:
        """Credentials for routing a browser through the rendering proxy."""
        return {"username": "scraperapi.render=true", "password": self._api_key}

    async def fetch_html(self, url: str) -> str:
        params = {
            "api_key": self._api_key,
            "url": url,
            "render": "true",
            "country_code": SCRAPER_API_COUNTRY,
            "device_type": "desktop",
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.get(
                    SCRAPER_API_URL, params=params, headers={"Accept": "text/html"}
                )
            except httpx.HTTPError as exc:
                raise ScraperError(f"ScraperAPI request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ScraperError(
                f"ScraperAPI error: {response.status_code} - {response.text[:200]}"
            )
        logger.debug("ScraperAPI returned %s bytes for %s", len(response.content), url)
        return response.text


__all__ = ["SCRAPER_API_PROXY", "SCRAPER_API_URL", "ScraperAPIClient", "ScraperError"]
