"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the webhook handlers, and
the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

DEFAULT_FALLBACK_COUNTRIES: tuple[str, ...] = (
    "ES", "FR", "IT", "NL", "PL", "DE", "CZ", "BE", "PT", "AT",
)


class AliExpressSettings(BaseSettings):
    """Credentials and endpoints for the AliExpress Open Platform."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    app_key: str = Field(..., validation_alias="ALIEXPRESS_APP_KEY")
    app_secret: str = Field(..., validation_alias="ALIEXPRESS_APP_SECRET")
    api_url: str = Field(
        "https://api-sg.aliexpress.com/sync", validation_alias="ALIEXPRESS_API_URL"
    )
    rest_url: str = Field(
        "https://api-sg.aliexpress.com/rest", validation_alias="ALIEXPRESS_REST_URL"
    )
    auth_url: str = Field(
        "https://api-sg.aliexpress.com/oauth/authorize",
        validation_alias="ALIEXPRESS_AUTH_URL",
    )
    callback_url: AnyHttpUrl = Field(
        "https://aliwarehouses.eu/api/auth/aliexpress/callback",
        validation_alias="ALIEXPRESS_CALLBACK_URL",
    )
    token_file: Path = Field(Path(".tokens.json"), validation_alias="ALIEXPRESS_TOKEN_FILE")
    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description="When set, token strings are encrypted inside the token file.",
    )


class FallbackSettings(BaseSettings):
    """Ship-to country fallback policy."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    countries: Annotated[tuple[str, ...], NoDecode] = Field(
        DEFAULT_FALLBACK_COUNTRIES,
        validation_alias="FALLBACK_COUNTRIES",
    )
    skip_delay_seconds: float = Field(1.5, validation_alias="FALLBACK_SKIP_DELAY_SECONDS")
    rate_limit_delay_seconds: float = Field(
        2.0, validation_alias="FALLBACK_RATE_LIMIT_DELAY_SECONDS"
    )

    @field_validator("countries", mode="before")
    @classmethod
    def _split_countries(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        """Support providing countries as a comma-separated string."""
        if isinstance(value, (tuple, list)):
            return tuple(str(code).strip().upper() for code in value if str(code).strip())
        return tuple(code.strip().upper() for code in value.split(",") if code.strip())


class ShopifySettings(BaseSettings):
    """Shopify Admin and Storefront API access."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    store_domain: Optional[str] = Field(None, validation_alias="SHOPIFY_STORE_DOMAIN")
    admin_token: Optional[str] = Field(None, validation_alias="SHOPIFY_ADMIN_API_TOKEN")
    storefront_token: Optional[str] = Field(
        None, validation_alias="SHOPIFY_STOREFRONT_TOKEN"
    )
    api_version: str = Field("2024-10", validation_alias="SHOPIFY_API_VERSION")
    webhook_secret: Optional[str] = Field(
        None,
        validation_alias="SHOPIFY_WEBHOOK_SECRET",
        description="Shared secret used to verify X-Shopify-Hmac-Sha256 headers.",
    )


class TranslationSettings(BaseSettings):
    """Translation and enrichment provider configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    deepl_api_key: Optional[str] = Field(None, validation_alias="DEEPL_API_KEY")
    deepl_api_url: str = Field("https://api.deepl.com/v2", validation_alias="DEEPL_API_URL")
    openai_api_key: Optional[str] = Field(None, validation_alias="OPENAI_API_KEY")
    openai_model: str = Field("gpt-4o-mini", validation_alias="OPENAI_MODEL")


class ScraperSettings(BaseSettings):
    """Browser scraper fallback configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    scraper_api_key: Optional[str] = Field(
        None,
        validation_alias="SCRAPER_API_KEY",
        description="Optional ScraperAPI key enabling the proxy/direct fetch mode.",
    )
    headless: bool = Field(True, validation_alias="SCRAPER_HEADLESS")
    captcha_timeout_seconds: float = Field(
        120.0, validation_alias="SCRAPER_CAPTCHA_TIMEOUT_SECONDS"
    )
    captcha_poll_seconds: float = Field(3.0, validation_alias="SCRAPER_CAPTCHA_POLL_SECONDS")


class AppSettings(BaseSettings):
    """Root settings object for the service and scripts."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting operators back after authorization.",
    )
    translation_db_path: str = Field(
        "data/translations.db", validation_alias="TRANSLATION_DB_PATH"
    )
    oauth_state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    aliexpress: AliExpressSettings = Field(default_factory=AliExpressSettings)
    fallback: FallbackSettings = Field(default_factory=FallbackSettings)
    shopify: ShopifySettings = Field(default_factory=ShopifySettings)
    translation: TranslationSettings = Field(default_factory=TranslationSettings)
    scraper: ScraperSettings = Field(default_factory=ScraperSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "DEFAULT_FALLBACK_COUNTRIES",
    "AliExpressSettings",
    "AppSettings",
    "FallbackSettings",
    "ScraperSettings",
    "ShopifySettings",
    "TranslationSettings",
    "get_settings",
]
