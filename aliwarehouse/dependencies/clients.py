"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Scripts reuse the same factories so the API and the operator tooling are wired
identically.
"""

from functools import lru_cache
from typing import Optional

from aliwarehouse.clients import (
    AliExpressClient,
    AliExpressOAuthClient,
    DeepLClient,
    OAuthStateEncoder,
    OpenAIChatClient,
    ScraperAPIClient,
    ShopifyClient,
    TranslationStore,
)
from aliwarehouse.core.config import get_settings
from aliwarehouse.services import (
    AliExpressTokenService,
    CountryFallbackStrategy,
    EUScraper,
    FileTokenStore,
    ProductSyncService,
    ShopifyWebhookService,
    TokenCipherService,
    TranslationEnrichmentService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder keyed by the AliExpress app secret."""
    return OAuthStateEncoder(secret_key=_settings().aliexpress.app_secret)


@lru_cache()
def get_aliexpress_oauth_client() -> AliExpressOAuthClient:
    return AliExpressOAuthClient(_settings().aliexpress)


@lru_cache()
def get_token_cipher_service() -> Optional[TokenCipherService]:
    """Provide the token cipher when TOKEN_ENCRYPTION_SECRET is set."""
    secret = _settings().aliexpress.token_encryption_secret
    if not secret:
        return None
    return TokenCipherService(secret=secret)


@lru_cache()
def get_token_store() -> FileTokenStore:
    return FileTokenStore(_settings().aliexpress.token_file, cipher=get_token_cipher_service())


@lru_cache()
def get_aliexpress_token_service() -> AliExpressTokenService:
    """Provide the token manager backed by the token file."""
    return AliExpressTokenService(get_token_store(), get_aliexpress_oauth_client())


@lru_cache()
def get_aliexpress_client() -> AliExpressClient:
    return AliExpressClient(_settings().aliexpress, get_aliexpress_token_service())


@lru_cache()
def get_country_fallback() -> CountryFallbackStrategy:
    return CountryFallbackStrategy.from_settings(get_aliexpress_client(), _settings().fallback)


@lru_cache()
def get_translation_store() -> TranslationStore:
    """Provide the shared SQLite translation store."""
    return TranslationStore(_settings().translation_db_path)


@lru_cache()
def get_deepl_client() -> Optional[DeepLClient]:
    """Provide the DeepL client when DEEPL_API_KEY is configured."""
    if not _settings().translation.deepl_api_key:
        return None
    return DeepLClient(_settings().translation)


@lru_cache()
def get_openai_client() -> Optional[OpenAIChatClient]:
    if not _settings().translation.openai_api_key:
        return None
    return OpenAIChatClient(_settings().translation)


@lru_cache()
def get_shopify_client() -> Optional[ShopifyClient]:
    """Provide the Shopify client when a store domain is configured."""
    if not _settings().shopify.store_domain:
        return None
    return ShopifyClient(_settings().shopify)


@lru_cache()
def get_scraper_api_client() -> Optional[ScraperAPIClient]:
    if not _settings().scraper.scraper_api_key:
        return None
    return ScraperAPIClient(_settings().scraper)


def get_webhook_service() -> ShopifyWebhookService:
    """Build the webhook service; DeepL may be absent until a product event needs it."""
    return ShopifyWebhookService(get_translation_store(), get_deepl_client())


def get_enrichment_service() -> TranslationEnrichmentService:
    shopify = get_shopify_client()
    openai = get_openai_client()
    if shopify is None or openai is None:
        raise RuntimeError(
            "SHOPIFY_STORE_DOMAIN and OPENAI_API_KEY are required for translation fixes"
        )
    return TranslationEnrichmentService(shopify, openai, get_translation_store())


def get_product_sync_service() -> ProductSyncService:
    return ProductSyncService(
        get_country_fallback(), get_translation_store(), get_shopify_client()
    )


def get_eu_scraper() -> EUScraper:
    return EUScraper(_settings().scraper, scraper_api=get_scraper_api_client())


__all__ = [
    "get_aliexpress_client",
    "get_aliexpress_oauth_client",
    "get_aliexpress_token_service",
    "get_country_fallback",
    "get_deepl_client",
    "get_enrichment_service",
    "get_eu_scraper",
    "get_oauth_state_encoder",
    "get_openai_client",
    "get_product_sync_service",
    "get_scraper_api_client",
    "get_shopify_client",
    "get_token_cipher_service",
    "get_token_store",
    "get_translation_store",
    "get_webhook_service",
]
