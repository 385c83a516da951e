"""Expose dependency helpers for FastAPI routers and scripts."""

from .clients import (
    get_aliexpress_client,
    get_aliexpress_oauth_client,
    get_aliexpress_token_service,
    get_country_fallback,
    get_deepl_client,
    get_enrichment_service,
    get_eu_scraper,
    get_oauth_state_encoder,
    get_openai_client,
    get_product_sync_service,
    get_scraper_api_client,
    get_shopify_client,
    get_token_cipher_service,
    get_token_store,
    get_translation_store,
    get_webhook_service,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_aliexpress_client",
    "get_aliexpress_oauth_client",
    "get_aliexpress_token_service",
    "get_app_settings",
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
