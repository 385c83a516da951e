"""Service layer exports."""

from .aliexpress_tokens import AliExpressTokenService, TokenStatus
from .country_fallback import CountryFallbackStrategy, FallbackResult
from .eu_scraper import EUScraper, ScrapeOptions, ScrapeSummary
from .product_sync import ProductSyncService, SyncSummary
from .shopify_webhooks import ShopifyWebhookService, WebhookOutcome
from .token_cipher import TokenCipherService
from .token_store import FileTokenStore, InMemoryTokenStore, TokenStoreError
from .translation_audit import AuditReport
from .translation_enrichment import FixSummary, TranslationEnrichmentService

__all__ = [
    "AliExpressTokenService",
    "AuditReport",
    "CountryFallbackStrategy",
    "EUScraper",
    "FallbackResult",
    "FileTokenStore",
    "FixSummary",
    "InMemoryTokenStore",
    "ProductSyncService",
    "ScrapeOptions",
    "ScrapeSummary",
    "ShopifyWebhookService",
    "SyncSummary",
    "TokenCipherService",
    "TokenStatus",
    "TokenStoreError",
    "TranslationEnrichmentService",
    "WebhookOutcome",
]
