"""Public schema exports."""

from .auth import AuthorizationResult, OAuthCallbackPayload, TokenStatusResponse
from .products import ApiSyncUpdate, SourceProduct, SourceProductInput
from .translations import (
    ProductSpecifications,
    ProductTranslation,
    ProductTranslationInput,
    RouteResolution,
    SlugMapping,
    SlugMatch,
)
from .webhooks import ShopifyProductWebhook, WebhookHealthResponse, WebhookResponse

__all__ = [
    "ApiSyncUpdate",
    "AuthorizationResult",
    "OAuthCallbackPayload",
    "ProductSpecifications",
    "ProductTranslation",
    "ProductTranslationInput",
    "RouteResolution",
    "ShopifyProductWebhook",
    "SlugMapping",
    "SlugMatch",
    "SourceProduct",
    "SourceProductInput",
    "TokenStatusResponse",
    "WebhookHealthResponse",
    "WebhookResponse",
]
