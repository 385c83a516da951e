"""Expose constructed client wrappers."""

from .aliexpress import AliExpressClient, ApiResult, ErrorKind
from .aliexpress_auth import (
    AliExpressOAuthClient,
    AuthorizationRequiredError,
    OAuthStateEncoder,
    OAuthTokenExchangeError,
)
from .deepl import DeepLClient, DeepLError
from .openai_chat import OpenAIChatClient, OpenAIError
from .scraper_api import ScraperAPIClient, ScraperError
from .shopify import ShopifyClient, ShopifyError
from .sqlite_store import TranslationStore

__all__ = [
    "AliExpressClient",
    "AliExpressOAuthClient",
    "ApiResult",
    "AuthorizationRequiredError",
    "DeepLClient",
    "DeepLError",
    "ErrorKind",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "OpenAIChatClient",
    "OpenAIError",
    "ScraperAPIClient",
    "ScraperError",
    "ShopifyClient",
    "ShopifyError",
    "TranslationStore",
]
