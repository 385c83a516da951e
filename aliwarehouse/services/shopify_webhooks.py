"""
Shopify product webhook handling: signature checks and re-translation.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from aliwarehouse.clients.deepl import DeepLClient
from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.core.locales import PRIORITY_LOCALES
from aliwarehouse.schemas.translations import ProductTranslationInput, SlugMapping
from aliwarehouse.schemas.webhooks import ShopifyProductWebhook
from aliwarehouse.services.slugs import webhook_slug

logger = logging.getLogger(__name__)

DELETE_TOPIC = "products/delete"

_HTML_TAGS = re.compile(r"<[^>]*>")


def compute_webhook_hmac(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_webhook(body: bytes, hmac_header: Optional[str], secret: Optional[str]) -> bool:
    """Check ``X-Shopify-Hmac-Sha256``. Verification is skipped when no secret is configured."""
    if not secret:
        logger.warning("SHOPIFY_WEBHOOK_SECRET not set; skipping webhook verification")
        return True
    if not hmac_header:
        return False
    expected = compute_webhook_hmac(body, secret)
    return hmac.compare_digest(expected.encode("utf-8"), hmac_header.encode("utf-8"))


def strip_html(html: str) -> str:
    return _HTML_TAGS.sub("", html)


@dataclass(slots=True)
class WebhookOutcome:
    action: str
    locales: List[str] = field(default_factory=list)


class ShopifyWebhookService:
    """Keep translations in step with Shopify product create/update/delete events."""

    def __init__(self, store: TranslationStore, deepl: Optional[DeepLClient]) -> None:
        self._store = store
        self._deepl = deepl

    async def handle(self, topic: Optional[str], product: ShopifyProductWebhook) -> WebhookOutcome:
        logger.info("Webhook received: %s - %s (%s)", topic, product.title, product.handle)
        if topic == DELETE_TOPIC:
            deleted = self._store.delete_product(str(product.id), product.handle)
            logger.info("Deleted %s translations for %s", deleted, product.handle)
            return WebhookOutcome(action="deleted")

        if self._deepl is None:
            raise RuntimeError("DEEPL_API_KEY is not configured")

        plain_description = strip_html(product.body_html) if product.body_html else ""
        titles, descriptions = await asyncio.gather(
            self._deepl.translate_to_all_languages(product.title),
            self._deepl.translate_to_all_languages(plain_description)
            if plain_description
            else _empty_translations(),
        )

        for locale in PRIORITY_LOCALES:
            title = titles.get(locale) or product.title
            description = descriptions.get(locale, "")
            slug = webhook_slug(title) or product.handle
            self._store.upsert_translation(
                ProductTranslationInput(
                    shopify_product_id=str(product.id),
                    shopify_handle=product.handle,
                    locale=locale,
                    title=title,
                    headline=None,
                    description=description,
                    description_enhanced=None,
                    seo_title=title[:60],
                    seo_description=description[:160],
                    slug=slug,
                    original_title=product.title,
                    translation_source="deepl",
                    image_analyzed=False,
                )
            )
            self._store.upsert_slug_mapping(
                SlugMapping(shopify_handle=product.handle, locale=locale, localized_slug=slug)
            )

        logger.info("Translated %s to %s languages", product.handle, len(PRIORITY_LOCALES))
        return WebhookOutcome(action=topic or "products/update", locales=list(PRIORITY_LOCALES))


async def _empty_translations() -> Dict[str, str]:
    return {}


__all__ = [
    "DELETE_TOPIC",
    "ShopifyWebhookService",
    "WebhookOutcome",
    "compute_webhook_hmac",
    "strip_html",
    "verify_webhook",
]
