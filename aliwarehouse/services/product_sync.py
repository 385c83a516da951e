"""
Synchronize tracked AliExpress products into the store and Shopify.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from aliwarehouse.clients.shopify import ShopifyClient, ShopifyError
from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.models.aliexpress import (
    ParsedVariant,
    ProductDetails,
    extract_product_details,
    parse_product_result,
)
from aliwarehouse.schemas.products import ApiSyncUpdate, SourceProduct
from aliwarehouse.services.country_fallback import CountryFallbackStrategy

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 10_000
MAX_SHOPIFY_IMAGES = 10
MAX_SHOPIFY_OPTIONS = 3
MAX_INVENTORY = 999


def normalize_image_url(url: str) -> str:
    return f"https:{url}" if url.startswith("//") else url


def build_shopify_variants(
    variants: Sequence[ParsedVariant],
) -> tuple[List[str], List[Dict[str, Any]]]:
    """Turn EU variants into Shopify option names and variant payloads.

    Only EU variants are kept. Variants sharing an option combination collapse
    to the one with the most stock.
    """
    eu_variants = [variant for variant in variants if variant.is_eu]
    if not eu_variants:
        return [], []

    option_names: List[str] = []
    for variant in eu_variants:
        for name in variant.options:
            if name not in option_names:
                option_names.append(name)
    option_names = option_names[:MAX_SHOPIFY_OPTIONS] or ["Option"]

    unique: Dict[str, ParsedVariant] = {}
    for variant in eu_variants:
        key = "|".join(variant.options.get(name) or "Default" for name in option_names)
        existing = unique.get(key)
        if existing is None or variant.stock > existing.stock:
            unique[key] = variant

    payloads: List[Dict[str, Any]] = []
    for variant in unique.values():
        price = variant.sale_price if variant.sale_price > 0 else variant.price
        payload: Dict[str, Any] = {
            "price": f"{price:.2f}",
            "sku": f"AE-{variant.sku_id}",
            "inventory_quantity": min(variant.stock, MAX_INVENTORY),
            "inventory_management": "shopify",
            "option1": variant.options.get(option_names[0]) or variant.ships_from or "Default",
        }
        if variant.sale_price > 0 and variant.price > variant.sale_price:
            payload["compare_at_price"] = f"{variant.price:.2f}"
        for index, name in enumerate(option_names[1:], start=2):
            value = variant.options.get(name)
            if value:
                payload[f"option{index}"] = value
        payloads.append(payload)

    return option_names, payloads


@dataclass(slots=True)
class ProductSyncResult:
    aliexpress_product_id: str
    success: bool
    country: Optional[str] = None
    error: Optional[str] = None
    shopify_updated: Optional[bool] = None
    variants_synced: int = 0


@dataclass(slots=True)
class SyncSummary:
    synced: int = 0
    errors: int = 0
    results: List[ProductSyncResult] = field(default_factory=list)


class ProductSyncService:
    """Fetch product data through the country fallback and push it downstream."""

    def __init__(
        self,
        fallback: CountryFallbackStrategy,
        store: TranslationStore,
        shopify: Optional[ShopifyClient] = None,
        *,
        image_delay_seconds: float = 0.2,
        product_delay_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._fallback = fallback
        self._store = store
        self._shopify = shopify
        self._image_delay = image_delay_seconds
        self._product_delay = product_delay_seconds
        self._sleep = sleep
        self._now = now

    def select_products(
        self,
        *,
        product_id: Optional[str] = None,
        limit: Optional[int] = None,
        force_refresh: bool = False,
    ) -> List[SourceProduct]:
        if product_id:
            product = self._store.get_source_product(product_id)
            return [product] if product else []
        return self._store.list_source_products(only_unfetched=not force_refresh, limit=limit)

    async def sync_product(self, product: SourceProduct) -> ProductSyncResult:
        product_id = product.aliexpress_product_id
        fetched = await self._fallback.fetch_product(product_id)
        if not fetched.success:
            logger.warning("Product %s: %s", product_id, fetched.error)
            return ProductSyncResult(product_id, success=False, error=fetched.error)

        details = extract_product_details(
            parse_product_result(fetched.data),
            fetched.country,
            self._fallback.countries,
        )
        logger.info(
            "Product %s via %s: %s images, %s variants, stock %s, price %.2f",
            product_id,
            fetched.country,
            len(details.images),
            len(details.variants),
            details.stock,
            details.price,
        )

        self._store.update_api_sync(
            product_id,
            ApiSyncUpdate(
                description=details.description[:MAX_DESCRIPTION_LENGTH] or None,
                api_images=details.images,
                api_price=details.price,
                api_sale_price=details.sale_price,
                api_stock_quantity=details.stock,
                api_fetched_at=self._now(),
                api_country_tested=fetched.country,
            ),
        )

        result = ProductSyncResult(product_id, success=True, country=fetched.country)
        if self._shopify is not None and product.shopify_product_id and details.images:
            try:
                await self.update_shopify_product(product.shopify_product_id, details)
                result.shopify_updated = True
                result.variants_synced = await self.update_shopify_variants(
                    product.shopify_product_id, details.variants
                )
            except ShopifyError as exc:
                # The store update above is kept; there is no rollback.
                logger.warning("Shopify update for %s failed: %s", product_id, exc)
                result.shopify_updated = False
        return result

    async def update_shopify_product(self, shopify_product_id: str, details: ProductDetails) -> None:
        await self._shopify.update_product(shopify_product_id, body_html=details.description)
        if not details.images:
            return
        existing = len(await self._shopify.list_images(shopify_product_id))
        for url in details.images[existing:MAX_SHOPIFY_IMAGES]:
            await self._shopify.add_image(shopify_product_id, normalize_image_url(url))
            await self._sleep(self._image_delay)

    async def update_shopify_variants(
        self, shopify_product_id: str, variants: Sequence[ParsedVariant]
    ) -> int:
        option_names, payloads = build_shopify_variants(variants)
        if not payloads:
            logger.info("No EU variants to sync for Shopify product %s", shopify_product_id)
            return 0
        await self._shopify.update_variants(shopify_product_id, option_names, payloads)
        return len(payloads)

    async def run(self, products: Sequence[SourceProduct]) -> SyncSummary:
        summary = SyncSummary()
        for index, product in enumerate(products, start=1):
            logger.info("[%s/%s] %s", index, len(products), product.aliexpress_product_id)
            try:
                result = await self.sync_product(product)
            except Exception as exc:
                logger.exception("Sync of %s failed", product.aliexpress_product_id)
                result = ProductSyncResult(
                    product.aliexpress_product_id, success=False, error=str(exc)
                )
            summary.results.append(result)
            if result.success:
                summary.synced += 1
                await self._sleep(self._product_delay)
            else:
                summary.errors += 1
        return summary


__all__ = [
    "MAX_DESCRIPTION_LENGTH",
    "ProductSyncResult",
    "ProductSyncService",
    "SyncSummary",
    "build_shopify_variants",
    "normalize_image_url",
]
