"""
Re-enrichment of products whose translations are missing or broken.

Each product is fetched from the Storefront API, distilled into structured
English copy by OpenAI, then translated locale by locale. Within a locale all
fields are translated concurrently and joined before the row is written.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from textwrap import dedent
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from aliwarehouse.clients.openai_chat import OpenAIChatClient, OpenAIError
from aliwarehouse.clients.shopify import ShopifyClient, ShopifyError
from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.core.locales import ALL_LOCALES, DEFAULT_LOCALE
from aliwarehouse.schemas.translations import ProductSpecifications, ProductTranslationInput
from aliwarehouse.services.slugs import generate_slug
from aliwarehouse.services.translation_audit import AuditReport

logger = logging.getLogger(__name__)

TRANSLATION_SOURCE = "ai-enrichment-fixed"

_TEXT_FIELDS = (
    "title",
    "headline",
    "description",
    "usage_description",
    "product_size",
    "package_size",
    "weight",
    "package_contents",
    "origin_country",
    "shipping_info",
    "seo_title",
    "seo_description",
)
_SPEC_FIELDS = tuple(ProductSpecifications.model_fields)

EXTRACTION_SYSTEM_PROMPT = (
    "You are a product data extraction assistant. Extract structured product information "
    "and return valid JSON only. ALWAYS translate to English."
)

EXTRACTION_PROMPT = dedent(
    """
    Analyze this product and extract structured information. Return a JSON object.

    Product Title: {title}
    Product Description: {description}
    Tags: {tags}
    Price: €{price}

    IMPORTANT: The product title may be in ANY language (German, Spanish, Portuguese, Chinese, etc.).
    You MUST translate all content to English regardless of the source language.

    Extract and return this JSON structure (use empty string "" if information is not available):
    {{
      "title": "Product title translated to English. Create a clear, SEO-friendly English title.",
      "headline": "Short catchy marketing tagline in English (5-10 words)",
      "description": "Full product description translated to English. Clean up and improve the original description, removing any HTML tags or formatting. Make it readable and informative (2-4 paragraphs).",
      "usage_description": "Where and how to use this product in English (1-2 sentences)",
      "specifications": {{
        "style": "Design style (modern, vintage, minimalist, etc.)",
        "material": "Main materials used",
        "color": "Available colors",
        "process": "Manufacturing process if relevant",
        "installation_type": "How to install (wall-mounted, freestanding, etc.)",
        "indoor_outdoor": "Indoor, Outdoor, or Both"
      }},
      "product_size": "Product dimensions (e.g., 164×2×70.5cm)",
      "package_size": "Package dimensions if known",
      "weight": "Product weight if known",
      "package_contents": "What's included in the package",
      "origin_country": "Country of manufacture",
      "shipping_info": "Shipping from EU warehouse, expected 5-7 business days",
      "seo_title": "SEO-optimized page title in English (50-60 chars)",
      "seo_description": "SEO meta description in English (150-160 chars)"
    }}

    Respond ONLY with valid JSON, no markdown or explanation.
    """
).strip()


class StructuredProductData(BaseModel):
    """English product copy extracted by the model."""

    title: str = ""
    headline: str = ""
    description: str = ""
    usage_description: str = ""
    specifications: ProductSpecifications = Field(default_factory=ProductSpecifications)
    product_size: str = ""
    package_size: str = ""
    weight: str = ""
    package_contents: str = ""
    origin_country: str = ""
    shipping_info: str = ""
    seo_title: str = ""
    seo_description: str = ""


class StorefrontProduct(BaseModel):
    id: str
    handle: str
    title: str
    description: str = ""
    descriptionHtml: str = ""
    tags: List[str] = Field(default_factory=list)
    priceRange: Dict[str, Any] = Field(default_factory=dict)

    @property
    def min_price(self) -> float:
        amount = (self.priceRange.get("minVariantPrice") or {}).get("amount", 0)
        try:
            return float(amount)
        except (TypeError, ValueError):
            return 0.0


@dataclass(slots=True)
class ProductFixResult:
    handle: str
    success: bool
    locales_processed: int = 0
    title: Optional[str] = None


@dataclass(slots=True)
class FixSummary:
    processed: int = 0
    failed: int = 0
    total_locales: int = 0


def select_handles(
    report: Optional[AuditReport],
    *,
    handle: Optional[str] = None,
    missing_only: bool = False,
    broken_only: bool = False,
    limit: Optional[int] = None,
) -> List[str]:
    """Choose which product handles the fix pass should process."""
    if handle:
        handles = [handle]
    elif report is None:
        handles = []
    elif missing_only:
        handles = list(report.missing_translations)
    elif broken_only:
        handles = list(report.needs_re_enrichment)
    else:
        handles = [*report.needs_re_enrichment, *report.missing_translations]
    if limit:
        handles = handles[:limit]
    return handles


class TranslationEnrichmentService:
    """Rebuild every locale's translation for a product from a fresh English extraction."""

    def __init__(
        self,
        shopify: ShopifyClient,
        openai: OpenAIChatClient,
        store: TranslationStore,
        *,
        locales: Sequence[str] = ALL_LOCALES,
        locale_delay_seconds: float = 0.2,
        product_delay_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._shopify = shopify
        self._openai = openai
        self._store = store
        self._locales = tuple(locales)
        self._locale_delay = locale_delay_seconds
        self._product_delay = product_delay_seconds
        self._sleep = sleep

    async def extract_structured_data(self, product: StorefrontProduct) -> StructuredProductData:
        prompt = EXTRACTION_PROMPT.format(
            title=product.title,
            description=product.description or product.descriptionHtml,
            tags=", ".join(product.tags) or "none",
            price=f"{product.min_price:.2f}",
        )
        payload = await self._openai.complete_json(
            EXTRACTION_SYSTEM_PROMPT, prompt, max_tokens=1000, temperature=0.3
        )
        try:
            return StructuredProductData.model_validate(_stringify_values(payload))
        except ValidationError as exc:
            raise OpenAIError(f"Extraction payload did not match schema: {exc}") from exc

    async def _translate_field(self, text: str, locale: str) -> str:
        if not text or not text.strip():
            return ""
        try:
            return await self._openai.translate(text, locale)
        except OpenAIError as exc:
            logger.error("Translation to %s failed, keeping source text: %s", locale, exc)
            return text

    async def translate_structured_data(
        self, data: StructuredProductData, locale: str
    ) -> StructuredProductData:
        if locale == DEFAULT_LOCALE:
            return data

        specs = data.specifications.model_dump()
        sources = [getattr(data, name) for name in _TEXT_FIELDS]
        sources += [specs.get(name) or "" for name in _SPEC_FIELDS]
        translated = await asyncio.gather(
            *(self._translate_field(text, locale) for text in sources)
        )

        text_values = dict(zip(_TEXT_FIELDS, translated[: len(_TEXT_FIELDS)]))
        spec_values = {
            name: value or None
            for name, value in zip(_SPEC_FIELDS, translated[len(_TEXT_FIELDS):])
        }
        return StructuredProductData(
            **text_values, specifications=ProductSpecifications(**spec_values)
        )

    def save_translation(
        self, product: StorefrontProduct, data: StructuredProductData, locale: str
    ) -> None:
        self._store.upsert_translation(
            ProductTranslationInput(
                shopify_product_id=product.id,
                shopify_handle=product.handle,
                locale=locale,
                title=data.title or product.title,
                headline=data.headline,
                description=data.description or None,
                description_enhanced=None,
                seo_title=data.seo_title,
                seo_description=data.seo_description,
                slug=generate_slug(data.title or product.title, locale, product.id),
                original_title=product.title,
                translation_source=TRANSLATION_SOURCE,
                image_analyzed=False,
                usage_description=data.usage_description,
                specifications=data.specifications,
                product_size=data.product_size,
                package_size=data.package_size,
                weight=data.weight,
                package_contents=data.package_contents,
                origin_country=data.origin_country,
                shipping_info=data.shipping_info,
            )
        )

    async def process_product(self, handle: str, *, dry_run: bool = False) -> ProductFixResult:
        raw = await self._shopify.get_product_by_handle(handle)
        if not raw:
            logger.warning("Product %s not found in Shopify", handle)
            return ProductFixResult(handle=handle, success=False)
        product = StorefrontProduct.model_validate(raw)

        structured = await self.extract_structured_data(product)
        logger.info("Extracted %s: %r", handle, structured.title)
        if dry_run:
            logger.info("[DRY RUN] Would save translations for %s locales", len(self._locales))
            return ProductFixResult(handle=handle, success=True, title=structured.title)

        processed = 0
        for locale in self._locales:
            try:
                localized = await self.translate_structured_data(structured, locale)
                self.save_translation(product, localized, locale)
                processed += 1
                logger.debug("Saved %s: %r", locale, localized.title[:40])
            except (OpenAIError, RuntimeError, ValidationError) as exc:
                logger.error("Error translating %s to %s: %s", handle, locale, exc)
                continue
            await self._sleep(self._locale_delay)

        return ProductFixResult(
            handle=handle, success=True, locales_processed=processed, title=structured.title
        )

    async def run(self, handles: Sequence[str], *, dry_run: bool = False) -> FixSummary:
        summary = FixSummary()
        for handle in handles:
            try:
                result = await self.process_product(handle, dry_run=dry_run)
            except (OpenAIError, ShopifyError, ValidationError) as exc:
                logger.error("Error processing %s: %s", handle, exc)
                summary.failed += 1
            else:
                if result.success:
                    summary.processed += 1
                    summary.total_locales += result.locales_processed
                else:
                    summary.failed += 1
            await self._sleep(self._product_delay)
        return summary


def _stringify_values(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce scalar values to strings; models sometimes return numbers for sizes."""
    cleaned: Dict[str, Any] = {}
    for key, value in payload.items():
        if key == "specifications" and isinstance(value, dict):
            cleaned[key] = {k: (str(v) if v is not None else None) for k, v in value.items()}
        elif value is None:
            continue
        elif isinstance(value, (int, float)):
            cleaned[key] = str(value)
        else:
            cleaned[key] = value
    return cleaned


__all__ = [
    "FixSummary",
    "ProductFixResult",
    "StorefrontProduct",
    "StructuredProductData",
    "TRANSLATION_SOURCE",
    "TranslationEnrichmentService",
    "select_handles",
]
