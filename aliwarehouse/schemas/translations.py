"""
Pydantic models for per-locale product translations and slug mappings.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class ProductSpecifications(BaseModel):
    """Structured attributes extracted from a product description."""

    style: Optional[str] = None
    material: Optional[str] = None
    color: Optional[str] = None
    process: Optional[str] = None
    installation_type: Optional[str] = None
    indoor_outdoor: Optional[str] = None


class ProductTranslationInput(BaseModel):
    """Fields written by an upsert; ids and timestamps are store-managed."""

    shopify_product_id: str = Field(..., min_length=1)
    shopify_handle: str = Field(..., min_length=1)
    locale: str = Field(..., min_length=2, max_length=5)
    title: str
    slug: str = Field(..., min_length=1)
    headline: Optional[str] = None
    description: Optional[str] = None
    description_enhanced: Optional[str] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    original_title: Optional[str] = None
    translation_source: str = "manual"
    image_analyzed: bool = False
    usage_description: Optional[str] = None
    specifications: Optional[ProductSpecifications] = None
    product_size: Optional[str] = None
    package_size: Optional[str] = None
    weight: Optional[str] = None
    package_contents: Optional[str] = None
    origin_country: Optional[str] = None
    shipping_info: Optional[str] = None


class ProductTranslation(ProductTranslationInput):
    """A stored translation row."""

    id: int
    created_at: datetime
    updated_at: datetime


class SlugMapping(BaseModel):
    """Maps a canonical Shopify handle to its localized slug."""

    shopify_handle: str = Field(..., min_length=1)
    locale: str
    localized_slug: str = Field(..., min_length=1)


class SlugMatch(BaseModel):
    """Result of looking a slug up across every locale."""

    shopify_handle: str
    target_slug: str


class RouteResolution(BaseModel):
    """How a requested product slug or handle maps onto a storefront URL."""

    kind: Literal["found", "redirect", "not_found"]
    locale: str
    shopify_handle: Optional[str] = None
    slug: Optional[str] = None
    path: Optional[str] = None


def translation_payload(record: ProductTranslationInput) -> Dict[str, Any]:
    """Flatten a translation into column values for storage."""
    payload = record.model_dump()
    if record.specifications is not None:
        payload["specifications"] = record.specifications.model_dump(exclude_none=True)
    return payload


__all__ = [
    "ProductSpecifications",
    "ProductTranslation",
    "ProductTranslationInput",
    "RouteResolution",
    "SlugMapping",
    "SlugMatch",
    "translation_payload",
]
