"""
Pydantic models for tracked AliExpress source products.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

ProductStatus = Literal["pending", "imported", "rejected", "unavailable"]


class SourceProductInput(BaseModel):
    """A product discovered by the scraper or added by an operator."""

    aliexpress_product_id: str = Field(..., min_length=1)
    aliexpress_url: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    currency: str = "EUR"
    ships_from: Optional[str] = None
    ships_from_display: Optional[str] = None
    is_eu_warehouse: bool = False
    main_image_url: Optional[str] = None
    image_urls: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    search_query: Optional[str] = None
    status: ProductStatus = "pending"


class SourceProduct(SourceProductInput):
    """A stored source product including the API sync columns."""

    id: int
    shopify_product_id: Optional[str] = None
    api_images: List[str] = Field(default_factory=list)
    api_price: Optional[float] = None
    api_sale_price: Optional[float] = None
    api_stock_quantity: Optional[int] = None
    api_fetched_at: Optional[datetime] = None
    api_country_tested: Optional[str] = None
    scraped_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ApiSyncUpdate(BaseModel):
    """Columns written after a successful API fetch."""

    description: Optional[str] = Field(None, max_length=10_000)
    api_images: List[str] = Field(default_factory=list)
    api_price: Optional[float] = None
    api_sale_price: Optional[float] = None
    api_stock_quantity: Optional[int] = None
    api_fetched_at: datetime
    api_country_tested: Optional[str] = None


__all__ = [
    "ApiSyncUpdate",
    "ProductStatus",
    "SourceProduct",
    "SourceProductInput",
]
