"""
Pydantic models for Shopify product webhooks.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ShopifyProductWebhook(BaseModel):
    """The subset of the product webhook payload used for translations."""

    id: int
    handle: str
    title: str = ""
    body_html: Optional[str] = None
    images: List[Dict[str, Any]] = Field(default_factory=list)


class WebhookResponse(BaseModel):
    success: bool = True
    action: str
    locales: List[str] = Field(default_factory=list)


class WebhookHealthResponse(BaseModel):
    status: str = "ok"
    webhook: str = "shopify-products"
    endpoints: List[str] = Field(
        default_factory=lambda: [
            "products/create - Translate new product",
            "products/update - Re-translate product",
            "products/delete - Remove translations",
        ]
    )


__all__ = ["ShopifyProductWebhook", "WebhookHealthResponse", "WebhookResponse"]
