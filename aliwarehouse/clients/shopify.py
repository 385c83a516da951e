"""Shopify Admin REST and Storefront GraphQL client."""

from __future__ import annotations

import logging
from textwrap import dedent
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from aliwarehouse.core.config import ShopifySettings
from aliwarehouse.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)

PRODUCT_BY_HANDLE_QUERY = dedent(
    """
    query GetProduct($handle: String!) {
      productByHandle(handle: $handle) {
        id
        handle
        title
        description
        descriptionHtml
        tags
        priceRange {
          minVariantPrice {
            amount
            currencyCode
          }
        }
      }
    }
    """
).strip()

PRODUCT_HANDLES_QUERY = dedent(
    """
    query GetProducts($first: Int!, $after: String) {
      products(first: $first, after: $after) {
        pageInfo {
          hasNextPage
          endCursor
        }
        edges {
          node {
            handle
          }
        }
      }
    }
    """
).strip()


class ShopifyError(RuntimeError):
    """Raised when Shopify is misconfigured or rejects a request."""


class ShopifyClient:
    """Wrap the Admin REST endpoints used by product sync and the Storefront queries."""

    def __init__(
        self,
        settings: ShopifySettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not settings.store_domain:
            raise ShopifyError("SHOPIFY_STORE_DOMAIN is not configured")
        self._settings = settings
        self._transport = transport
        self._admin_base = (
            f"https://{settings.store_domain}/admin/api/{settings.api_version}"
        )
        self._storefront_url = (
            f"https://{settings.store_domain}/api/{settings.api_version}/graphql.json"
        )

    def _admin_headers(self) -> Dict[str, str]:
        if not self._settings.admin_token:
            raise ShopifyError("SHOPIFY_ADMIN_API_TOKEN is not configured")
        return {"X-Shopify-Access-Token": self._settings.admin_token}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=30.0, transport=self._transport)

    async def _admin(
        self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        async with self._client() as client:
            try:
                response = await client.request(
                    method,
                    f"{self._admin_base}{path}",
                    json=json,
                    headers=self._admin_headers(),
                )
            except httpx.HTTPError as exc:
                raise ShopifyError(f"Shopify request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ShopifyError(
                f"Shopify {method} {path} failed: {response.status_code} - {response.text[:200]}"
            )
        return response.json() if response.content else {}

    async def update_product(self, product_id: str, **fields: Any) -> Dict[str, Any]:
        payload = {"product": {"id": int(product_id), **fields}}
        data = await self._admin("PUT", f"/products/{product_id}.json", json=payload)
        return data.get("product", {})

    async def list_images(self, product_id: str) -> List[Dict[str, Any]]:
        async with self._client() as client:
            try:
                response = await request_with_retry(
                    client.get,
                    f"{self._admin_base}/products/{product_id}/images.json",
                    headers=self._admin_headers(),
                    retry_config=RetryConfig(attempts=2, backoff_seconds=0.5),
                )
            except httpx.HTTPError as exc:
                raise ShopifyError(f"Listing images for {product_id} failed: {exc}") from exc
        return response.json().get("images", [])

    async def add_image(self, product_id: str, src: str) -> Dict[str, Any]:
        data = await self._admin(
            "POST", f"/products/{product_id}/images.json", json={"image": {"src": src}}
        )
        return data.get("image", {})

    async def update_variants(
        self,
        product_id: str,
        option_names: List[str],
        variants: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        return await self.update_product(
            product_id,
            options=[{"name": name} for name in option_names],
            variants=variants,
        )

    async def _storefront(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        if not self._settings.storefront_token:
            raise ShopifyError("SHOPIFY_STOREFRONT_TOKEN is not configured")
        async with self._client() as client:
            try:
                response = await client.post(
                    self._storefront_url,
                    json={"query": query, "variables": variables},
                    headers={"X-Shopify-Storefront-Access-Token": self._settings.storefront_token},
                )
            except httpx.HTTPError as exc:
                raise ShopifyError(f"Storefront request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ShopifyError(f"Storefront query failed: {response.status_code}")
        payload = response.json()
        if payload.get("errors"):
            raise ShopifyError(f"Storefront query errors: {payload['errors']}")
        return payload.get("data") or {}

    async def get_product_by_handle(self, handle: str) -> Optional[Dict[str, Any]]:
        data = await self._storefront(PRODUCT_BY_HANDLE_QUERY, {"handle": handle})
        return data.get("productByHandle")

    async def iter_product_handles(self, page_size: int = 50) -> AsyncIterator[str]:
        cursor: Optional[str] = None
        while True:
            data = await self._storefront(
                PRODUCT_HANDLES_QUERY, {"first": page_size, "after": cursor}
            )
            products = data.get("products")
            if not products:
                logger.error("Unexpected Storefront products payload: %s", data)
                return
            for edge in products.get("edges", []):
                yield edge["node"]["handle"]
            page_info = products.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return
            cursor = page_info.get("endCursor")

    async def list_product_handles(self, page_size: int = 50) -> List[str]:
        return [handle async for handle in self.iter_product_handles(page_size)]


__all__ = ["ShopifyClient", "ShopifyError"]
