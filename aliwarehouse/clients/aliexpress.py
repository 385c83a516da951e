"""AliExpress Open Platform client for the dropshipping (`/sync`) API."""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

import httpx

from aliwarehouse.clients.aliexpress_auth import (
    AuthorizationRequiredError,
    OAuthTokenExchangeError,
)
from aliwarehouse.clients.aliexpress_signing import ParamValue, signed_params
from aliwarehouse.core.config import AliExpressSettings

logger = logging.getLogger(__name__)

AUTH_REQUIRED_CODE = "AUTH_REQUIRED"


class ErrorKind(str, enum.Enum):
    UNAVAILABLE = "unavailable"
    RATE_LIMITED = "rate_limited"
    AUTH = "auth"
    NETWORK = "network"
    UNKNOWN = "unknown"


_UNAVAILABLE_MARKERS = ("prohibited", "unsaleable", "sku", "country")
_RATE_LIMIT_MARKERS = ("frequency", "limit")


def classify_error(message: Optional[str]) -> ErrorKind:
    """Map vendor error wording onto an :class:`ErrorKind`.

    Unavailability markers win over rate-limit markers when both appear.
    """
    lowered = (message or "").lower()
    if any(marker in lowered for marker in _UNAVAILABLE_MARKERS):
        return ErrorKind.UNAVAILABLE
    if any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    return ErrorKind.UNKNOWN


@dataclass(slots=True)
class ApiResult:
    """Outcome of a signed API call. Vendor failures are values, not exceptions."""

    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    code: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def failure(
        cls, error: str, *, code: Optional[str] = None, kind: Optional[ErrorKind] = None
    ) -> "ApiResult":
        return cls(
            success=False,
            error=error,
            code=code,
            error_kind=kind if kind is not None else classify_error(error),
        )


class AccessTokenProvider(Protocol):
    async def get_valid_access_token(self) -> str: ...


def _utc_timestamp(now: datetime) -> str:
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class AliExpressClient:
    """Signs and sends requests to the AliExpress dropshipping API."""

    def __init__(
        self,
        settings: AliExpressSettings,
        token_service: Optional[AccessTokenProvider] = None,
        *,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._settings = settings
        self._tokens = token_service
        self._now = now
        self._transport = transport
        self._timeout = timeout

    async def request(
        self,
        method: str,
        params: Optional[Mapping[str, ParamValue]] = None,
        *,
        requires_auth: bool = False,
    ) -> ApiResult:
        system_params: Dict[str, ParamValue] = {
            "app_key": self._settings.app_key,
            "method": method,
            "timestamp": _utc_timestamp(self._now()),
            "sign_method": "md5",
            "v": "2.0",
            "format": "json",
            **(params or {}),
        }

        if requires_auth:
            if self._tokens is None:
                return ApiResult.failure(
                    "Authorization required", code=AUTH_REQUIRED_CODE, kind=ErrorKind.AUTH
                )
            try:
                system_params["access_token"] = await self._tokens.get_valid_access_token()
            except (AuthorizationRequiredError, OAuthTokenExchangeError) as exc:
                return ApiResult.failure(str(exc), code=AUTH_REQUIRED_CODE, kind=ErrorKind.AUTH)

        query = signed_params(system_params, self._settings.app_secret)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._settings.api_url,
                    params=query,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            payload = response.json()
        except httpx.HTTPError as exc:
            logger.warning("AliExpress request %s failed: %s", method, exc)
            return ApiResult.failure(str(exc) or "Request failed", kind=ErrorKind.NETWORK)
        except ValueError as exc:
            return ApiResult.failure(
                f"Invalid JSON from AliExpress ({response.status_code}): {exc}",
                kind=ErrorKind.NETWORK,
            )

        error = payload.get("error_response") if isinstance(payload, dict) else None
        if error:
            message = error.get("msg") or "Unknown error"
            code = error.get("code")
            return ApiResult.failure(
                message,
                code=str(code) if code is not None else None,
                kind=classify_error(message),
            )

        return ApiResult(success=True, data=payload)

    async def get_product(
        self,
        product_id: str,
        country: str = "EE",
        currency: str = "EUR",
        language: str = "EN",
    ) -> ApiResult:
        return await self.request(
            "aliexpress.ds.product.get",
            {
                "product_id": product_id,
                "ship_to_country": country,
                "target_currency": currency,
                "target_language": language,
            },
            requires_auth=True,
        )

    async def search_products(
        self, keywords: str, page_no: int = 1, page_size: int = 20
    ) -> ApiResult:
        return await self.request(
            "aliexpress.ds.product.search",
            {"keywords": keywords, "page_no": page_no, "page_size": page_size},
            requires_auth=True,
        )

    async def get_shipping_info(
        self, product_id: str, country: str, quantity: int = 1
    ) -> ApiResult:
        return await self.request(
            "aliexpress.logistics.buyer.freight.get",
            {"product_id": product_id, "country_code": country, "quantity": quantity},
            requires_auth=True,
        )

    async def create_order(
        self,
        *,
        product_id: str,
        quantity: int,
        shipping_address: Mapping[str, str],
        logistics: str,
    ) -> ApiResult:
        return await self.request(
            "aliexpress.ds.order.create",
            {
                "product_id": product_id,
                "quantity": quantity,
                "logistics_address": json.dumps(dict(shipping_address)),
                "shipping_method": logistics,
            },
            requires_auth=True,
        )

    async def get_order(self, order_id: str) -> ApiResult:
        return await self.request(
            "aliexpress.ds.order.get", {"order_id": order_id}, requires_auth=True
        )

    async def get_tracking(self, order_id: str) -> ApiResult:
        return await self.request(
            "aliexpress.logistics.ds.trackinginfo.query",
            {"order_id": order_id},
            requires_auth=True,
        )

    async def test_connection(self) -> tuple[bool, str]:
        """Call an unauthenticated method to check the app credentials."""
        result = await self.request("aliexpress.ds.category.get", {"category_id": 0})
        if result.success:
            return True, "API connection successful!"
        return False, f"API connection failed: {result.error} (code: {result.code})"


__all__ = [
    "AUTH_REQUIRED_CODE",
    "AccessTokenProvider",
    "AliExpressClient",
    "ApiResult",
    "ErrorKind",
    "classify_error",
]
