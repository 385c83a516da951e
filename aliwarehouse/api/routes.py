"""
FastAPI routes for webhooks, AliExpress authorization and product routing.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from aliwarehouse.clients.aliexpress_auth import OAuthTokenExchangeError
from aliwarehouse.clients.shopify import ShopifyError
from aliwarehouse.core.locales import is_supported_locale
from aliwarehouse.dependencies import (
    get_aliexpress_token_service,
    get_app_settings,
    get_oauth_state_encoder,
    get_shopify_client,
    get_translation_store,
    get_webhook_service,
)
from aliwarehouse.schemas import (
    AuthorizationResult,
    RouteResolution,
    ShopifyProductWebhook,
    TokenStatusResponse,
    WebhookHealthResponse,
    WebhookResponse,
)
from aliwarehouse.services.shopify_webhooks import verify_webhook
from aliwarehouse.services.slugs import resolve_product_route
from aliwarehouse.services.token_store import TokenStoreError

router = APIRouter()
logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/webhooks/shopify", response_model=WebhookHealthResponse)
async def shopify_webhook_health() -> WebhookHealthResponse:
    return WebhookHealthResponse()


@router.post("/webhooks/shopify", response_model=WebhookResponse)
async def handle_shopify_webhook(
    request: Request,
    settings: Annotated[Any, Depends(get_app_settings)],
    service: Annotated[Any, Depends(get_webhook_service)],
) -> Any:
    """Re-translate or delete a product when Shopify reports a change."""
    body = await request.body()
    hmac_header = request.headers.get("x-shopify-hmac-sha256")
    if not verify_webhook(body, hmac_header, settings.shopify.webhook_secret):
        logger.warning("Rejected Shopify webhook with invalid signature")
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Invalid signature")

    try:
        product = ShopifyProductWebhook.model_validate_json(body)
    except ValidationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Invalid product payload."
        ) from exc

    topic = request.headers.get("x-shopify-topic")
    try:
        outcome = await service.handle(topic, product)
    except RuntimeError as exc:
        logger.exception("Webhook processing failed for %s", product.handle)
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={"error": "Translation failed", "details": str(exc)},
        )
    return WebhookResponse(action=outcome.action, locales=outcome.locales)


@router.get("/auth/aliexpress/authorize", status_code=HTTPStatus.OK)
async def start_aliexpress_oauth_flow(
    request: Request,
    token_service: Annotated[Any, Depends(get_aliexpress_token_service)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the AliExpress consent screen.",
    ),
) -> Any:
    """Issue a signed state token and the seller consent URL."""
    state = state_encoder.encode(
        {"nonce": uuid.uuid4().hex, "issued_at": datetime.now(timezone.utc).isoformat()}
    )
    authorization_url = token_service.authorization_url(state=state)
    if redirect or _wants_html(request):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)
    return {"authorization_url": authorization_url, "state": state}


def _check_state(state_data: dict, ttl_seconds: int) -> None:
    issued_at_raw = state_data.get("issued_at")
    if not issued_at_raw:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Missing issued_at in state token."
        )
    try:
        issued_at = datetime.fromisoformat(issued_at_raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Invalid issued_at in state token."
        ) from exc
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    if datetime.now(timezone.utc) - issued_at > timedelta(seconds=ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )


@router.get("/auth/aliexpress/callback", status_code=HTTPStatus.OK)
async def handle_aliexpress_oauth_callback(
    request: Request,
    token_service: Annotated[Any, Depends(get_aliexpress_token_service)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: str = Query(..., description="Authorization code returned by AliExpress."),
    state: str = Query(..., description="OAuth state token."),
) -> Response:
    """Exchange the authorization code and persist the resulting tokens."""
    _check_state(state_encoder.decode(state), settings.oauth_state_ttl_seconds)

    try:
        record = await token_service.authorize(code)
    except OAuthTokenExchangeError as exc:
        logger.error("AliExpress token exchange failed: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Failed to exchange authorization code.",
        ) from exc
    except TokenStoreError as exc:
        logger.error("Could not persist AliExpress tokens: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail="Failed to store tokens."
        ) from exc

    if settings.frontend_base_url and _wants_html(request):
        return RedirectResponse(
            url=str(settings.frontend_base_url), status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    result = AuthorizationResult(message="AliExpress authorization complete.", user_id=record.user_id)
    return JSONResponse(content=result.model_dump(by_alias=True))


@router.get("/auth/aliexpress/status", response_model=TokenStatusResponse)
async def aliexpress_token_status(
    token_service: Annotated[Any, Depends(get_aliexpress_token_service)],
) -> TokenStatusResponse:
    status = token_service.status()
    return TokenStatusResponse(
        authorized=status.authorized,
        access_token_valid=status.access_token_valid,
        refresh_token_valid=status.refresh_token_valid,
        expires_in=status.expires_in,
        user_id=status.user_id,
    )


@router.get("/products/{locale}/{slug}/route", response_model=RouteResolution)
async def resolve_route(
    locale: str,
    slug: str,
    store: Annotated[Any, Depends(get_translation_store)],
    shopify: Annotated[Any, Depends(get_shopify_client)],
) -> RouteResolution:
    """Map a localized product URL segment to its canonical handle and slug."""
    if not is_supported_locale(locale):
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Unsupported locale.")

    handle_exists = None
    if shopify is not None:

        async def handle_exists(handle: str) -> bool:
            return await shopify.get_product_by_handle(handle) is not None

    try:
        resolution = await resolve_product_route(
            store, slug, locale, handle_exists=handle_exists
        )
    except ShopifyError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY, detail="Shopify lookup failed."
        ) from exc

    if resolution.kind == "not_found":
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Product not found.")
    return resolution


__all__ = ["router"]
