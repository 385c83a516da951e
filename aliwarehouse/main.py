"""
FastAPI application entrypoint for the storefront sync service.
"""

from __future__ import annotations

from fastapi import FastAPI

from aliwarehouse.api.routes import router as api_router
from aliwarehouse.core.config import get_settings
from aliwarehouse.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Aliwarehouse Storefront Sync",
        version="0.1.0",
        description="Shopify webhooks, AliExpress authorization and localized product routing.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
