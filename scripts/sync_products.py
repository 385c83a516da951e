"""Fetch tracked products through the country fallback and update the store and Shopify.

Usage::

    python -m scripts.sync_products [--limit N] [--product-id ID] [--force-refresh]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from aliwarehouse.clients.aliexpress_auth import AuthorizationRequiredError
from aliwarehouse.dependencies import get_aliexpress_token_service, get_product_sync_service
from scripts._cli import EXIT_OK, EXIT_RUNTIME_ERROR, add_verbose_flag, bootstrap

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync AliExpress product data.")
    parser.add_argument("--limit", type=int, default=None, help="Process at most N products.")
    parser.add_argument("--product-id", default=None, help="Sync a single AliExpress product.")
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Include products that were already fetched.",
    )
    add_verbose_flag(parser)
    return parser


async def _run(args: argparse.Namespace) -> int:
    try:
        await get_aliexpress_token_service().get_valid_access_token()
    except AuthorizationRequiredError as exc:
        print(f"{exc} Run: python -m scripts.aliexpress_auth url", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    service = get_product_sync_service()
    products = service.select_products(
        product_id=args.product_id, limit=args.limit, force_refresh=args.force_refresh
    )
    if not products:
        print("No products to sync.")
        return EXIT_OK

    logger.info("Syncing %s products", len(products))
    summary = await service.run(products)
    print(f"Synced: {summary.synced}  Errors: {summary.errors}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    bootstrap(args.verbose)
    return asyncio.run(_run(args))


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
