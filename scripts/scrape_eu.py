"""Scrape AliExpress search results for products shipped from EU warehouses.

Usage::

    python -m scripts.scrape_eu --query "led wall light"
    python -m scripts.scrape_eu --query "solar panel" --max-price 100 --countries DE,FR,PL
    python -m scripts.scrape_eu --stats
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections import Counter

from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.dependencies import get_eu_scraper, get_translation_store
from aliwarehouse.services.eu_scraper import (
    EU_WAREHOUSE_COUNTRIES,
    ScrapeOptions,
    save_scraped_products,
)
from scripts._cli import (
    EXIT_OK,
    EXIT_RUNTIME_ERROR,
    EXIT_VALIDATION_ERROR,
    add_verbose_flag,
    bootstrap,
)


def _countries(value: str) -> tuple[str, ...]:
    codes = tuple(code.strip().upper() for code in value.split(",") if code.strip())
    invalid = [code for code in codes if code not in EU_WAREHOUSE_COUNTRIES]
    if invalid:
        raise argparse.ArgumentTypeError(f"Unsupported countries: {', '.join(invalid)}")
    return codes


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape EU warehouse products from AliExpress.")
    parser.add_argument("-q", "--query", help="Search query (required unless --stats).")
    parser.add_argument("-c", "--category", default=None)
    parser.add_argument("-p", "--max-pages", type=int, default=3)
    parser.add_argument("--min-price", type=float, default=None)
    parser.add_argument("--max-price", type=float, default=None)
    parser.add_argument("--countries", type=_countries, default=EU_WAREHOUSE_COUNTRIES)
    parser.add_argument("--dry-run", action="store_true", help="Show results without saving.")
    parser.add_argument("--stats", action="store_true", help="Show stored product statistics.")
    parser.add_argument("--debug", action="store_true", help="Save screenshots or raw HTML.")
    parser.add_argument("--no-headless", action="store_true", help="Show the browser window.")
    parser.add_argument(
        "--use-scraperapi", action="store_true", help="Fetch rendered pages through ScraperAPI."
    )
    parser.add_argument(
        "--use-proxy", action="store_true", help="Route the browser through the ScraperAPI proxy."
    )
    add_verbose_flag(parser)
    return parser


def _print_stats(store: TranslationStore) -> int:
    products = store.list_source_products()
    print(f"Stored products: {len(products)}")
    for label, counts in (
        ("By status", Counter(product.status for product in products)),
        ("By warehouse", Counter(product.ships_from or "?" for product in products)),
    ):
        print(f"{label}:")
        for key, count in counts.most_common():
            print(f"  {key}: {count}")
    return EXIT_OK


async def _run(args: argparse.Namespace) -> int:
    settings = bootstrap(args.verbose)
    store = get_translation_store()
    if args.stats:
        return _print_stats(store)

    options = ScrapeOptions(
        search_query=args.query,
        countries=args.countries,
        max_pages=args.max_pages,
        min_price=args.min_price,
        max_price=args.max_price,
        category=args.category,
        debug=args.debug,
        headless=settings.scraper.headless and not args.no_headless,
        use_scraper_api=args.use_scraperapi,
        use_proxy=args.use_proxy,
    )
    products, summary = await get_eu_scraper().scrape_eu(options)

    for product in products[:10]:
        print(f"  {product.aliexpress_product_id}  €{product.price:.2f}  {product.title[:60]}")
    if len(products) > 10:
        print(f"  ... and {len(products) - 10} more")

    if not args.dry_run and products:
        save_scraped_products(store, products, summary)

    print(
        f"Found: {summary.products_found}  Saved: {summary.products_saved}  "
        f"Duplicates: {summary.duplicates_skipped}  Duration: {summary.duration_ms / 1000:.1f}s"
    )
    for error in summary.errors:
        print(f"  error: {error}", file=sys.stderr)
    return EXIT_OK if summary.success else EXIT_RUNTIME_ERROR


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if not args.stats and not args.query:
        print("--query is required unless --stats is given.", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    return asyncio.run(_run(args))


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
