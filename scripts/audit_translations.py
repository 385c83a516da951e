"""Audit stored translations and write ``audit-results.json`` for the fix script.

Usage::

    python -m scripts.audit_translations [--output audit-results.json] [--skip-shopify]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from aliwarehouse.clients.shopify import ShopifyError
from aliwarehouse.dependencies import get_shopify_client, get_translation_store
from aliwarehouse.services.translation_audit import AuditReport, audit_translations, build_report
from scripts._cli import EXIT_OK, EXIT_RUNTIME_ERROR, add_verbose_flag, bootstrap

DEFAULT_REPORT_PATH = Path("audit-results.json")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Audit product translations.")
    parser.add_argument("--output", type=Path, default=DEFAULT_REPORT_PATH)
    parser.add_argument(
        "--skip-shopify",
        action="store_true",
        help="Do not list Shopify products; missing translations will not be reported.",
    )
    add_verbose_flag(parser)
    return parser


def _print_report(report: AuditReport) -> None:
    summary = report.summary
    print("Translation audit")
    print(f"  Products in Shopify:      {summary.total_in_shopify}")
    print(f"  With translations:        {summary.with_translations}")
    print(f"  Properly translated:      {summary.properly_translated}")
    print(f"  Wrong language:           {summary.wrong_language}")
    print(f"  Partial:                  {summary.partial}")
    print(f"  Missing translations:     {summary.missing}")
    print(f"  Need re-enrichment:       {len(report.needs_re_enrichment)}")


async def _run(args: argparse.Namespace) -> int:
    results = audit_translations(get_translation_store().list_translation_records())

    handles: list[str] = []
    shopify = None if args.skip_shopify else get_shopify_client()
    if shopify is not None:
        try:
            handles = await shopify.list_product_handles()
        except ShopifyError as exc:
            print(f"Could not list Shopify products: {exc}", file=sys.stderr)
            return EXIT_RUNTIME_ERROR

    report = build_report(results, handles)
    report.write(args.output)
    _print_report(report)
    print(f"Results saved to {args.output}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    bootstrap(args.verbose)
    return asyncio.run(_run(args))


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
