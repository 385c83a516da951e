"""Re-enrich products flagged by the translation audit.

Usage::

    python -m scripts.fix_translations [--dry-run] [--limit N] [--handle HANDLE]
                                       [--missing-only | --broken-only]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from aliwarehouse.dependencies import get_enrichment_service
from aliwarehouse.services.translation_audit import AuditReport
from aliwarehouse.services.translation_enrichment import select_handles
from scripts._cli import (
    EXIT_OK,
    EXIT_RUNTIME_ERROR,
    EXIT_VALIDATION_ERROR,
    add_verbose_flag,
    bootstrap,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fix missing or broken translations.")
    parser.add_argument("--report", type=Path, default=Path("audit-results.json"))
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--handle", default=None, help="Process a single product handle.")
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--missing-only", action="store_true")
    scope.add_argument("--broken-only", action="store_true")
    add_verbose_flag(parser)
    return parser


def _load_report(path: Path) -> AuditReport | None:
    try:
        return AuditReport.load(path)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, KeyError, TypeError) as exc:
        raise ValueError(f"Audit report {path} is invalid: {exc}") from exc


async def _run(args: argparse.Namespace) -> int:
    report = None
    if not args.handle:
        try:
            report = _load_report(args.report)
        except ValueError as exc:
            print(str(exc), file=sys.stderr)
            return EXIT_VALIDATION_ERROR
        if report is None:
            print(
                f"{args.report} not found. Run python -m scripts.audit_translations first.",
                file=sys.stderr,
            )
            return EXIT_RUNTIME_ERROR

    handles = select_handles(
        report,
        handle=args.handle,
        missing_only=args.missing_only,
        broken_only=args.broken_only,
        limit=args.limit,
    )
    if not handles:
        print("No products need fixing.")
        return EXIT_OK

    try:
        service = get_enrichment_service()
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    summary = await service.run(handles, dry_run=args.dry_run)
    print(
        f"Processed: {summary.processed}  Failed: {summary.failed}  "
        f"Locales written: {summary.total_locales}"
    )
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    bootstrap(args.verbose)
    return asyncio.run(_run(args))


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
