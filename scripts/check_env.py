"""Verify that the service configuration loads and report which integrations are usable.

Commands::

    # Validate settings and list configured integrations.
    python -m scripts.check_env check --env-file .env

    # Fail unless Shopify and DeepL are configured (e.g. before deploying webhooks).
    python -m scripts.check_env check --require shopify,deepl
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, Dict

from pydantic import ValidationError

from aliwarehouse.core.config import AppSettings, _load_env_file
from scripts._cli import (
    EXIT_OK,
    EXIT_RUNTIME_ERROR,
    EXIT_VALIDATION_ERROR,
)

INTEGRATION_CHECKS: Dict[str, Callable[[AppSettings], bool]] = {
    "aliexpress": lambda s: bool(s.aliexpress.app_key and s.aliexpress.app_secret),
    "token-encryption": lambda s: bool(s.aliexpress.token_encryption_secret),
    "shopify": lambda s: bool(s.shopify.store_domain and s.shopify.admin_token),
    "storefront": lambda s: bool(s.shopify.store_domain and s.shopify.storefront_token),
    "webhook-secret": lambda s: bool(s.shopify.webhook_secret),
    "deepl": lambda s: bool(s.translation.deepl_api_key),
    "openai": lambda s: bool(s.translation.openai_api_key),
    "scraperapi": lambda s: bool(s.scraper.scraper_api_key),
}


def _load_settings(env_file: Path) -> AppSettings:
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def integration_report(settings: AppSettings) -> Dict[str, bool]:
    return {name: check(settings) for name, check in INTEGRATION_CHECKS.items()}


def _check(settings: AppSettings, required: list[str]) -> int:
    report = integration_report(settings)
    for name, configured in report.items():
        print(f"  {'ok ' if configured else '-- '} {name}")

    unknown = [name for name in required if name not in report]
    if unknown:
        print(f"Unknown integrations: {', '.join(unknown)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    missing = [name for name in required if not report[name]]
    if missing:
        print(f"Required integrations not configured: {', '.join(missing)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    print("Configuration OK.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate settings and report which integrations are configured."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="Validate settings and list integrations.")
    check_parser.add_argument(
        "--require",
        default="",
        help=f"Comma-separated integrations that must be configured ({', '.join(INTEGRATION_CHECKS)}).",
    )
    check_parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    try:
        settings = _load_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    required = [name.strip() for name in args.require.split(",") if name.strip()]
    return _check(settings, required)


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
