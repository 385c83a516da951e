"""Manage the AliExpress seller authorization from the command line.

Usage::

    python -m scripts.aliexpress_auth url        # print the consent URL
    python -m scripts.aliexpress_auth exchange CODE
    python -m scripts.aliexpress_auth status
    python -m scripts.aliexpress_auth refresh
    python -m scripts.aliexpress_auth test       # call an unauthenticated API method
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from aliwarehouse.clients.aliexpress_auth import (
    AuthorizationRequiredError,
    OAuthTokenExchangeError,
)
from aliwarehouse.dependencies import get_aliexpress_client, get_aliexpress_token_service
from aliwarehouse.services.token_store import TokenStoreError
from scripts._cli import EXIT_OK, EXIT_RUNTIME_ERROR, add_verbose_flag, bootstrap


def _print_status() -> int:
    status = get_aliexpress_token_service().status()
    print(f"Authorized:          {status.authorized}")
    print(f"Access token valid:  {status.access_token_valid}")
    print(f"Refresh token valid: {status.refresh_token_valid}")
    if status.expires_in:
        print(f"Expires in:          {status.expires_in}")
    if status.user_id:
        print(f"User id:             {status.user_id}")
    return EXIT_OK if status.authorized else EXIT_RUNTIME_ERROR


async def _exchange(code: str) -> int:
    record = await get_aliexpress_token_service().authorize(code)
    print(f"Authorization stored (user {record.user_id or '-'}).")
    return EXIT_OK


async def _refresh() -> int:
    await get_aliexpress_token_service().refresh()
    print("Tokens refreshed.")
    return EXIT_OK


async def _test() -> int:
    ok, message = await get_aliexpress_client().test_connection()
    print(message)
    return EXIT_OK if ok else EXIT_RUNTIME_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AliExpress OAuth helper.")
    add_verbose_flag(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("url", help="Print the seller consent URL.")
    subparsers.add_parser("status", help="Show the stored token status.")
    exchange = subparsers.add_parser("exchange", help="Exchange an authorization code.")
    exchange.add_argument("code")
    subparsers.add_parser("refresh", help="Force a token refresh.")
    subparsers.add_parser("test", help="Check the app credentials against the API.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    bootstrap(args.verbose)

    if args.command == "url":
        print(get_aliexpress_token_service().authorization_url())
        return EXIT_OK
    if args.command == "status":
        return _print_status()

    commands = {
        "exchange": lambda: _exchange(args.code),
        "refresh": _refresh,
        "test": _test,
    }
    try:
        return asyncio.run(commands[args.command]())
    except (AuthorizationRequiredError, OAuthTokenExchangeError, TokenStoreError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
