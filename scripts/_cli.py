"""Shared exit codes and bootstrap helpers for the operator scripts."""

from __future__ import annotations

import argparse

from aliwarehouse.core.config import AppSettings, get_settings
from aliwarehouse.core.logging import configure_logging

EXIT_OK = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VALIDATION_ERROR = 2


def add_verbose_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")


def bootstrap(verbose: bool = False) -> AppSettings:
    """Load settings and configure logging the same way the API does."""
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level)
    return settings


__all__ = [
    "EXIT_OK",
    "EXIT_RUNTIME_ERROR",
    "EXIT_VALIDATION_ERROR",
    "add_verbose_flag",
    "bootstrap",
]
