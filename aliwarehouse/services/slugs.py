"""
Slug generation and localized product route resolution.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Awaitable, Callable, Dict, Optional

from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.core.locales import localized_path
from aliwarehouse.schemas.translations import RouteResolution

MAX_SLUG_LENGTH = 80
MAX_WEBHOOK_SLUG_LENGTH = 50

_CYRILLIC: Dict[str, str] = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e", "ё": "yo", "ж": "zh",
    "з": "z", "и": "i", "й": "y", "к": "k", "л": "l", "м": "m", "н": "n", "о": "o",
    "п": "p", "р": "r", "с": "s", "т": "t", "у": "u", "ф": "f", "х": "h", "ц": "ts",
    "ч": "ch", "ш": "sh", "щ": "sch", "ъ": "", "ы": "y", "ь": "", "э": "e", "ю": "yu",
    "я": "ya", "є": "ye", "і": "i", "ї": "yi", "ґ": "g",
}
_BULGARIAN: Dict[str, str] = {**_CYRILLIC, "щ": "sht", "ъ": "a", "ь": "y"}
_GREEK: Dict[str, str] = {
    "α": "a", "β": "v", "γ": "g", "δ": "d", "ε": "e", "ζ": "z", "η": "i", "θ": "th",
    "ι": "i", "κ": "k", "λ": "l", "μ": "m", "ν": "n", "ξ": "x", "ο": "o", "π": "p",
    "ρ": "r", "σ": "s", "ς": "s", "τ": "t", "υ": "y", "φ": "f", "χ": "ch", "ψ": "ps",
    "ω": "o",
}
_TRANSLITERATION = {"ru": _CYRILLIC, "bg": _BULGARIAN, "el": _GREEK}

_PRODUCT_ID_DIGITS = re.compile(r"(\d+)$")


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def transliterate(text: str, locale: str) -> str:
    """Lowercase ``text`` and romanize Cyrillic or Greek scripts for ru, bg and el."""
    lowered = text.lower()
    table = _TRANSLITERATION.get(locale)
    if not table:
        return lowered
    # Greek accents must go before the lookup so accented vowels still match.
    if locale == "el":
        lowered = _strip_accents(lowered)
    return "".join(table.get(ch, ch) for ch in lowered)


def generate_slug(title: str, locale: str, product_id: Optional[str] = None) -> str:
    """Build a URL slug, optionally suffixed with the last six digits of the product id."""
    slug = _strip_accents(transliterate(title, locale))
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")
    slug = slug[:MAX_SLUG_LENGTH].rstrip("-")

    if product_id:
        match = _PRODUCT_ID_DIGITS.search(product_id)
        suffix = match.group(1)[-6:] if match else product_id[-6:]
        slug = f"{slug}-{suffix}" if slug else suffix
    return slug


def webhook_slug(title: str) -> str:
    """Short slug form used for webhook-driven translations."""
    slug = _strip_accents(title.lower())
    slug = re.sub(r"[^a-z0-9]+", "-", slug).strip("-")
    return slug[:MAX_WEBHOOK_SLUG_LENGTH]


HandleExists = Callable[[str], Awaitable[bool]]


async def resolve_product_route(
    store: TranslationStore,
    slug_or_handle: str,
    locale: str,
    *,
    handle_exists: Optional[HandleExists] = None,
) -> RouteResolution:
    """Resolve a requested product URL segment to a canonical localized route.

    Lookup order: slug in the requested locale, slug in any other locale
    (redirecting to this locale's slug), then the value as a Shopify handle
    (redirecting when a localized slug exists). ``handle_exists`` lets the
    caller confirm untranslated handles against the catalog.
    """
    translation = store.get_translation_by_slug(slug_or_handle, locale)
    if translation is not None:
        return RouteResolution(
            kind="found",
            locale=locale,
            shopify_handle=translation.shopify_handle,
            slug=translation.slug,
            path=localized_path("products", locale, translation.slug),
        )

    match = store.find_slug_in_any_locale(slug_or_handle, locale)
    if match is not None and match.target_slug != slug_or_handle:
        return RouteResolution(
            kind="redirect",
            locale=locale,
            shopify_handle=match.shopify_handle,
            slug=match.target_slug,
            path=localized_path("products", locale, match.target_slug),
        )

    by_handle = store.get_translation(slug_or_handle, locale)
    if by_handle is not None:
        if by_handle.slug and by_handle.slug != slug_or_handle:
            return RouteResolution(
                kind="redirect",
                locale=locale,
                shopify_handle=slug_or_handle,
                slug=by_handle.slug,
                path=localized_path("products", locale, by_handle.slug),
            )
        return RouteResolution(
            kind="found",
            locale=locale,
            shopify_handle=slug_or_handle,
            slug=by_handle.slug,
            path=localized_path("products", locale, by_handle.slug),
        )

    mapped = store.get_shopify_handle_from_slug(slug_or_handle, locale)
    if mapped is not None:
        return RouteResolution(
            kind="found",
            locale=locale,
            shopify_handle=mapped,
            slug=slug_or_handle,
            path=localized_path("products", locale, slug_or_handle),
        )

    if handle_exists is not None and await handle_exists(slug_or_handle):
        return RouteResolution(
            kind="found",
            locale=locale,
            shopify_handle=slug_or_handle,
            slug=slug_or_handle,
            path=localized_path("products", locale, slug_or_handle),
        )

    return RouteResolution(kind="not_found", locale=locale)


__all__ = [
    "MAX_SLUG_LENGTH",
    "MAX_WEBHOOK_SLUG_LENGTH",
    "generate_slug",
    "resolve_product_route",
    "transliterate",
    "webhook_slug",
]
