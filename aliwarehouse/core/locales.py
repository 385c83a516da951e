"""
Locale tables for the storefront: supported locales, language names, DeepL
language codes, and localized URL path segments.
"""

from __future__ import annotations

PRIORITY_LOCALES: tuple[str, ...] = ("en", "de", "et", "fr", "ru", "pt")

ALL_LOCALES: tuple[str, ...] = (
    "en", "de", "et", "fr", "ru", "pt",
    "es", "it", "nl", "pl", "cs", "sk",
    "hu", "ro", "bg", "el", "sv", "da",
    "fi", "lt", "lv", "sl", "hr", "mt",
)

DEFAULT_LOCALE = "en"

# English language names, used in translation prompts.
LANGUAGE_NAMES: dict[str, str] = {
    "en": "English", "de": "German", "et": "Estonian", "fr": "French",
    "ru": "Russian", "pt": "Portuguese", "es": "Spanish", "it": "Italian",
    "nl": "Dutch", "pl": "Polish", "cs": "Czech", "sk": "Slovak",
    "hu": "Hungarian", "ro": "Romanian", "bg": "Bulgarian", "el": "Greek",
    "sv": "Swedish", "da": "Danish", "fi": "Finnish", "lt": "Lithuanian",
    "lv": "Latvian", "sl": "Slovenian", "hr": "Croatian", "mt": "Maltese",
}

LOCALE_TO_DEEPL: dict[str, str] = {
    "en": "EN",
    "de": "DE",
    "et": "ET",
    "fr": "FR",
    "ru": "RU",
    "pt": "PT-PT",
}

DEEPL_TO_LOCALE: dict[str, str] = {code: locale for locale, code in LOCALE_TO_DEEPL.items()}

LOCALIZED_PATHS: dict[str, dict[str, str]] = {
    "products": {
        "en": "products", "de": "produkte", "et": "tooted", "fr": "produits",
        "ru": "produkty", "pt": "produtos", "es": "productos", "it": "prodotti",
        "nl": "producten", "pl": "produkty", "cs": "produkty", "sk": "produkty",
        "hu": "termekek", "ro": "produse", "bg": "produkti", "el": "proionta",
        "sv": "produkter", "da": "produkter", "fi": "tuotteet", "lt": "produktai",
        "lv": "produkti", "sl": "izdelki", "hr": "proizvodi", "mt": "prodotti",
    },
    "collections": {
        "en": "collections", "de": "kollektionen", "et": "kollektsioonid",
        "fr": "collections", "ru": "kollektsii", "pt": "colecoes",
        "es": "colecciones", "it": "collezioni", "nl": "collecties",
        "pl": "kolekcje", "cs": "kolekce", "sk": "kolekcie", "hu": "kollekcio",
        "ro": "colectii", "bg": "kolektsii", "el": "sylloges",
        "sv": "kollektioner", "da": "kollektioner", "fi": "kokoelmat",
        "lt": "kolekcijos", "lv": "kolekcijas", "sl": "kolekcije",
        "hr": "kolekcije", "mt": "kollezzjonijiet",
    },
    "cart": {
        "en": "cart", "de": "warenkorb", "et": "ostukorv", "fr": "panier",
        "ru": "korzina", "pt": "carrinho", "es": "carrito", "it": "carrello",
        "nl": "winkelwagen", "pl": "koszyk", "cs": "kosik", "sk": "kosik",
        "hu": "kosar", "ro": "cos", "bg": "koshnitsa", "el": "kalathi",
        "sv": "varukorg", "da": "kurv", "fi": "ostoskori", "lt": "krepselis",
        "lv": "grozs", "sl": "kosarica", "hr": "kosarica", "mt": "kartell",
    },
}


def is_supported_locale(locale: str) -> bool:
    return locale in ALL_LOCALES


def localized_segment(section: str, locale: str) -> str:
    """Return the URL segment for ``section`` in ``locale``, falling back to English."""
    paths = LOCALIZED_PATHS[section]
    return paths.get(locale, paths[DEFAULT_LOCALE])


def localized_path(section: str, locale: str, slug: str | None = None) -> str:
    """Build a storefront path; the default locale carries no prefix."""
    parts = [localized_segment(section, locale)]
    if slug:
        parts.append(slug)
    prefix = "" if locale == DEFAULT_LOCALE else f"/{locale}"
    return f"{prefix}/" + "/".join(parts)


__all__ = [
    "ALL_LOCALES",
    "DEEPL_TO_LOCALE",
    "DEFAULT_LOCALE",
    "LANGUAGE_NAMES",
    "LOCALE_TO_DEEPL",
    "LOCALIZED_PATHS",
    "PRIORITY_LOCALES",
    "is_supported_locale",
    "localized_path",
    "localized_segment",
]
