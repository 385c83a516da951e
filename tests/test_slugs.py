try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest

from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.core.locales import localized_path
from aliwarehouse.schemas.translations import ProductTranslationInput, SlugMapping
from aliwarehouse.services.slugs import (
    MAX_SLUG_LENGTH,
    generate_slug,
    resolve_product_route,
    transliterate,
    webhook_slug,
)


@pytest.mark.parametrize(
    "title, locale, expected",
    [
        ("Настольная лампа", "ru", "nastolnaya lampa"),
        ("Щётка", "bg", "shtyotka"),
        ("Λάμπα γραφείου", "el", "lampa grafeioy"),
        ("Schöne Lampe", "de", "schöne lampe"),
    ],
)
def test_transliterate(title: str, locale: str, expected: str) -> None:
    assert transliterate(title, locale) == expected


def test_generate_slug_strips_accents_and_appends_product_digits() -> None:
    slug = generate_slug("Schöne  Lampe -- für den Schreibtisch!", "de", "gid://shopify/Product/987654321")
    assert slug == "schone-lampe-fur-den-schreibtisch-654321"


def test_generate_slug_is_bounded_and_trimmed() -> None:
    slug = generate_slug("word " * 40, "en")
    assert len(slug) <= MAX_SLUG_LENGTH
    assert not slug.endswith("-")


def test_generate_slug_without_usable_title_falls_back_to_id() -> None:
    assert generate_slug("!!!", "en", "123") == "123"


def test_webhook_slug() -> None:
    assert webhook_slug("Café Table & Chairs") == "cafe-table-chairs"
    assert len(webhook_slug("x" * 80)) == 50


def test_localized_path() -> None:
    assert localized_path("products", "en", "lamp") == "/products/lamp"
    assert localized_path("products", "de", "lampe") == "/de/produkte/lampe"
    assert localized_path("cart", "xx") == "/xx/cart"


@pytest.fixture()
def store(tmp_path: Path) -> TranslationStore:
    store = TranslationStore(str(tmp_path / "translations.db"))
    for locale, slug in (("de", "tischlampe-1"), ("fr", "lampe-bureau-1")):
        store.upsert_translation(
            ProductTranslationInput(
                shopify_product_id="gid://shopify/Product/1",
                shopify_handle="desk-lamp",
                locale=locale,
                title=slug,
                slug=slug,
            )
        )
    return store


@pytest.mark.anyio
async def test_route_found_by_slug(store: TranslationStore) -> None:
    route = await resolve_product_route(store, "tischlampe-1", "de")
    assert route.kind == "found"
    assert route.shopify_handle == "desk-lamp"
    assert route.path == "/de/produkte/tischlampe-1"


@pytest.mark.anyio
async def test_route_redirects_foreign_slug_to_locale_slug(store: TranslationStore) -> None:
    route = await resolve_product_route(store, "lampe-bureau-1", "de")
    assert route.kind == "redirect"
    assert route.slug == "tischlampe-1"


@pytest.mark.anyio
async def test_route_redirects_handle_to_localized_slug(store: TranslationStore) -> None:
    route = await resolve_product_route(store, "desk-lamp", "fr")
    assert route.kind == "redirect"
    assert route.path == "/fr/produits/lampe-bureau-1"


@pytest.mark.anyio
async def test_route_uses_slug_mapping(store: TranslationStore) -> None:
    store.upsert_slug_mapping(SlugMapping(shopify_handle="chair", locale="de", localized_slug="stuhl"))
    route = await resolve_product_route(store, "stuhl", "de")
    assert route.kind == "found"
    assert route.shopify_handle == "chair"


@pytest.mark.anyio
async def test_route_checks_catalog_for_untranslated_handle(store: TranslationStore) -> None:
    seen = []

    async def handle_exists(handle: str) -> bool:
        seen.append(handle)
        return handle == "sofa"

    found = await resolve_product_route(store, "sofa", "it", handle_exists=handle_exists)
    missing = await resolve_product_route(store, "nothing", "it", handle_exists=handle_exists)

    assert found.kind == "found"
    assert found.path == "/it/prodotti/sofa"
    assert missing.kind == "not_found"
    assert seen == ["sofa", "nothing"]


@pytest.mark.anyio
async def test_unknown_slug_without_catalog_is_not_found(store: TranslationStore) -> None:
    route = await resolve_product_route(store, "unknown", "de")
    assert route.kind == "not_found"
    assert route.path is None
