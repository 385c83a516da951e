try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.schemas.products import ApiSyncUpdate, SourceProductInput
from aliwarehouse.schemas.translations import (
    ProductSpecifications,
    ProductTranslationInput,
    SlugMapping,
)


class SteppingClock:
    def __init__(self) -> None:
        self.current = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


@pytest.fixture()
def store(tmp_path: Path) -> TranslationStore:
    return TranslationStore(str(tmp_path / "db" / "translations.db"), now=SteppingClock())


def _translation(locale: str = "de", slug: str = "tischlampe-001234", **overrides) -> ProductTranslationInput:
    values = {
        "shopify_product_id": "gid://shopify/Product/1001234",
        "shopify_handle": "desk-lamp",
        "locale": locale,
        "title": "Tischlampe",
        "slug": slug,
        "translation_source": "deepl",
    }
    values.update(overrides)
    return ProductTranslationInput(**values)


def test_upsert_is_idempotent_and_keeps_created_at(store: TranslationStore) -> None:
    first = store.upsert_translation(_translation())
    second = store.upsert_translation(_translation(title="Schreibtischlampe"))

    assert second.id == first.id
    assert second.title == "Schreibtischlampe"
    assert second.created_at == first.created_at
    assert second.updated_at > first.updated_at
    assert len(store.list_translation_records()) == 1


def test_specifications_roundtrip(store: TranslationStore) -> None:
    stored = store.upsert_translation(
        _translation(specifications=ProductSpecifications(material="Metal"), image_analyzed=True)
    )

    assert stored.specifications == ProductSpecifications(material="Metal")
    assert stored.image_analyzed is True


def test_slug_lookups(store: TranslationStore) -> None:
    store.upsert_translation(_translation("de", "tischlampe-001234"))
    store.upsert_translation(_translation("fr", "lampe-de-bureau-001234", title="Lampe"))

    assert store.get_translation_by_slug("tischlampe-001234", "de").locale == "de"
    assert store.get_translation_by_slug("tischlampe-001234", "fr") is None
    assert store.get_translation_by_slug("unknown", "de") is None

    match = store.find_slug_in_any_locale("tischlampe-001234", "fr")
    assert match is not None
    assert match.shopify_handle == "desk-lamp"
    assert match.target_slug == "lampe-de-bureau-001234"
    assert store.find_slug_in_any_locale("tischlampe-001234", "it") is None

    by_handle = store.get_translations_for_products(["desk-lamp", "other"], "fr")
    assert list(by_handle) == ["desk-lamp"]
    assert [t.locale for t in store.get_product_translations("desk-lamp")] == ["de", "fr"]


def test_delete_product_removes_translations_and_mappings(store: TranslationStore) -> None:
    store.upsert_translation(_translation("de"))
    store.upsert_translation(_translation("fr", "lampe-001234"))
    store.upsert_slug_mapping(
        SlugMapping(shopify_handle="desk-lamp", locale="de", localized_slug="tischlampe")
    )

    deleted = store.delete_product("gid://shopify/Product/1001234", handle="desk-lamp")

    assert deleted == 2
    assert store.get_product_translations("desk-lamp") == []
    assert store.get_all_slug_mappings() == []


def test_slug_mapping_upsert_replaces_slug(store: TranslationStore) -> None:
    store.upsert_slug_mapping(SlugMapping(shopify_handle="lamp", locale="de", localized_slug="alt"))
    store.upsert_slug_mapping(SlugMapping(shopify_handle="lamp", locale="de", localized_slug="neu"))

    assert store.get_shopify_handle_from_slug("neu", "de") == "lamp"
    assert store.get_shopify_handle_from_slug("alt", "de") is None
    assert len(store.get_all_slug_mappings()) == 1


def test_source_products_lifecycle(store: TranslationStore) -> None:
    saved, errors = store.upsert_source_products(
        [
            SourceProductInput(aliexpress_product_id="100", title="Lamp", is_eu_warehouse=True),
            SourceProductInput(aliexpress_product_id="200", title="Chair"),
        ]
    )
    assert (saved, errors) == (2, [])

    store.update_status("100", "imported", shopify_product_id="gid://shopify/Product/9")
    store.update_api_sync(
        "200",
        ApiSyncUpdate(
            description="Sturdy chair",
            api_images=["https://img/1.jpg"],
            api_price=19.5,
            api_fetched_at=datetime(2024, 2, 1, tzinfo=timezone.utc),
            api_country_tested="FR",
        ),
    )

    imported = store.get_source_product("100")
    assert imported.status == "imported"
    assert imported.shopify_product_id == "gid://shopify/Product/9"
    assert imported.is_eu_warehouse is True

    synced = store.get_source_product("200")
    assert synced.description == "Sturdy chair"
    assert synced.api_images == ["https://img/1.jpg"]
    assert synced.api_country_tested == "FR"

    assert [p.aliexpress_product_id for p in store.list_source_products(status="pending")] == ["200"]
    assert [p.aliexpress_product_id for p in store.list_source_products(only_unfetched=True)] == ["100"]
    assert store.get_source_product("missing") is None

    store.upsert_source_products([SourceProductInput(aliexpress_product_id="100", title="Lamp v2")])
    assert store.get_source_product("100").status == "pending"
