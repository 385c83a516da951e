"""SQLite-backed store for product translations, slug mappings and source products."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from aliwarehouse.schemas.products import (
    ApiSyncUpdate,
    ProductStatus,
    SourceProduct,
    SourceProductInput,
)
from aliwarehouse.schemas.translations import (
    ProductTranslation,
    ProductTranslationInput,
    SlugMapping,
    SlugMatch,
    translation_payload,
)

logger = logging.getLogger(__name__)

_TRANSLATION_COLUMNS = (
    "shopify_product_id",
    "shopify_handle",
    "locale",
    "title",
    "slug",
    "headline",
    "description",
    "description_enhanced",
    "seo_title",
    "seo_description",
    "original_title",
    "translation_source",
    "image_analyzed",
    "usage_description",
    "specifications",
    "product_size",
    "package_size",
    "weight",
    "package_contents",
    "origin_country",
    "shipping_info",
)

_SOURCE_COLUMNS = (
    "aliexpress_product_id",
    "aliexpress_url",
    "title",
    "description",
    "price",
    "original_price",
    "currency",
    "ships_from",
    "ships_from_display",
    "is_eu_warehouse",
    "main_image_url",
    "image_urls",
    "category",
    "search_query",
    "status",
)

_JSON_COLUMNS = ("specifications", "image_urls", "api_images")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TranslationStore:
    """Translation rows keyed by (product id, locale) and slug mappings keyed by (handle, locale)."""

    def __init__(self, db_path: str, *, now: Callable[[], datetime] = _utcnow) -> None:
        self._db_path = Path(db_path)
        self._now = now
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS product_translations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    shopify_product_id TEXT NOT NULL,
                    shopify_handle TEXT NOT NULL,
                    locale TEXT NOT NULL,
                    title TEXT NOT NULL,
                    slug TEXT NOT NULL,
                    headline TEXT,
                    description TEXT,
                    description_enhanced TEXT,
                    seo_title TEXT,
                    seo_description TEXT,
                    original_title TEXT,
                    translation_source TEXT NOT NULL,
                    image_analyzed INTEGER NOT NULL DEFAULT 0,
                    usage_description TEXT,
                    specifications TEXT,
                    product_size TEXT,
                    package_size TEXT,
                    weight TEXT,
                    package_contents TEXT,
                    origin_country TEXT,
                    shipping_info TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (shopify_product_id, locale)
                );
                CREATE INDEX IF NOT EXISTS idx_translations_handle
                    ON product_translations (shopify_handle, locale);
                CREATE INDEX IF NOT EXISTS idx_translations_slug
                    ON product_translations (slug, locale);

                CREATE TABLE IF NOT EXISTS product_slug_mappings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    shopify_handle TEXT NOT NULL,
                    locale TEXT NOT NULL,
                    localized_slug TEXT NOT NULL,
                    UNIQUE (shopify_handle, locale)
                );

                CREATE TABLE IF NOT EXISTS aliexpress_products (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    aliexpress_product_id TEXT NOT NULL UNIQUE,
                    aliexpress_url TEXT,
                    title TEXT NOT NULL DEFAULT '',
                    description TEXT,
                    price REAL,
                    original_price REAL,
                    currency TEXT NOT NULL DEFAULT 'EUR',
                    ships_from TEXT,
                    ships_from_display TEXT,
                    is_eu_warehouse INTEGER NOT NULL DEFAULT 0,
                    main_image_url TEXT,
                    image_urls TEXT NOT NULL DEFAULT '[]',
                    category TEXT,
                    search_query TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    shopify_product_id TEXT,
                    api_images TEXT NOT NULL DEFAULT '[]',
                    api_price REAL,
                    api_sale_price REAL,
                    api_stock_quantity INTEGER,
                    api_fetched_at TEXT,
                    api_country_tested TEXT,
                    scraped_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )

    @staticmethod
    def _row_dict(row: sqlite3.Row) -> Dict[str, Any]:
        data = dict(row)
        for column in _JSON_COLUMNS:
            if column in data and isinstance(data[column], str):
                data[column] = json.loads(data[column])
        return data

    def _translation(self, row: Optional[sqlite3.Row]) -> Optional[ProductTranslation]:
        if row is None:
            return None
        try:
            return ProductTranslation.model_validate(self._row_dict(row))
        except ValidationError as exc:
            logger.warning("Skipping malformed translation row %s: %s", row["id"], exc)
            return None

    def _translations(self, rows: Iterable[sqlite3.Row]) -> List[ProductTranslation]:
        return [t for t in (self._translation(row) for row in rows) if t is not None]

    # Translations

    def get_translation(self, handle: str, locale: str) -> Optional[ProductTranslation]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM product_translations WHERE shopify_handle = ? AND locale = ?",
                (handle, locale),
            ).fetchone()
        return self._translation(row)

    def get_translation_by_slug(self, slug: str, locale: str) -> Optional[ProductTranslation]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM product_translations WHERE slug = ? AND locale = ?",
                (slug, locale),
            ).fetchone()
        return self._translation(row)

    def get_product_translations(self, handle: str) -> List[ProductTranslation]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM product_translations WHERE shopify_handle = ? ORDER BY locale",
                (handle,),
            ).fetchall()
        return self._translations(rows)

    def get_translations_for_products(
        self, handles: Sequence[str], locale: str
    ) -> Dict[str, ProductTranslation]:
        if not handles:
            return {}
        placeholders = ",".join("?" for _ in handles)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM product_translations "
                f"WHERE shopify_handle IN ({placeholders}) AND locale = ?",
                (*handles, locale),
            ).fetchall()
        return {t.shopify_handle: t for t in self._translations(rows)}

    def get_all_translations_for_locale(self, locale: str) -> List[ProductTranslation]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM product_translations WHERE locale = ? ORDER BY shopify_handle",
                (locale,),
            ).fetchall()
        return self._translations(rows)

    def list_translation_records(self) -> List[ProductTranslation]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM product_translations ORDER BY shopify_handle, locale"
            ).fetchall()
        return self._translations(rows)

    def find_slug_in_any_locale(self, slug: str, target_locale: str) -> Optional[SlugMatch]:
        """Find the handle owning ``slug`` in any locale and that handle's slug in ``target_locale``."""
        with self._connect() as conn:
            owner = conn.execute(
                "SELECT shopify_handle FROM product_translations WHERE slug = ? LIMIT 1",
                (slug,),
            ).fetchone()
            if owner is None:
                return None
            target = conn.execute(
                "SELECT slug FROM product_translations WHERE shopify_handle = ? AND locale = ?",
                (owner["shopify_handle"], target_locale),
            ).fetchone()
        if target is None:
            return None
        return SlugMatch(shopify_handle=owner["shopify_handle"], target_slug=target["slug"])

    def upsert_translation(self, record: ProductTranslationInput) -> ProductTranslation:
        payload = translation_payload(record)
        values = []
        for column in _TRANSLATION_COLUMNS:
            value = payload.get(column)
            if column == "specifications" and value is not None:
                value = json.dumps(value)
            elif column == "image_analyzed":
                value = int(bool(value))
            values.append(value)
        timestamp = self._now().isoformat()

        columns = ", ".join((*_TRANSLATION_COLUMNS, "created_at", "updated_at"))
        placeholders = ", ".join("?" for _ in range(len(_TRANSLATION_COLUMNS) + 2))
        updates = ", ".join(
            f"{column} = excluded.{column}"
            for column in (*_TRANSLATION_COLUMNS, "updated_at")
            if column not in ("shopify_product_id", "locale")
        )
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO product_translations ({columns})
                VALUES ({placeholders})
                ON CONFLICT(shopify_product_id, locale) DO UPDATE SET {updates}
                """,
                (*values, timestamp, timestamp),
            )
            row = conn.execute(
                "SELECT * FROM product_translations WHERE shopify_product_id = ? AND locale = ?",
                (record.shopify_product_id, record.locale),
            ).fetchone()
        stored = self._translation(row)
        if stored is None:
            raise RuntimeError(
                f"Failed to upsert translation for {record.shopify_product_id}/{record.locale}"
            )
        return stored

    def delete_product(self, shopify_product_id: str, handle: Optional[str] = None) -> int:
        """Remove every translation for a product and, when known, its slug mappings."""
        with self._connect() as conn:
            deleted = conn.execute(
                "DELETE FROM product_translations WHERE shopify_product_id = ?",
                (shopify_product_id,),
            ).rowcount
            if handle:
                conn.execute(
                    "DELETE FROM product_slug_mappings WHERE shopify_handle = ?",
                    (handle,),
                )
        return deleted

    # Slug mappings

    def get_shopify_handle_from_slug(self, slug: str, locale: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT shopify_handle FROM product_slug_mappings "
                "WHERE localized_slug = ? AND locale = ?",
                (slug, locale),
            ).fetchone()
        return row["shopify_handle"] if row else None

    def upsert_slug_mapping(self, mapping: SlugMapping) -> SlugMapping:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO product_slug_mappings (shopify_handle, locale, localized_slug)
                VALUES (?, ?, ?)
                ON CONFLICT(shopify_handle, locale)
                DO UPDATE SET localized_slug = excluded.localized_slug
                """,
                (mapping.shopify_handle, mapping.locale, mapping.localized_slug),
            )
        return mapping

    def get_all_slug_mappings(self) -> List[SlugMapping]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT shopify_handle, locale, localized_slug FROM product_slug_mappings "
                "ORDER BY shopify_handle, locale"
            ).fetchall()
        return [SlugMapping.model_validate(dict(row)) for row in rows]

    # Source products

    def upsert_source_products(
        self, products: Sequence[SourceProductInput]
    ) -> tuple[int, List[str]]:
        """Insert or refresh scraped products keyed by AliExpress product id."""
        saved = 0
        errors: List[str] = []
        timestamp = self._now().isoformat()
        columns = ", ".join((*_SOURCE_COLUMNS, "scraped_at", "created_at", "updated_at"))
        placeholders = ", ".join("?" for _ in range(len(_SOURCE_COLUMNS) + 3))
        updates = ", ".join(
            f"{column} = excluded.{column}"
            for column in (*_SOURCE_COLUMNS, "scraped_at", "updated_at")
            if column != "aliexpress_product_id"
        )
        with self._connect() as conn:
            for product in products:
                payload = product.model_dump()
                payload["image_urls"] = json.dumps(payload["image_urls"])
                payload["is_eu_warehouse"] = int(payload["is_eu_warehouse"])
                try:
                    conn.execute(
                        f"""
                        INSERT INTO aliexpress_products ({columns})
                        VALUES ({placeholders})
                        ON CONFLICT(aliexpress_product_id) DO UPDATE SET {updates}
                        """,
                        (
                            *(payload[column] for column in _SOURCE_COLUMNS),
                            timestamp,
                            timestamp,
                            timestamp,
                        ),
                    )
                    saved += 1
                except sqlite3.Error as exc:
                    errors.append(f"{product.aliexpress_product_id}: {exc}")
        return saved, errors

    def get_source_product(self, aliexpress_product_id: str) -> Optional[SourceProduct]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM aliexpress_products WHERE aliexpress_product_id = ?",
                (aliexpress_product_id,),
            ).fetchone()
        return SourceProduct.model_validate(self._row_dict(row)) if row else None

    def list_source_products(
        self,
        *,
        status: Optional[ProductStatus] = None,
        only_unfetched: bool = False,
        limit: Optional[int] = None,
    ) -> List[SourceProduct]:
        clauses: List[str] = []
        params: List[Any] = []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if only_unfetched:
            clauses.append("api_fetched_at IS NULL")
        query = "SELECT * FROM aliexpress_products"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY scraped_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [SourceProduct.model_validate(self._row_dict(row)) for row in rows]

    def update_api_sync(self, aliexpress_product_id: str, update: ApiSyncUpdate) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE aliexpress_products
                SET description = COALESCE(?, description),
                    api_images = ?,
                    api_price = ?,
                    api_sale_price = ?,
                    api_stock_quantity = ?,
                    api_fetched_at = ?,
                    api_country_tested = ?,
                    updated_at = ?
                WHERE aliexpress_product_id = ?
                """,
                (
                    update.description,
                    json.dumps(update.api_images),
                    update.api_price,
                    update.api_sale_price,
                    update.api_stock_quantity,
                    update.api_fetched_at.isoformat(),
                    update.api_country_tested,
                    self._now().isoformat(),
                    aliexpress_product_id,
                ),
            )

    def update_status(
        self,
        aliexpress_product_id: str,
        status: ProductStatus,
        shopify_product_id: Optional[str] = None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE aliexpress_products
                SET status = ?,
                    shopify_product_id = COALESCE(?, shopify_product_id),
                    updated_at = ?
                WHERE aliexpress_product_id = ?
                """,
                (status, shopify_product_id, self._now().isoformat(), aliexpress_product_id),
            )


__all__ = ["TranslationStore"]
