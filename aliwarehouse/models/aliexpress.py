"""
Partial schema for `aliexpress.ds.product.get` responses plus the extraction
helpers that turn them into prices, stock, images and variants.

Every field is optional and unknown keys are ignored: the vendor omits or
renames nested objects freely, so parsing must tolerate partial payloads.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

EU_WAREHOUSE_NAMES: tuple[str, ...] = (
    "spain", "es", "poland", "pl", "germany", "de", "france", "fr",
    "italy", "it", "netherlands", "nl", "belgium", "be", "czech", "cz",
    "austria", "at", "portugal", "pt",
)

SHIPS_FROM_PROPERTY = "Ships From"

NumberLike = Union[int, float, str]

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound="_VendorModel")


class _VendorModel(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class SkuProperty(_VendorModel):
    sku_property_id: Optional[NumberLike] = None
    sku_property_name: Optional[str] = None
    sku_property_value: Optional[str] = None
    property_value_id: Optional[NumberLike] = None
    property_value_definition_name: Optional[str] = None
    sku_image: Optional[str] = None


class SkuPropertyList(_VendorModel):
    ae_sku_property_d_t_o: List[SkuProperty] = Field(default_factory=list)


class SkuInfo(_VendorModel):
    sku_id: Optional[NumberLike] = None
    id: Optional[str] = None
    sku_price: Optional[NumberLike] = None
    offer_sale_price: Optional[NumberLike] = None
    offer_bulk_sale_price: Optional[NumberLike] = None
    sku_stock: Optional[bool] = None
    sku_available_stock: Optional[int] = None
    sku_attr: Optional[str] = None
    ae_sku_property_dtos: Optional[SkuPropertyList] = None

    @property
    def properties(self) -> List[SkuProperty]:
        if self.ae_sku_property_dtos is None:
            return []
        return self.ae_sku_property_dtos.ae_sku_property_d_t_o


class SkuInfoList(_VendorModel):
    ae_item_sku_info_d_t_o: List[SkuInfo] = Field(default_factory=list)


class BaseInfo(_VendorModel):
    product_id: Optional[NumberLike] = None
    category_id: Optional[NumberLike] = None
    subject: Optional[str] = None
    currency_code: Optional[str] = None
    product_status_type: Optional[str] = None
    ws_display: Optional[str] = None
    detail: Optional[str] = None
    mobile_detail: Optional[str] = None


class Video(_VendorModel):
    poster_url: Optional[str] = None
    media_url: Optional[str] = None


class VideoList(_VendorModel):
    ae_video_d_t_o: List[Video] = Field(default_factory=list)


class MultimediaInfo(_VendorModel):
    image_urls: Optional[str] = None
    ae_video_dtos: Optional[VideoList] = None


class StoreInfo(_VendorModel):
    store_id: Optional[NumberLike] = None
    store_name: Optional[str] = None
    store_url: Optional[str] = None


class PackageInfo(_VendorModel):
    package_height: Optional[NumberLike] = None
    package_length: Optional[NumberLike] = None
    package_width: Optional[NumberLike] = None
    gross_weight: Optional[NumberLike] = None
    package_type: Optional[bool] = None
    base_unit: Optional[NumberLike] = None
    product_unit: Optional[NumberLike] = None


class ProductResult(_VendorModel):
    ae_item_base_info_dto: Optional[BaseInfo] = None
    ae_item_sku_info_dtos: Optional[SkuInfoList] = None
    ae_multimedia_info_dto: Optional[MultimediaInfo] = None
    ae_store_info: Optional[StoreInfo] = None
    package_info_dto: Optional[PackageInfo] = None

    @property
    def skus(self) -> List[SkuInfo]:
        if self.ae_item_sku_info_dtos is None:
            return []
        return self.ae_item_sku_info_dtos.ae_item_sku_info_d_t_o


def _validate_section(model: type[_M], raw: Any, name: str) -> Optional[_M]:
    if raw is None:
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Dropping unparseable %s: %s", name, exc)
        return None


def _parse_skus(raw: Any) -> Optional[SkuInfoList]:
    if not isinstance(raw, dict):
        return None
    entries = raw.get("ae_item_sku_info_d_t_o") or []
    if isinstance(entries, dict):
        entries = [entries]
    skus: List[SkuInfo] = []
    for entry in entries:
        sku = _validate_section(SkuInfo, entry, "SKU entry")
        if sku is not None:
            skus.append(sku)
    return SkuInfoList(ae_item_sku_info_d_t_o=skus)


def parse_product_result(payload: Any) -> ProductResult:
    """Return the nested product result, or an empty one when the shape is unusable.

    Sections and SKU entries are validated one by one so a single malformed
    entry only drops itself.
    """
    if not isinstance(payload, dict):
        return ProductResult()
    response = payload.get("aliexpress_ds_product_get_response")
    result = response.get("result") if isinstance(response, dict) else None
    if not isinstance(result, dict):
        return ProductResult()
    return ProductResult(
        ae_item_base_info_dto=_validate_section(
            BaseInfo, result.get("ae_item_base_info_dto"), "base info"
        ),
        ae_item_sku_info_dtos=_parse_skus(result.get("ae_item_sku_info_dtos")),
        ae_multimedia_info_dto=_validate_section(
            MultimediaInfo, result.get("ae_multimedia_info_dto"), "multimedia info"
        ),
        ae_store_info=_validate_section(StoreInfo, result.get("ae_store_info"), "store info"),
        package_info_dto=_validate_section(
            PackageInfo, result.get("package_info_dto"), "package info"
        ),
    )


def _to_float(value: Optional[NumberLike]) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass(slots=True)
class ParsedVariant:
    sku_id: str
    options: Dict[str, str]
    ships_from: str
    is_eu: bool
    price: float
    sale_price: float
    stock: int
    image: Optional[str] = None


@dataclass(slots=True)
class ProductDetails:
    title: str
    images: List[str]
    description: str
    price: float
    sale_price: Optional[float]
    stock: int
    weight: str
    variants: List[ParsedVariant] = field(default_factory=list)


def extract_images(result: ProductResult) -> List[str]:
    media = result.ae_multimedia_info_dto
    if media is None or not media.image_urls:
        return []
    return [url for url in media.image_urls.split(";") if url]


def extract_stock(result: ProductResult) -> int:
    return sum(sku.sku_available_stock or 0 for sku in result.skus)


def extract_prices(result: ProductResult) -> tuple[float, Optional[float]]:
    """Return ``(min positive SKU price, min positive offer price or None)``."""
    prices = [p for p in (_to_float(sku.sku_price) for sku in result.skus) if p > 0]
    sale_prices = [p for p in (_to_float(sku.offer_sale_price) for sku in result.skus) if p > 0]
    return (min(prices) if prices else 0.0, min(sale_prices) if sale_prices else None)


def ships_from_eu(ships_from: str) -> bool:
    """Match country names anywhere and two-letter codes only as whole words."""
    lowered = ships_from.lower()
    words = set(re.findall(r"[a-z]+", lowered))
    for name in EU_WAREHOUSE_NAMES:
        if len(name) == 2:
            if name in words:
                return True
        elif name in lowered:
            return True
    return False


def parse_variants(
    result: ProductResult,
    working_country: Optional[str] = None,
    eu_countries: Iterable[str] = (),
) -> List[ParsedVariant]:
    """Build variants and tag the ones that ship from an EU warehouse.

    When no SKU reports a "Ships From" property and the product was served
    for one of ``eu_countries``, every variant is treated as shipping from
    ``working_country``.
    """
    variants: List[ParsedVariant] = []
    any_ships_from = False

    for sku in result.skus:
        options: Dict[str, str] = {}
        ships_from = ""
        image: Optional[str] = None
        for prop in sku.properties:
            if prop.sku_property_name == SHIPS_FROM_PROPERTY:
                ships_from = prop.sku_property_value or prop.property_value_definition_name or ""
                any_ships_from = True
            elif prop.sku_property_name:
                options[prop.sku_property_name] = (
                    prop.property_value_definition_name or prop.sku_property_value or ""
                )
                if prop.sku_image:
                    image = prop.sku_image

        variants.append(
            ParsedVariant(
                sku_id=str(sku.sku_id) if sku.sku_id is not None else "",
                options=options,
                ships_from=ships_from,
                is_eu=ships_from_eu(ships_from),
                price=_to_float(sku.sku_price),
                sale_price=_to_float(sku.offer_sale_price),
                stock=sku.sku_available_stock or 0,
                image=image,
            )
        )

    if not any_ships_from and working_country and working_country in set(eu_countries):
        for variant in variants:
            variant.is_eu = True
            variant.ships_from = working_country

    return variants


def extract_product_details(
    result: ProductResult,
    working_country: Optional[str] = None,
    eu_countries: Iterable[str] = (),
) -> ProductDetails:
    base = result.ae_item_base_info_dto or BaseInfo()
    price, sale_price = extract_prices(result)
    weight = result.package_info_dto.gross_weight if result.package_info_dto else None
    return ProductDetails(
        title=base.subject or "",
        images=extract_images(result),
        description=base.detail or base.mobile_detail or "",
        price=price,
        sale_price=sale_price,
        stock=extract_stock(result),
        weight=str(weight) if weight is not None else "",
        variants=parse_variants(result, working_country, eu_countries),
    )


__all__ = [
    "EU_WAREHOUSE_NAMES",
    "ParsedVariant",
    "ProductDetails",
    "ProductResult",
    "SkuInfo",
    "SkuProperty",
    "extract_images",
    "extract_prices",
    "extract_product_details",
    "extract_stock",
    "parse_product_result",
    "parse_variants",
    "ships_from_eu",
]
