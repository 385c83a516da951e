try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from aliwarehouse.models.aliexpress import (
    extract_product_details,
    parse_product_result,
    parse_variants,
    ships_from_eu,
)


def _sku(sku_id, price, stock, props, sale=None):
    return {
        "sku_id": sku_id,
        "sku_price": price,
        "offer_sale_price": sale,
        "sku_available_stock": stock,
        "ae_sku_property_dtos": {"ae_sku_property_d_t_o": props},
    }


def _payload(skus):
    return {
        "aliexpress_ds_product_get_response": {
            "result": {
                "ae_item_base_info_dto": {"subject": "Desk lamp", "detail": "<p>Bright</p>"},
                "ae_item_sku_info_dtos": {"ae_item_sku_info_d_t_o": skus},
                "ae_multimedia_info_dto": {"image_urls": "https://img/1.jpg;https://img/2.jpg;"},
                "package_info_dto": {"gross_weight": "0.45"},
            }
        }
    }


COLOR_RED = {"sku_property_name": "Color", "property_value_definition_name": "Red", "sku_image": "https://img/red.jpg"}
SHIPS_SPAIN = {"sku_property_name": "Ships From", "sku_property_value": "Spain"}
SHIPS_CHINA = {"sku_property_name": "Ships From", "sku_property_value": "China"}


def test_variants_are_tagged_by_ships_from_property() -> None:
    result = parse_product_result(
        _payload(
            [
                _sku(1, "10.50", 3, [COLOR_RED, SHIPS_SPAIN]),
                _sku(2, "9.00", 7, [COLOR_RED, SHIPS_CHINA]),
            ]
        )
    )

    spain, china = parse_variants(result, "ES", ["ES", "FR"])

    assert spain.is_eu and spain.ships_from == "Spain"
    assert spain.options == {"Color": "Red"}
    assert spain.image == "https://img/red.jpg"
    assert not china.is_eu
    assert china.ships_from == "China"


def test_variants_inherit_working_country_without_ships_from() -> None:
    result = parse_product_result(_payload([_sku(1, "5", 1, [COLOR_RED])]))

    (variant,) = parse_variants(result, "PL", ["PL", "DE"])

    assert variant.is_eu
    assert variant.ships_from == "PL"


def test_non_eu_working_country_leaves_variants_untagged() -> None:
    result = parse_product_result(_payload([_sku(1, "5", 1, [COLOR_RED])]))

    (variant,) = parse_variants(result, "US", ["PL", "DE"])

    assert not variant.is_eu


def test_extract_product_details_aggregates_prices_and_stock() -> None:
    result = parse_product_result(
        _payload(
            [
                _sku(1, "12.00", 3, [SHIPS_SPAIN], sale="10.00"),
                _sku(2, "8.00", 4, [SHIPS_SPAIN], sale="0"),
                _sku(3, "0", 0, [SHIPS_SPAIN]),
            ]
        )
    )

    details = extract_product_details(result, "ES", ["ES"])

    assert details.title == "Desk lamp"
    assert details.description == "<p>Bright</p>"
    assert details.images == ["https://img/1.jpg", "https://img/2.jpg"]
    assert details.price == 8.0
    assert details.sale_price == 10.0
    assert details.stock == 7
    assert details.weight == "0.45"
    assert len(details.variants) == 3


def test_type_drift_only_drops_the_broken_entry() -> None:
    payload = _payload(
        [
            {**_sku(1, "10.00", 4, [SHIPS_SPAIN]), "id": 12345},
            {**_sku(2, "12.00", 2, [SHIPS_SPAIN]), "sku_available_stock": {"bad": "shape"}},
        ]
    )
    payload["aliexpress_ds_product_get_response"]["result"]["ae_store_info"] = "not-an-object"

    result = parse_product_result(payload)
    details = extract_product_details(result, "ES", ["ES"])

    assert details.title == "Desk lamp"
    assert details.images == ["https://img/1.jpg", "https://img/2.jpg"]
    assert result.ae_store_info is None
    assert [variant.sku_id for variant in details.variants] == ["1"]
    assert result.skus[0].id == "12345"
    assert details.price == 10.0
    assert details.stock == 4


@pytest.mark.parametrize("payload", [None, [], {"unexpected": 1}, {"aliexpress_ds_product_get_response": {}}])
def test_unusable_payload_yields_empty_result(payload) -> None:
    details = extract_product_details(parse_product_result(payload))
    assert details.title == ""
    assert details.variants == []
    assert details.price == 0.0
    assert details.sale_price is None


@pytest.mark.parametrize(
    "ships_from, expected",
    [
        ("Spain", True),
        ("CZ", True),
        ("Czech Republic", True),
        ("China", False),
        ("United States", False),
        ("Russian Federation", False),
        ("", False),
    ],
)
def test_ships_from_eu(ships_from: str, expected: bool) -> None:
    assert ships_from_eu(ships_from) is expected
