import pytest

from storefront.schemas.cart import CartLine
from storefront.services.pricing import (
    cart_item_count,
    cart_total,
    effective_unit_price,
    format_price,
    installment_count,
    installment_unit_price,
    line_total,
)


@pytest.mark.parametrize(
    "item, expected",
    [
        ({"price": 100.0, "on_sale": False, "sale_price": 80.0}, 100.0),
        ({"price": 100.0, "on_sale": True, "sale_price": 80.0}, 80.0),
        ({"price": 100.0, "on_sale": True, "sale_price": None}, 100.0),
        ({"price": 100.0, "on_sale": True}, 100.0),
        ({"price": 100.0, "on_sale": True, "sale_price": 0.0}, 0.0),
        ({"price": None}, 0.0),
    ],
)
def test_effective_unit_price(item, expected):
    assert effective_unit_price(item) == expected


def test_effective_unit_price_reads_models(make_product):
    product = make_product(price=150.0, on_sale=True, sale_price=120.0)
    assert effective_unit_price(product) == 120.0
    assert effective_unit_price(CartLine.from_product(product)) == 120.0


@pytest.mark.parametrize("installments", [0, None, -3])
def test_installments_fall_back_to_twelve(installments):
    item = {"price": 120.0, "installments": installments}
    assert installment_count(item) == 12
    assert installment_unit_price(item) == 10.0


def test_negative_installments_use_default_on_models(make_product):
    product = make_product(price=120.0, installments=-4)
    line = CartLine.model_validate({"sku": "9", "precio": 120.0, "installments": -2})

    assert product.installments == 12
    assert line.installments == 12
    assert installment_unit_price(product) == 10.0


def test_installments_absent_field():
    assert installment_unit_price({"price": 24.0}) == 2.0


def test_installment_price_uses_sale_price():
    item = {"price": 100.0, "on_sale": True, "sale_price": 60.0, "installments": 6}
    assert installment_unit_price(item) == 10.0


def test_cart_totals():
    lines = [
        {"price": 100.0, "on_sale": False, "quantity": 2},
        {"price": 50.0, "on_sale": True, "sale_price": 40.0, "quantity": 1},
    ]
    assert line_total(lines[0]) == 200.0
    assert cart_total(lines) == 240.0
    assert cart_item_count(lines) == 3


def test_cart_totals_empty():
    assert cart_total([]) == 0.0
    assert cart_item_count([]) == 0


@pytest.mark.parametrize(
    "amount, expected",
    [
        (0, "0,00"),
        (9.5, "9,50"),
        (1234.5, "1.234,50"),
        (1234567.891, "1.234.567,89"),
    ],
)
def test_format_price_store_locale(amount, expected):
    assert format_price(amount, thousands_separator=".", decimal_separator=",") == expected


def test_format_price_custom_separators():
    assert format_price(1234.5, thousands_separator=",", decimal_separator=".") == "1,234.50"


def test_format_price_uses_settings_defaults():
    # Defaults come from PRICE_THOUSANDS_SEPARATOR / PRICE_DECIMAL_SEPARATOR
    assert format_price(1000) == "1.000,00"
