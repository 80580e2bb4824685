import re

import pytest

from app.core.utils import generate_sku, slugify, to_money
from app.services.cart_service import normalize_attributes


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Blue Cotton Shirt", "blue-cotton-shirt"),
        ("  Hello,   World!  ", "hello-world"),
        ("Camiseta Básica", "camiseta-bsica"),
        ("--a--b--", "a-b"),
        ("100% Wool - XL", "100-wool-xl"),
        ("!!!", ""),
    ],
)
def test_slugify(value, expected):
    assert slugify(value) == expected


def test_generated_sku_format():
    sku = generate_sku()
    assert re.fullmatch(r"SKU-\d{13}-[A-Z0-9]{9}", sku)
    assert generate_sku() != sku


def test_to_money_rounds_half_up():
    assert str(to_money("2.345")) == "2.35"
    assert str(to_money(None)) == "0.00"


def test_normalize_attributes_drops_empty_and_unknown_keys():
    assert normalize_attributes({"size": "M", "color": "", "material": None, "finish": "matte"}) == {"size": "M"}
    assert normalize_attributes(None) == {}
    # key order does not matter for equality
    assert normalize_attributes({"color": "red", "size": "S"}) == normalize_attributes({"size": "S", "color": "red"})
