from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.core.config import DEFAULT_SHIPPING_RATES, Settings

STRONG_KEY = "q8Vn2kLr7TzX0pWb5sYh3MdA9fGj6EcU"
PROD_DB = "postgresql+asyncpg://shop:pw@db.internal:5432/shop"


def make(**overrides):
    values = {"DATABASE_URL": PROD_DB, "SECRET_KEY": STRONG_KEY, "ENVIRONMENT": "production"}
    values.update(overrides)
    return Settings(**values)


def test_clean_production_config_loads():
    settings = make()
    assert settings.DEBUG is False
    assert settings.SHIPPING_RATES == DEFAULT_SHIPPING_RATES


@pytest.mark.parametrize("overrides", [
    {"DEBUG": True},
    {"SECRET_KEY": "changeme"},
    {"DATABASE_URL": "postgresql+asyncpg://shop:pw@localhost:5432/shop"},
    {"PAYMENT_GATEWAY": "stripe"},
])
def test_insecure_production_config_is_refused(overrides):
    with pytest.raises(ValidationError):
        make(**overrides)


def test_development_skips_production_checks():
    settings = make(ENVIRONMENT="development", DEBUG=True, SECRET_KEY="dev")
    assert settings.is_development


def test_cors_origins_accept_json_or_comma_list():
    assert make(CORS_ORIGINS='["https://shop.example"]').CORS_ORIGINS == ["https://shop.example"]
    assert make(CORS_ORIGINS="https://a.example, https://b.example").CORS_ORIGINS == [
        "https://a.example",
        "https://b.example",
    ]


def test_shipping_rates_from_json():
    settings = make(SHIPPING_RATES='{"standard": "4.99", "overnight": "25"}')
    assert settings.SHIPPING_RATES == {"standard": Decimal("4.99"), "overnight": Decimal("25")}


@pytest.mark.parametrize("overrides", [{"PAYMENT_GATEWAY": "paypal"}, {"DEFAULT_TAX_RATE": "150"}])
def test_unsupported_values(overrides):
    with pytest.raises(ValidationError):
        make(ENVIRONMENT="development", **overrides)
