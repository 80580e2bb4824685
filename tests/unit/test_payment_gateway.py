"""
Tests for the payment gateway adapters.
Stripe calls are patched; nothing leaves the process.
"""
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from app.core.exceptions import PaymentFailedError, ValidationError
from app.services.payment_gateway import (
    DECLINE_TOKEN,
    FAILED,
    PENDING,
    SUCCEEDED,
    SimulatedGateway,
    StripeGateway,
    get_gateway,
)


def intent(status, intent_id="pi_123"):
    return SimpleNamespace(id=intent_id, status=status, amount=4388, client_secret=f"{intent_id}_secret_abc")


class TestSimulatedGateway:

    def test_charge_succeeds(self):
        result = SimulatedGateway().charge(Decimal("43.88"), "USD", "ORD-1")
        assert result.status == SUCCEEDED
        assert result.succeeded
        assert result.gateway_payment_id.startswith("pay_")
        assert result.raw["amount"] == "43.88"

    def test_decline_token_fails(self):
        result = SimulatedGateway().charge(Decimal("10.00"), "USD", "ORD-1", {"token": DECLINE_TOKEN})
        assert result.status == FAILED
        assert not result.succeeded
        assert result.error == "Card declined"

    def test_refund_ids_are_unique(self):
        gateway = SimulatedGateway()
        first = gateway.refund("pay_1", Decimal("1.00"))
        second = gateway.refund("pay_1", Decimal("1.00"))
        assert first.startswith("re_")
        assert first != second


class TestStripeGateway:

    def test_confirmed_charge_succeeds_in_cents(self):
        with patch("stripe.PaymentIntent.create", return_value=intent("succeeded")) as create:
            result = StripeGateway(api_key="sk_test_x").charge(
                Decimal("43.88"), "USD", "ORD-1", {"payment_method_id": "pm_card_visa"},
            )

        assert result.status == SUCCEEDED
        assert result.gateway_payment_id == "pi_123"
        kwargs = create.call_args.kwargs
        assert kwargs["amount"] == 4388
        assert kwargs["currency"] == "usd"
        assert kwargs["confirm"] is True
        assert kwargs["metadata"] == {"order_number": "ORD-1"}

    def test_unconfirmed_charge_is_pending_with_client_secret(self):
        with patch("stripe.PaymentIntent.create", return_value=intent("requires_payment_method")) as create:
            result = StripeGateway(api_key="sk_test_x").charge(Decimal("5.00"), "USD", "ORD-2")

        assert result.status == PENDING
        assert result.client_secret == "pi_123_secret_abc"
        assert create.call_args.kwargs["automatic_payment_methods"] == {"enabled": True}

    def test_card_error_is_a_failed_result(self):
        error = stripe.CardError("Your card was declined.", None, "card_declined")
        with patch("stripe.PaymentIntent.create", side_effect=error):
            result = StripeGateway(api_key="sk_test_x").charge(
                Decimal("5.00"), "USD", "ORD-3", {"payment_method_id": "pm_card_chargeDeclined"},
            )
        assert result.status == FAILED
        assert "declined" in result.error

    def test_gateway_outage_raises(self):
        with patch("stripe.PaymentIntent.create", side_effect=stripe.APIConnectionError("down")):
            with pytest.raises(PaymentFailedError):
                StripeGateway(api_key="sk_test_x").charge(Decimal("5.00"), "USD", "ORD-4")

    def test_refund_passes_cents(self):
        with patch("stripe.Refund.create", return_value=SimpleNamespace(id="re_999")) as create:
            refund_id = StripeGateway(api_key="sk_test_x").refund("pi_123", Decimal("12.34"), "damaged")

        assert refund_id == "re_999"
        assert create.call_args.kwargs["amount"] == 1234
        assert create.call_args.kwargs["payment_intent"] == "pi_123"


def test_get_gateway():
    assert isinstance(get_gateway("simulated"), SimulatedGateway)
    assert isinstance(get_gateway(), SimulatedGateway)
    with pytest.raises(ValidationError):
        get_gateway("paypal")
