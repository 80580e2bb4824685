import re

import pytest

from app.services.order_service import OrderService, can_transition


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        ("pending", "confirmed", True),
        ("pending", "shipped", True),
        ("confirmed", "processing", True),
        ("processing", "shipped", True),
        ("shipped", "delivered", True),
        ("shipped", "processing", False),
        ("confirmed", "pending", False),
        ("pending", "pending", False),
        ("pending", "cancelled", True),
        ("confirmed", "cancelled", True),
        ("processing", "cancelled", False),
        ("delivered", "cancelled", False),
        ("delivered", "shipped", False),
        ("cancelled", "confirmed", False),
        ("refunded", "confirmed", False),
        ("confirmed", "refunded", False),
    ],
)
def test_transition_table(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_order_number_format():
    number = OrderService.generate_order_number()
    assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{10}", number)
