from decimal import Decimal

from apps.common.errors import BelowMinimumPurchase, InsufficientStock, InvalidTransition, NotFound


def test_str_is_the_stable_code():
    err = NotFound("ORDER_NOT_FOUND", "Order x not found")
    assert str(err) == "ORDER_NOT_FOUND"
    assert err.as_body() == {"detail": "ORDER_NOT_FOUND", "message": "Order x not found"}


def test_insufficient_stock_names_the_product():
    err = InsufficientStock("p-1", 3, "Desk lamp")
    assert err.http_status == 409
    assert "Desk lamp" in err.detail
    assert err.as_body()["product_id"] == "p-1"
    assert err.as_body()["requested"] == 3


def test_invalid_transition_lists_current_and_allowed():
    err = InvalidTransition("DELIVERED", ["PENDING", "PAID", "PROCESSING"])
    assert err.detail == (
        "Invalid status transition. Current status: DELIVERED. "
        "Allowed statuses: PENDING, PAID, PROCESSING"
    )
    assert err.as_body()["allowed_statuses"] == ["PENDING", "PAID", "PROCESSING"]


def test_below_minimum_purchase_carries_required_minimum():
    err = BelowMinimumPurchase(Decimal("50.00"), Decimal("20.00"))
    assert err.http_status == 422
    assert err.as_body()["minimum_purchase_amount"] == "50.00"
