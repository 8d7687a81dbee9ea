import pytest

from apps.common.errors import Forbidden
from apps.common.policy import Actor, Role, ensure_allowed, evaluate


def test_manager_manages_products_and_promo_codes():
    for action in ("create", "read", "update", "delete"):
        assert evaluate(Role.MANAGER, action, "Product")
        assert evaluate(Role.MANAGER, action, "PromoCode")


def test_manager_reads_and_updates_any_order():
    assert evaluate(Role.MANAGER, "read", "Order", {"user_id": "someone"})
    assert evaluate(Role.MANAGER, "update", "Order")
    assert not evaluate(Role.MANAGER, "deliver", "Order")


def test_client_reads_only_active_products():
    assert evaluate(Role.CLIENT, "read", "Product", {"status": "ACTIVE"})
    assert not evaluate(Role.CLIENT, "read", "Product", {"status": "DISABLED"})
    assert not evaluate(Role.CLIENT, "update", "Product", {"status": "ACTIVE"})


def test_client_owns_cart_and_orders():
    me = "u-1"
    assert evaluate(Role.CLIENT, "update", "Cart", {"user_id": me}, me)
    assert not evaluate(Role.CLIENT, "update", "Cart", {"user_id": "u-2"}, me)
    assert evaluate(Role.CLIENT, "read", "Order", {"user_id": me}, me)
    assert not evaluate(Role.CLIENT, "read", "Order", {"user_id": "u-2"}, me)


@pytest.mark.parametrize("status", ["PENDING", "PAID", "PROCESSING", "SHIPPED", "DELIVERED"])
def test_client_cancel_rule_checks_ownership_not_status(status):
    attrs = {"user_id": "u-1", "status": status}
    assert evaluate(Role.CLIENT, "cancel", "Order", attrs, "u-1")
    assert not evaluate(Role.CLIENT, "cancel", "Order", attrs, "u-2")


def test_delivery_user_delivers_only_assigned_orders():
    attrs = {"delivery_user_id": "d-1", "status": "SHIPPED"}
    assert evaluate(Role.DELIVERY, "deliver", "Order", attrs, "d-1")
    assert evaluate(Role.DELIVERY, "read", "Order", attrs, "d-1")
    assert not evaluate(Role.DELIVERY, "deliver", "Order", attrs, "d-2")
    assert not evaluate(Role.DELIVERY, "cancel", "Order", attrs, "d-1")


def test_guest_can_purchase_but_not_create_cart_orders():
    assert evaluate(Role.GUEST, "purchase", "Product")
    assert not evaluate(Role.GUEST, "create", "Order")
    assert not evaluate(Role.GUEST, "update", "Cart", {"user_id": None})


def test_unknown_role_is_denied():
    assert not evaluate("ROOT", "read", "Product", {"status": "ACTIVE"})


def test_ensure_allowed_raises_forbidden():
    with pytest.raises(Forbidden) as exc:
        ensure_allowed(Actor.guest(), "create", "PromoCode")
    assert exc.value.http_status == 403
    assert exc.value.code == "FORBIDDEN"


def test_actor_from_anonymous_user_is_guest():
    from django.contrib.auth.models import AnonymousUser
    actor = Actor.from_user(AnonymousUser())
    assert actor.is_guest
    assert actor.role == Role.GUEST


def test_delivery_user_can_see_unassigned_shipped_orders():
    attrs = {"delivery_user_id": None, "status": "SHIPPED"}
    assert evaluate(Role.DELIVERY, "read", "Order", attrs, "d-1")
    assert not evaluate(Role.DELIVERY, "deliver", "Order", attrs, "d-1")
    assert not evaluate(Role.DELIVERY, "read", "Order", {"status": "PAID"}, "d-1")
