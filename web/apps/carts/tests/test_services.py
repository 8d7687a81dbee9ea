from decimal import Decimal

import pytest

from apps.carts.models import Cart
from apps.carts.services import CartService
from apps.catalog.models import Product
from apps.common.errors import BelowMinimumPurchase, Conflict, Forbidden, InsufficientStock, NotFound
from apps.common.policy import Actor


@pytest.mark.django_db
def test_view_creates_a_single_active_cart(customer, as_actor):
    svc = CartService()
    first = svc.view(as_actor(customer))
    second = svc.view(as_actor(customer))
    assert first.id == second.id
    assert Cart.objects.filter(customer=customer, status=Cart.Status.ACTIVE).count() == 1


@pytest.mark.django_db
def test_adding_same_product_merges_quantity(customer, as_actor, make_product):
    p = make_product(price="4.00", stock=10)
    svc = CartService()
    svc.add_item(as_actor(customer), p.id, 2)
    cart = svc.add_item(as_actor(customer), p.id, 3)
    dto = svc.to_dto(cart)
    assert len(dto.items) == 1
    assert dto.items[0].quantity == 5
    assert dto.subtotal == Decimal("20.00")


@pytest.mark.django_db
def test_add_item_checks_merged_quantity_against_stock(customer, as_actor, make_product):
    p = make_product(stock=3)
    svc = CartService()
    svc.add_item(as_actor(customer), p.id, 2)
    with pytest.raises(InsufficientStock):
        svc.add_item(as_actor(customer), p.id, 2)


@pytest.mark.django_db
def test_inactive_product_cannot_be_added(customer, as_actor, make_product):
    p = make_product(status=Product.Status.DISABLED)
    with pytest.raises(Conflict) as exc:
        CartService().add_item(as_actor(customer), p.id, 1)
    assert exc.value.code == "PRODUCT_UNAVAILABLE"


@pytest.mark.django_db
def test_update_and_remove_item(customer, as_actor, make_product):
    p = make_product(stock=10)
    svc = CartService()
    cart = svc.add_item(as_actor(customer), p.id, 1)
    item = cart.items.get()

    svc.update_item(as_actor(customer), item.id, 7)
    item.refresh_from_db()
    assert item.quantity == 7

    with pytest.raises(InsufficientStock):
        svc.update_item(as_actor(customer), item.id, 11)

    svc.remove_item(as_actor(customer), item.id)
    assert cart.items.count() == 0


@pytest.mark.django_db
def test_cannot_touch_another_customers_item(customer, other_customer, as_actor, make_product):
    p = make_product()
    cart = CartService().add_item(as_actor(customer), p.id, 1)
    item = cart.items.get()
    with pytest.raises(NotFound):
        CartService().remove_item(as_actor(other_customer), item.id)


@pytest.mark.django_db
def test_apply_promo_code_checks_minimum_against_live_subtotal(customer, as_actor, make_product, make_promo):
    make_promo(minimum_purchase_amount=Decimal("30.00"))
    p = make_product(price="10.00", stock=10)
    svc = CartService()
    svc.add_item(as_actor(customer), p.id, 2)
    with pytest.raises(BelowMinimumPurchase):
        svc.apply_promo_code(as_actor(customer), "SAVE10NOW")

    svc.add_item(as_actor(customer), p.id, 1)
    cart = svc.apply_promo_code(as_actor(customer), "save10now")
    assert svc.to_dto(cart).promo_code == "SAVE10NOW"


@pytest.mark.django_db
def test_clear_empties_items_and_promo(customer, as_actor, make_product, make_promo):
    make_promo()
    p = make_product()
    svc = CartService()
    svc.add_item(as_actor(customer), p.id, 1)
    svc.apply_promo_code(as_actor(customer), "SAVE10NOW")
    cart = svc.clear(as_actor(customer))
    assert cart.items.count() == 0
    assert cart.promo_code is None


@pytest.mark.django_db
def test_mark_as_ordered_only_once(customer, as_actor):
    svc = CartService()
    cart = svc.view(as_actor(customer))
    assert svc.mark_as_ordered(cart.id) is True
    assert svc.mark_as_ordered(cart.id) is False
    with pytest.raises(NotFound):
        svc.get_active_cart(customer.id)


def test_guest_has_no_cart():
    with pytest.raises(Forbidden):
        CartService().view(Actor.guest())
