import pytest

from apps.accounts import services as address_store
from apps.carts.services import CartService
from apps.orders.services import OrderService
from apps.payments.adapters import FakeGateway
from apps.payments.services import PaymentsService
from apps.promotions.services import PromoCodeService


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def order_service(gateway):
    promo_codes = PromoCodeService()
    return OrderService(
        payments=PaymentsService(gateway, currency="usd"),
        carts=CartService(promo_codes=promo_codes),
        addresses=address_store,
        promo_codes=promo_codes,
    )


@pytest.fixture
def fill_cart(as_actor):
    def _fill(user, *lines):
        svc = CartService()
        for product, qty in lines:
            svc.add_item(as_actor(user), product.id, qty)
        return svc.get_active_cart(user.id)
    return _fill
