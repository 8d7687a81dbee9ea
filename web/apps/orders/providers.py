"""Explicit wiring of the order workflow and its collaborators.

``get_order_service`` builds an ``OrderService`` whose payment gateway is
chosen by ``settings.PAYMENT_GATEWAY`` (see ``apps.payments.providers``):
the Stripe adapter in production, the in-process fake for tests and local
development.
"""

from apps.accounts import services as address_store
from apps.carts.services import CartService
from apps.payments.providers import get_payments_service
from apps.promotions.services import PromoCodeService

from .services import OrderService


def get_order_service() -> OrderService:
    promo_codes = PromoCodeService()
    return OrderService(
        payments=get_payments_service(),
        carts=CartService(promo_codes=promo_codes),
        addresses=address_store,
        promo_codes=promo_codes,
    )
