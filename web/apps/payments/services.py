"""Payment requests for orders and catalog sync with the processor."""

import logging
from decimal import Decimal
from typing import Optional

from django.conf import settings

from apps.catalog.models import Product
from apps.common.errors import Conflict, NotFound
from apps.common.policy import Actor, ensure_allowed
from apps.orders.domain import PaymentHandle

from .gateway import CheckoutLine, PaymentGatewayPort
from .models import Payment

logger = logging.getLogger("payments")


def handle_from_payment(payment: Payment) -> Optional[PaymentHandle]:
    meta = payment.metadata or {}
    if meta.get("client_secret"):
        return PaymentHandle("client_secret", meta["client_secret"], payment.external_payment_id)
    if meta.get("session_url"):
        return PaymentHandle("redirect_url", meta["session_url"], payment.external_payment_id)
    return None


class PaymentsService:
    def __init__(self, gateway: PaymentGatewayPort, currency: str | None = None):
        self.gateway = gateway
        self.currency = currency or settings.PAYMENT_CURRENCY

    # ---- payment requests ----

    def create_payment_intent(self, order) -> PaymentHandle:
        """Ask the processor for an in-app payment and record the attempt.

        Raises:
            PaymentProviderError: The processor call failed; nothing recorded.
        """
        intent = self.gateway.create_payment_intent(
            amount=order.total,
            currency=order.currency,
            metadata={"order_id": str(order.id)},
            idempotency_key=f"order-{order.id}-intent",
        )
        Payment.objects.create(
            order=order,
            provider=self.gateway.name,
            method=Payment.Method.PAYMENT_INTENT,
            external_payment_id=intent.id,
            amount=order.total,
            currency=order.currency,
            metadata={"client_secret": intent.client_secret},
        )
        logger.info(
            "payment intent created",
            extra={"order_id": str(order.id), "external_payment_id": intent.id, "amount": str(order.total)},
        )
        return PaymentHandle("client_secret", intent.client_secret, intent.id)

    def create_payment_link(self, order, lines: list[CheckoutLine], customer_email: str | None = None) -> PaymentHandle:
        """Create a redirect checkout session and attach its id to the order."""
        session = self.gateway.create_payment_link(
            lines=lines,
            currency=order.currency,
            metadata={"order_id": str(order.id), "order_type": "single_product_purchase"},
            customer_email=customer_email,
            idempotency_key=f"order-{order.id}-session",
        )
        Payment.objects.create(
            order=order,
            provider=self.gateway.name,
            method=Payment.Method.CHECKOUT_SESSION,
            external_payment_id=session.id,
            amount=order.total,
            currency=order.currency,
            metadata={"session_url": session.url, "expires_at": session.expires_at},
        )
        order.payment_session_id = session.id
        order.save(update_fields=["payment_session_id", "updated_at"])
        logger.info(
            "checkout session created",
            extra={"order_id": str(order.id), "session_id": session.id, "amount": str(order.total)},
        )
        return PaymentHandle("redirect_url", session.url, session.id)

    def latest_handle(self, order) -> Optional[PaymentHandle]:
        payment = order.payments.order_by("-created_at").first()
        return handle_from_payment(payment) if payment else None

    def refund(self, actor: Actor, payment_id, amount: Optional[Decimal] = None) -> str:
        """Refund a succeeded payment through the processor.

        Operator tool only; cancelling an order never refunds automatically.
        """
        ensure_allowed(actor, "update", "Order")
        payment = Payment.objects.filter(pk=payment_id).first()
        if payment is None:
            raise NotFound("PAYMENT_NOT_FOUND", f"Payment {payment_id} not found")
        if payment.status != Payment.Status.SUCCEEDED:
            raise Conflict("PAYMENT_NOT_REFUNDABLE", f"Payment is {payment.status}")
        intent_id = payment.metadata.get("payment_intent") or payment.external_payment_id
        refund_id = self.gateway.refund(intent_id, amount)
        logger.info(
            "payment refunded",
            extra={"payment_id": str(payment.id), "refund_id": refund_id, "order_id": str(payment.order_id)},
        )
        return refund_id

    # ---- catalog sync ----

    def create_sellable_product(self, actor: Actor, product: Product) -> Product:
        """Create the processor-side product and price and store their ids."""
        ensure_allowed(actor, "create", "Product")
        external_id = self.gateway.create_product(
            product.name, product.description, metadata={"product_id": str(product.id)}
        )
        price_id = self.gateway.create_price(external_id, product.price, self.currency)
        product.external_product_id = external_id
        product.external_price_id = price_id
        product.save(update_fields=["external_product_id", "external_price_id", "updated_at"])
        logger.info("product synced", extra={"product_id": str(product.id), "external_product_id": external_id})
        return product

    def update_sellable_product(self, actor: Actor, product: Product, reprice: bool = False) -> Product:
        """Push name/description changes; with ``reprice`` swap in a new price.

        Processor prices are immutable, so a price change archives the old
        price and creates a new one.
        """
        ensure_allowed(actor, "update", "Product")
        if not product.external_product_id:
            return self.create_sellable_product(actor, product)
        self.gateway.update_product(product.external_product_id, product.name, product.description)
        if reprice:
            if product.external_price_id:
                self.gateway.archive_price(product.external_price_id)
            product.external_price_id = self.gateway.create_price(
                product.external_product_id, product.price, self.currency
            )
            product.save(update_fields=["external_price_id", "updated_at"])
        return product

    def disable_sellable_product(self, actor: Actor, product: Product) -> Product:
        ensure_allowed(actor, "update", "Product")
        if product.external_price_id:
            self.gateway.archive_price(product.external_price_id)
        if product.external_product_id:
            self.gateway.archive_product(product.external_product_id)
        product.status = Product.Status.DISABLED
        product.save(update_fields=["status", "updated_at"])
        logger.info("product disabled", extra={"product_id": str(product.id)})
        return product
