"""Turns verified processor events into order and payment state changes.

Handlers are keyed by event type and must be safe to run more than once for
the same event: every state change is a conditional UPDATE on the current
status, and side effects only run when that UPDATE actually moved the row.

- payment_intent.succeeded, checkout.session.completed: order PAID, pending
  payments SUCCEEDED, the order's cart ORDERED, then low-stock alerts.
- payment_intent.payment_failed: error code noted on the pending payments;
  the order stays PENDING until cancellation follows.
- payment_intent.canceled, checkout.session.expired: order CANCELLED, stock
  and promo usage given back.
"""

import logging
import uuid
from typing import Callable, Optional

from django.db import transaction
from django.utils import timezone

from apps.carts.services import CartService
from apps.notifications.services import LowStockAlerts
from apps.orders.domain import OrderStatus
from apps.orders.models import Order
from apps.orders.services import restore_order

from .gateway import PaymentGatewayPort
from .models import Payment

logger = logging.getLogger("webhooks")

PAYMENT_SUCCEEDED = ("payment_intent.succeeded", "checkout.session.completed")
PAYMENT_FAILED = ("payment_intent.payment_failed",)
PAYMENT_ABANDONED = ("payment_intent.canceled", "checkout.session.expired")


class WebhookReconciler:
    def __init__(self, gateway: PaymentGatewayPort, carts: CartService, alerts: LowStockAlerts):
        self.gateway = gateway
        self.carts = carts
        self.alerts = alerts
        self.handlers: dict[str, Callable[[dict, Optional[str]], None]] = {}
        for kind in PAYMENT_SUCCEEDED:
            self.handlers[kind] = self.on_payment_succeeded
        for kind in PAYMENT_FAILED:
            self.handlers[kind] = self.on_payment_failed
        for kind in PAYMENT_ABANDONED:
            self.handlers[kind] = self.on_payment_abandoned

    def handle(self, event: dict) -> None:
        """Dispatch one event. Unknown types and events without an order id are ignored."""
        kind = event.get("type", "")
        handler = self.handlers.get(kind)
        if handler is None:
            logger.info("event ignored", extra={"event_id": event.get("id"), "event_type": kind})
            return
        order_id = self.gateway.get_metadata(event).get("order_id")
        if not order_id:
            logger.warning("event without order_id", extra={"event_id": event.get("id"), "event_type": kind})
            return
        try:
            uuid.UUID(str(order_id))
        except ValueError:
            logger.warning("event with malformed order_id", extra={"event_id": event.get("id"), "order_id": order_id})
            return
        if not Order.objects.filter(pk=order_id).exists():
            logger.warning("event for unknown order", extra={"event_id": event.get("id"), "order_id": order_id})
            return
        handler(event, order_id)

    def on_payment_succeeded(self, event: dict, order_id: str) -> None:
        obj = event["data"]["object"]
        if event["type"] == "checkout.session.completed" and obj.get("payment_status") == "unpaid":
            logger.info("checkout completed without payment yet", extra={"order_id": order_id})
            return

        with transaction.atomic():
            updated = Order.objects.filter(pk=order_id, status=OrderStatus.PENDING.value).update(
                status=OrderStatus.PAID.value, updated_at=timezone.now()
            )
            if updated == 0:
                current = Order.objects.values_list("status", flat=True).get(pk=order_id)
                if current == OrderStatus.CANCELLED.value:
                    # Paid after the stock was released; needs a manual refund
                    logger.error(
                        "payment succeeded for cancelled order",
                        extra={"order_id": order_id, "event_id": event.get("id")},
                    )
                else:
                    logger.info("payment already reconciled", extra={"order_id": order_id, "status": current})
                return

            intent_id = obj.get("payment_intent") if obj.get("object") == "checkout.session" else obj.get("id")
            for payment in Payment.objects.select_for_update().filter(
                order_id=order_id, status=Payment.Status.PENDING
            ):
                payment.status = Payment.Status.SUCCEEDED
                if intent_id:
                    payment.metadata = {**payment.metadata, "payment_intent": intent_id}
                payment.save(update_fields=["status", "metadata", "updated_at"])

            order = Order.objects.get(pk=order_id)
            if order.customer_id and order.cart_id:
                self.carts.mark_as_ordered(order.cart_id)

        logger.info("order paid", extra={"order_id": order_id, "event_id": event.get("id")})
        product_ids = list(order.items.exclude(product__isnull=True).values_list("product_id", flat=True))
        self.alerts.notify_interested_users(product_ids)

    def on_payment_failed(self, event: dict, order_id: str) -> None:
        error = (event["data"]["object"].get("last_payment_error") or {}).get("code") or "unknown"
        # Status stays PENDING; the customer may still retry the same intent
        Payment.objects.filter(order_id=order_id, status=Payment.Status.PENDING).update(
            error_code=error[:100], updated_at=timezone.now()
        )
        logger.warning(
            "payment attempt failed, awaiting cancellation",
            extra={"order_id": order_id, "event_id": event.get("id"), "error_code": error},
        )

    def on_payment_abandoned(self, event: dict, order_id: str) -> None:
        # Only orders still waiting for payment are released here
        if not restore_order(order_id, (OrderStatus.PENDING,), reason=event["type"]):
            logger.info("order not pending, nothing to restore", extra={"order_id": order_id})
