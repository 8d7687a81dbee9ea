"""Low-stock alerts for customers who liked a product but have not bought it."""

import logging
from typing import Iterable

from django.conf import settings

from apps.catalog.models import Product, ProductLike
from apps.orders.domain import PURCHASED_STATUSES
from apps.orders.models import OrderItem

from .domain import LowStockProduct, NotifierPort, Recipient

logger = logging.getLogger("notifications")


class LowStockAlerts:
    def __init__(self, notifier: NotifierPort, threshold: int | None = None):
        self.notifier = notifier
        self.threshold = threshold if threshold is not None else settings.LOW_STOCK_THRESHOLD

    def interested_recipients(self, product: Product) -> list[Recipient]:
        buyers = OrderItem.objects.filter(
            product=product,
            order__status__in=[s.value for s in PURCHASED_STATUSES],
            order__customer__isnull=False,
        ).values("order__customer_id")
        likes = (
            ProductLike.objects.filter(product=product)
            .exclude(customer_id__in=buyers)
            .select_related("customer")
        )
        return [Recipient(email=l.customer.email, full_name=l.customer.full_name) for l in likes]

    def notify_interested_users(self, product_ids: Iterable) -> int:
        """Alert interested users of every listed product that is running low.

        Fire-and-forget: a failing notifier is logged and skipped, never
        raised to the caller. Returns the number of products alerted.
        """
        alerted = 0
        products = Product.objects.filter(pk__in=list(product_ids), stock__lte=self.threshold)
        for product in products:
            recipients = self.interested_recipients(product)
            if not recipients:
                continue
            info = LowStockProduct(
                id=str(product.id),
                name=product.name,
                description=product.description,
                stock=product.stock,
                price=str(product.price),
            )
            try:
                self.notifier.send_massive_low_stock_alert(recipients, info)
            except Exception:
                logger.exception(
                    "low stock alert failed",
                    extra={"product_id": str(product.id), "recipients": len(recipients)},
                )
                continue
            alerted += 1
            logger.info(
                "low stock alert sent",
                extra={"product_id": str(product.id), "stock": product.stock, "recipients": len(recipients)},
            )
        return alerted
