"""In-process notifier for tests and local development.

Keeps every alert in ``sent`` instead of calling the notification service.
"""

import logging

from .domain import LowStockProduct, NotifierPort, Recipient

logger = logging.getLogger("notifications")


class NotifierStub(NotifierPort):
    def __init__(self):
        self.sent: list[tuple[str, LowStockProduct]] = []

    def send_low_stock_alert(self, recipient: Recipient, product: LowStockProduct) -> None:
        self.send_massive_low_stock_alert([recipient], product)

    def send_massive_low_stock_alert(self, recipients: list[Recipient], product: LowStockProduct) -> None:
        for r in recipients:
            self.sent.append((r.email, product))
        logger.info(
            "low stock alert recorded",
            extra={"product_id": product.id, "recipients": len(recipients)},
        )
