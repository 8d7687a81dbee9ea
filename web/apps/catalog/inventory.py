"""Stock reservation primitives.

``Product.stock`` is the one hot shared row in the system. It is only ever
changed here, through single conditional UPDATE statements, so two requests
racing for the last unit are decided by the database: the first UPDATE that
matches ``stock >= quantity`` wins and the other one affects zero rows.
"""

import logging
from typing import Iterable

from django.db import transaction
from django.db.models import F

from apps.common.errors import InsufficientStock, ValidationFailed

from .models import Product

logger = logging.getLogger("orders")


def reserve(product_id, quantity: int, product_name: str | None = None) -> None:
    """Decrement stock by ``quantity`` only if enough is available.

    Args:
        product_id: Primary key of the product.
        quantity: Units to take; must be positive.
        product_name: Used in the error message when provided.

    Raises:
        ValidationFailed: If ``quantity`` is not positive.
        InsufficientStock: If the conditional update matched no row.
    """
    if quantity <= 0:
        raise ValidationFailed("INVALID_QUANTITY", "Quantity must be positive")
    updated = Product.objects.filter(pk=product_id, stock__gte=quantity).update(
        stock=F("stock") - quantity
    )
    if updated == 0:
        logger.info(
            "stock reservation refused",
            extra={"product_id": str(product_id), "quantity": quantity},
        )
        raise InsufficientStock(product_id, quantity, product_name)


def restore(product_id, quantity: int) -> None:
    """Give ``quantity`` units back.

    Not idempotent. Callers gate it on an order status transition so each
    reservation is restored at most once.
    """
    Product.objects.filter(pk=product_id).update(stock=F("stock") + quantity)


def reserve_all(lines: Iterable[tuple]) -> None:
    """Reserve every ``(product_id, quantity, name)`` line or none of them.

    Runs in a savepoint: when any line fails the decrements already applied
    for earlier lines are rolled back before ``InsufficientStock`` leaves.
    """
    with transaction.atomic():
        for product_id, quantity, name in lines:
            reserve(product_id, quantity, name)
