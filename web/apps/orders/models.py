import uuid
from decimal import Decimal
from typing import Optional

from django.db import models

from apps.accounts.models import Address, Customer
from apps.accounts.schemas import AddressSnapshot
from apps.carts.models import Cart
from apps.catalog.models import Product
from apps.promotions.models import PromoCode
from apps.promotions.schemas import PromoCodeSnapshot

from .domain import OrderStatus

ZERO = Decimal("0.00")


class Order(models.Model):
    # UUID PK exposed in the API
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    Status = models.TextChoices("Status", [(s.value, s.value) for s in OrderStatus])

    customer = models.ForeignKey(
        Customer, null=True, blank=True, on_delete=models.SET_NULL, related_name="orders"
    )
    cart = models.ForeignKey(Cart, null=True, blank=True, on_delete=models.SET_NULL, related_name="orders")
    status = models.CharField(max_length=16, choices=Status.choices, default=OrderStatus.PENDING.value)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    currency = models.CharField(max_length=3, default="usd")

    promo_code = models.ForeignKey(
        PromoCode, null=True, blank=True, on_delete=models.SET_NULL, related_name="orders"
    )
    promo_code_snapshot = models.JSONField(null=True, blank=True)
    shipping_address = models.ForeignKey(
        Address, null=True, blank=True, on_delete=models.PROTECT, related_name="orders"
    )
    shipping_address_snapshot = models.JSONField(null=True, blank=True)

    contact_email = models.EmailField(blank=True, default="")
    contact_name = models.CharField(max_length=200, blank=True, default="")
    contact_phone = models.CharField(max_length=20, blank=True, default="")

    payment_session_id = models.CharField(max_length=255, null=True, blank=True)
    delivery_user = models.ForeignKey(
        Customer, null=True, blank=True, on_delete=models.SET_NULL, related_name="deliveries"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]

    @property
    def promo_snapshot(self) -> Optional[PromoCodeSnapshot]:
        if not self.promo_code_snapshot:
            return None
        return PromoCodeSnapshot.model_validate(self.promo_code_snapshot)

    @property
    def address_snapshot(self) -> Optional[AddressSnapshot]:
        if not self.shipping_address_snapshot:
            return None
        return AddressSnapshot.model_validate(self.shipping_address_snapshot)


class OrderItem(models.Model):
    """Line of an order, frozen at purchase time."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, null=True, on_delete=models.SET_NULL, related_name="+")
    name_at_purchase = models.CharField(max_length=200)
    price_at_purchase = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField()
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    class Meta:
        db_table = "order_items"
        ordering = ["id"]


class IdempotencyKey(models.Model):
    key = models.CharField(max_length=200, unique=True)
    request_hash = models.CharField(max_length=64)
    response_status = models.PositiveSmallIntegerField(default=0)
    response_body = models.JSONField(default=dict)
    order = models.ForeignKey(Order, null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_idempotency_keys"
