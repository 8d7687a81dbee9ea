"""Order workflow: checkout, status changes, cancellation and queries.

Checkout runs in two phases. Inside one database transaction the workflow
reserves stock for every line, writes the order with its price snapshots and
consumes the promo code; any failure rolls all of it back. After commit it
asks the payment processor for a payment handle. If that call fails the order
stays PENDING with its stock held until the processor's cancellation or
expiry webhook releases it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.accounts.models import Customer
from apps.accounts.schemas import AddressIn
from apps.catalog import inventory
from apps.catalog.models import Product
from apps.common.errors import Conflict, InvalidTransition, NotFound, PaymentProviderError, ValidationFailed
from apps.common.policy import Actor, Role, ensure_allowed
from apps.payments.gateway import CheckoutLine
from apps.payments.models import Payment
from apps.payments.services import PaymentsService
from apps.promotions.schemas import PromoCodeSnapshot
from apps.promotions.services import PromoCodeService

from .domain import (
    AddressStorePort,
    CartStorePort,
    OrderFilters,
    OrderStatus,
    PaymentHandle,
    allowed_predecessors,
    ensure_transition,
)
from .models import Order, OrderItem
from .pricing import PriceLine, compute_totals
from .schemas import ContactInfo

logger = logging.getLogger("orders")

RESTORABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.PROCESSING)


@dataclass(frozen=True)
class OrderPlacement:
    order: Order
    payment: Optional[PaymentHandle]


def order_attributes(order: Order) -> dict:
    return {
        "user_id": order.customer_id,
        "delivery_user_id": order.delivery_user_id,
        "status": order.status,
    }


def restore_order(order_id, from_statuses=RESTORABLE_STATUSES, reason: str = "") -> bool:
    """Cancel the order and give back what it consumed, at most once.

    The status flip is a conditional UPDATE: only the caller that moves the
    order out of ``from_statuses`` restores stock and promo usage. A
    redelivered webhook or a double-clicked cancel sees zero rows and does
    nothing.

    Returns:
        bool: True if this call cancelled the order.
    """
    statuses = [OrderStatus(s).value for s in from_statuses]
    with transaction.atomic():
        updated = Order.objects.filter(pk=order_id, status__in=statuses).update(
            status=OrderStatus.CANCELLED.value, updated_at=timezone.now()
        )
        if updated == 0:
            return False

        order = Order.objects.get(pk=order_id)
        for item in order.items.exclude(product__isnull=True):
            inventory.restore(item.product_id, item.quantity)

        snapshot = order.promo_snapshot
        if snapshot is not None:
            PromoCodeService().decrement_usage(snapshot.id)

        Payment.objects.filter(order_id=order_id, status=Payment.Status.PENDING).update(
            status=Payment.Status.CANCELLED, updated_at=timezone.now()
        )

    logger.info("order cancelled, stock restored", extra={"order_id": str(order_id), "reason": reason})
    return True


class OrderService:
    """Creates orders and moves them through their lifecycle.

    Collaborators are injected; see ``providers.get_order_service``.
    """

    def __init__(
        self,
        payments: PaymentsService,
        carts: CartStorePort,
        addresses: AddressStorePort,
        promo_codes: PromoCodeService,
    ):
        self.payments = payments
        self.carts = carts
        self.addresses = addresses
        self.promo_codes = promo_codes

    # ---- checkout ----

    def create_from_cart(
        self,
        actor: Actor,
        address_id=None,
        address: Optional[AddressIn] = None,
        promo_code: Optional[str] = None,
    ) -> OrderPlacement:
        """Turn the caller's active cart into a PENDING order and request payment.

        Raises:
            Forbidden: The caller may not create orders.
            ValidationFailed: No shipping address, or the cart is empty.
            Conflict: Both address forms given, a PENDING order already
                exists, a product is no longer available, or the promo code
                was used up concurrently.
            NotFound: No active cart, or the address is not the caller's.
            NotEligible / BelowMinimumPurchase: The promo code cannot apply.
            InsufficientStock: Some line could not be reserved; nothing was
                written.
            PaymentProviderError: The order was created but the processor
                call failed.
        """
        ensure_allowed(actor, "create", "Order")
        self._ensure_no_pending_order(actor.id)

        cart = self.carts.get_active_cart(actor.id)
        cart_items = list(cart.items.select_related("product"))
        if not cart_items:
            raise ValidationFailed("CART_EMPTY", "Cart is empty")
        self._check_address_choice(address_id, address)
        for ci in cart_items:
            self._ensure_purchasable(ci.product)

        lines = [PriceLine(ci.product.price, ci.quantity) for ci in cart_items]
        subtotal = compute_totals(lines).subtotal

        code = promo_code or (cart.promo_code.code if cart.promo_code_id else None)
        promo = self.promo_codes.validate(code, subtotal) if code else None
        totals = compute_totals(lines, promo)

        existing_address = self.addresses.find_address(actor.id, address_id) if address_id else None

        with transaction.atomic():
            # Serialize checkouts of the same customer so the pending check holds
            Customer.objects.select_for_update().filter(pk=actor.id).first()
            self._ensure_no_pending_order(actor.id)

            inventory.reserve_all((ci.product_id, ci.quantity, ci.product.name) for ci in cart_items)
            shipping = existing_address or self.addresses.create_address(actor.id, address)

            order = Order.objects.create(
                customer_id=actor.id,
                cart=cart,
                status=OrderStatus.PENDING.value,
                subtotal=totals.subtotal,
                discount=totals.discount,
                tax=0,
                total=totals.total,
                currency=self.payments.currency,
                promo_code=promo,
                promo_code_snapshot=(
                    PromoCodeSnapshot.model_validate(promo).model_dump(mode="json") if promo else None
                ),
                shipping_address=shipping,
                shipping_address_snapshot=shipping.as_snapshot(),
                contact_email=actor.email,
            )
            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    product_id=ci.product_id,
                    name_at_purchase=ci.product.name,
                    price_at_purchase=ci.product.price,
                    quantity=ci.quantity,
                )
                for ci in cart_items
            ])
            if promo:
                self.promo_codes.increment_usage(promo.id)

        logger.info(
            "order created from cart",
            extra={
                "order_id": str(order.id),
                "user_id": str(actor.id),
                "total": str(order.total),
                "promo_code": promo.code if promo else None,
            },
        )
        try:
            handle = self.payments.create_payment_intent(order)
        except PaymentProviderError as e:
            self._payment_request_failed(order, e)
            raise
        return OrderPlacement(order=order, payment=handle)

    def create_from_single_product(
        self,
        actor: Actor,
        product_id,
        quantity: int,
        contact: Optional[ContactInfo] = None,
        address_id=None,
        address: Optional[AddressIn] = None,
    ) -> OrderPlacement:
        """Buy one product through a redirect checkout session.

        Guests must supply an inline address and contact email. No promo
        code and no cart are involved.
        """
        ensure_allowed(actor, "purchase", "Product")
        if actor.is_guest:
            if address is None:
                raise ValidationFailed("SHIPPING_ADDRESS_REQUIRED", "Shipping address is required for guest checkout")
            if address_id is not None:
                raise ValidationFailed("ADDRESS_ID_NOT_ALLOWED", "Guests must supply an inline address")
            if contact is None:
                raise ValidationFailed("CONTACT_REQUIRED", "Contact email is required for guest checkout")
        else:
            self._check_address_choice(address_id, address)

        product = self._get_product(product_id)
        self._ensure_purchasable(product)
        totals = compute_totals([PriceLine(product.price, quantity)])

        existing_address = self.addresses.find_address(actor.id, address_id) if address_id else None
        email = contact.email if contact else actor.email

        with transaction.atomic():
            inventory.reserve(product.id, quantity, product.name)
            shipping = existing_address or self.addresses.create_address(actor.id, address)
            order = Order.objects.create(
                customer_id=actor.id,
                status=OrderStatus.PENDING.value,
                subtotal=totals.subtotal,
                discount=totals.discount,
                tax=0,
                total=totals.total,
                currency=self.payments.currency,
                shipping_address=shipping,
                shipping_address_snapshot=shipping.as_snapshot(),
                contact_email=email,
                contact_name=contact.full_name if contact else "",
                contact_phone=contact.phone if contact else "",
            )
            OrderItem.objects.create(
                order=order,
                product=product,
                name_at_purchase=product.name,
                price_at_purchase=product.price,
                quantity=quantity,
            )

        logger.info(
            "order created from product",
            extra={"order_id": str(order.id), "product_id": str(product.id), "guest": actor.is_guest},
        )
        line = CheckoutLine(
            name=product.name,
            unit_amount=product.price,
            quantity=quantity,
            price_id=product.external_price_id,
        )
        try:
            handle = self.payments.create_payment_link(order, [line], customer_email=email)
        except PaymentProviderError as e:
            self._payment_request_failed(order, e)
            raise
        return OrderPlacement(order=order, payment=handle)

    # ---- status machine ----

    def process_order(self, actor: Actor, order_id) -> Order:
        ensure_allowed(actor, "update", "Order")
        return self._transition(order_id, OrderStatus.PROCESSING)

    def ship_order(self, actor: Actor, order_id, delivery_user_id) -> Order:
        ensure_allowed(actor, "update", "Order")
        courier = Customer.objects.filter(pk=delivery_user_id, role=Customer.Role.DELIVERY).first()
        if courier is None:
            raise ValidationFailed("INVALID_DELIVERY_USER", "Delivery user not found")
        return self._transition(order_id, OrderStatus.SHIPPED, delivery_user=courier)

    def deliver_order(self, actor: Actor, order_id) -> Order:
        order = self._get_order(order_id)
        ensure_allowed(actor, "deliver", "Order", order_attributes(order))
        return self._transition(order_id, OrderStatus.DELIVERED)

    def cancel_order(self, actor: Actor, order_id) -> Order:
        """Cancel from PENDING, PAID or PROCESSING and restore stock and promo usage.

        Paid orders are not refunded here; that stays an operator task.
        """
        order = self._get_order(order_id)
        ensure_allowed(actor, "cancel", "Order", order_attributes(order))
        previous = order.status
        if not restore_order(order.id, RESTORABLE_STATUSES, reason="manual"):
            current = Order.objects.values_list("status", flat=True).get(pk=order.id)
            raise InvalidTransition(current, allowed_predecessors(OrderStatus.CANCELLED))
        if previous != OrderStatus.PENDING.value:
            logger.warning(
                "paid order cancelled without refund",
                extra={"order_id": str(order.id), "previous_status": previous},
            )
        order.refresh_from_db()
        return order

    def _transition(self, order_id, target: OrderStatus, **changes) -> Order:
        with transaction.atomic():
            try:
                order = Order.objects.select_for_update().get(pk=order_id)
            except (Order.DoesNotExist, DjangoValidationError, ValueError):
                raise NotFound("ORDER_NOT_FOUND", f"Order {order_id} not found")
            ensure_transition(order.status, target)
            previous = order.status
            order.status = target.value
            for field, value in changes.items():
                setattr(order, field, value)
            order.save()
        logger.info(
            "order status changed",
            extra={"order_id": str(order.id), "from": previous, "to": target.value},
        )
        return order

    # ---- queries ----

    def get_order(self, actor: Actor, order_id) -> OrderPlacement:
        """Return the order together with its latest payment handle."""
        order = self._get_order(order_id)
        ensure_allowed(actor, "read", "Order", order_attributes(order))
        return OrderPlacement(order=order, payment=self.payments.latest_handle(order))

    def list_orders(self, actor: Actor, filters: OrderFilters):
        qs = Order.objects.all()
        if actor.role == Role.MANAGER:
            pass
        elif actor.role == Role.CLIENT:
            qs = qs.filter(customer_id=actor.id)
        elif actor.role == Role.DELIVERY:
            # Their own deliveries plus every order out for delivery
            qs = qs.filter(Q(delivery_user_id=actor.id) | Q(status=OrderStatus.SHIPPED.value))
        else:
            ensure_allowed(actor, "read", "Order")

        if filters.status:
            qs = qs.filter(status=OrderStatus(filters.status).value)
        if filters.from_date:
            qs = qs.filter(created_at__gte=filters.from_date)
        if filters.to_date:
            qs = qs.filter(created_at__lte=filters.to_date)
        if filters.min_total is not None:
            qs = qs.filter(total__gte=filters.min_total)
        if filters.max_total is not None:
            qs = qs.filter(total__lte=filters.max_total)

        total = qs.count()
        page = list(qs.order_by("-created_at").prefetch_related("items")[filters.skip: filters.skip + filters.take])
        return total, page

    # ---- helpers ----

    @staticmethod
    def _payment_request_failed(order: Order, err: PaymentProviderError) -> None:
        # Stock stays reserved; the processor expiry webhook or an operator releases it
        err.context["order_id"] = str(order.id)
        logger.warning(
            "payment request failed, order left pending",
            extra={"order_id": str(order.id), "code": err.code},
        )

    @staticmethod
    def _check_address_choice(address_id, address) -> None:
        if address_id is None and address is None:
            raise ValidationFailed("SHIPPING_ADDRESS_REQUIRED", "Shipping address is required")
        if address_id is not None and address is not None:
            raise Conflict("ADDRESS_AMBIGUOUS", "Provide either address_id or address, not both")

    @staticmethod
    def _ensure_no_pending_order(user_id) -> None:
        if Order.objects.filter(customer_id=user_id, status=OrderStatus.PENDING.value).exists():
            raise Conflict("PENDING_ORDER_EXISTS", "You already have an order awaiting payment")

    @staticmethod
    def _ensure_purchasable(product: Product) -> None:
        if product.status != Product.Status.ACTIVE:
            raise Conflict("PRODUCT_UNAVAILABLE", f"Product {product.name} is not available")

    @staticmethod
    def _get_product(product_id) -> Product:
        try:
            return Product.objects.get(pk=product_id)
        except (Product.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("PRODUCT_NOT_FOUND", f"Product {product_id} not found")

    @staticmethod
    def _get_order(order_id) -> Order:
        try:
            return Order.objects.get(pk=order_id)
        except (Order.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("ORDER_NOT_FOUND", f"Order {order_id} not found")
