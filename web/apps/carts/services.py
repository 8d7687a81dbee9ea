"""Shopping cart operations.

A customer has at most one ACTIVE cart, created lazily on the first
mutation. Stock checks here are soft: they reject obviously impossible
quantities early, and the order workflow re-checks atomically when it
reserves.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from apps.catalog.models import Product
from apps.common.errors import Conflict, InsufficientStock, NotFound
from apps.common.policy import Actor, ensure_allowed
from apps.orders.pricing import PriceLine, compute_totals
from apps.promotions.services import PromoCodeService

from .models import Cart, CartItem
from .schemas import CartItemOut, CartOut

logger = logging.getLogger("carts")


class CartService:
    def __init__(self, promo_codes: PromoCodeService | None = None):
        self.promo_codes = promo_codes or PromoCodeService()

    # ---- lookups ----

    def get_active_cart(self, user_id) -> Cart:
        cart = Cart.objects.filter(customer_id=user_id, status=Cart.Status.ACTIVE).first()
        if cart is None:
            raise NotFound("CART_NOT_FOUND", "Active cart not found")
        return cart

    def get_or_create_active_cart(self, user_id) -> Cart:
        cart = Cart.objects.filter(customer_id=user_id, status=Cart.Status.ACTIVE).first()
        if cart is None:
            cart = Cart.objects.create(customer_id=user_id)
            logger.info("cart created", extra={"cart_id": str(cart.id), "user_id": str(user_id)})
        return cart

    def view(self, actor: Actor) -> Cart:
        ensure_allowed(actor, "read", "Cart", {"user_id": actor.id})
        return self.get_or_create_active_cart(actor.id)

    # ---- mutations ----

    @transaction.atomic
    def add_item(self, actor: Actor, product_id, quantity: int) -> Cart:
        ensure_allowed(actor, "update", "Cart", {"user_id": actor.id})
        product = self._get_product(product_id)
        if product.status != Product.Status.ACTIVE:
            raise Conflict("PRODUCT_UNAVAILABLE", f"Product {product.name} is not available")

        cart = self.get_or_create_active_cart(actor.id)
        item = CartItem.objects.select_for_update().filter(cart=cart, product=product).first()
        new_quantity = quantity + (item.quantity if item else 0)
        if new_quantity > product.stock:
            raise InsufficientStock(product.id, new_quantity, product.name)

        if item:
            item.quantity = new_quantity
            item.save(update_fields=["quantity"])
        else:
            CartItem.objects.create(cart=cart, product=product, quantity=quantity)
        logger.info(
            "cart item added",
            extra={"cart_id": str(cart.id), "product_id": str(product.id), "quantity": new_quantity},
        )
        return cart

    @transaction.atomic
    def update_item(self, actor: Actor, item_id, quantity: int) -> Cart:
        ensure_allowed(actor, "update", "Cart", {"user_id": actor.id})
        item = self._get_item(actor, item_id)
        if quantity > item.product.stock:
            raise InsufficientStock(item.product_id, quantity, item.product.name)
        item.quantity = quantity
        item.save(update_fields=["quantity"])
        return item.cart

    def remove_item(self, actor: Actor, item_id) -> Cart:
        ensure_allowed(actor, "update", "Cart", {"user_id": actor.id})
        item = self._get_item(actor, item_id)
        cart = item.cart
        item.delete()
        return cart

    def clear(self, actor: Actor) -> Cart:
        ensure_allowed(actor, "update", "Cart", {"user_id": actor.id})
        cart = self.get_or_create_active_cart(actor.id)
        cart.items.all().delete()
        cart.promo_code = None
        cart.save(update_fields=["promo_code", "updated_at"])
        return cart

    def apply_promo_code(self, actor: Actor, code: str) -> Cart:
        """Validate ``code`` against the live subtotal and attach it."""
        ensure_allowed(actor, "update", "Cart", {"user_id": actor.id})
        cart = self.get_or_create_active_cart(actor.id)
        promo = self.promo_codes.validate(code, self.subtotal(cart))
        cart.promo_code = promo
        cart.save(update_fields=["promo_code", "updated_at"])
        logger.info("promo code attached", extra={"cart_id": str(cart.id), "code": promo.code})
        return cart

    def mark_as_ordered(self, cart_id) -> bool:
        updated = Cart.objects.filter(pk=cart_id, status=Cart.Status.ACTIVE).update(
            status=Cart.Status.ORDERED
        )
        return updated == 1

    # ---- helpers ----

    def lines(self, cart: Cart) -> list[CartItem]:
        return list(cart.items.select_related("product"))

    def subtotal(self, cart: Cart):
        lines = [PriceLine(i.product.price, i.quantity) for i in self.lines(cart)]
        return compute_totals(lines).subtotal

    def to_dto(self, cart: Cart) -> CartOut:
        items = self.lines(cart)
        return CartOut(
            id=cart.id,
            status=cart.status,
            promo_code=cart.promo_code.code if cart.promo_code_id else None,
            items=[
                CartItemOut(
                    id=i.id,
                    product_id=i.product_id,
                    name=i.product.name,
                    unit_price=i.product.price,
                    quantity=i.quantity,
                )
                for i in items
            ],
            subtotal=compute_totals([PriceLine(i.product.price, i.quantity) for i in items]).subtotal,
        )

    def _get_product(self, product_id) -> Product:
        try:
            return Product.objects.get(pk=product_id)
        except (Product.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("PRODUCT_NOT_FOUND", f"Product {product_id} not found")

    def _get_item(self, actor: Actor, item_id) -> CartItem:
        item = (
            CartItem.objects.select_related("cart", "product")
            .filter(pk=item_id, cart__customer_id=actor.id, cart__status=Cart.Status.ACTIVE)
            .first()
        )
        if item is None:
            raise NotFound("CART_ITEM_NOT_FOUND", f"Cart item {item_id} not found")
        return item
