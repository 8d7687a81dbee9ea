"""HTTP views for the orders app.

Views stay small: validate the body with pydantic, build an ``Actor`` from
the authenticated customer, delegate to the ``OrderService`` returned by
``providers.get_order_service()`` and render the result. Domain errors are
rendered by ``gateway.exceptions.domain_exception_handler``.

Idempotency: both create endpoints honour an ``Idempotency-Key`` header. The
first request is processed and its response stored; a retry with the same
payload replays it with ``Idempotent-Replay: true``; the same key with a
different payload is answered with 409.
"""

from typing import Callable

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.errors import Conflict, DomainError
from apps.common.policy import Actor

from . import providers
from .domain import OrderFilters
from .idempotency import finalize, get_or_create_idempotent, release, scoped_key
from .schemas import (
    CheckoutDTO,
    CreateOrderDTO,
    OrderItemOut,
    OrderListQuery,
    OrderOut,
    PaymentHandleOut,
    ShipOrderDTO,
)


def order_to_dict(order, handle=None) -> dict:
    dto = OrderOut(
        id=order.id,
        status=order.status,
        subtotal=order.subtotal,
        discount=order.discount,
        tax=order.tax,
        total=order.total,
        currency=order.currency,
        customer_id=order.customer_id,
        delivery_user_id=order.delivery_user_id,
        promo_code_snapshot=order.promo_code_snapshot,
        shipping_address_snapshot=order.shipping_address_snapshot,
        created_at=order.created_at,
        items=[OrderItemOut.model_validate(i) for i in order.items.all()],
        payment=(
            PaymentHandleOut(kind=handle.kind, value=handle.value, external_id=handle.external_id)
            if handle
            else None
        ),
    )
    return dto.model_dump(mode="json", exclude_none=True)


def _idempotent_create(request, scope: str, actor: Actor, create: Callable) -> Response:
    idem_key = request.headers.get("Idempotency-Key")
    rec = None
    if idem_key:
        existing, rec = get_or_create_idempotent(scoped_key(idem_key, scope, actor.id), request.data)
        if existing:
            if rec.response_status == 0:
                raise Conflict("IDEMPOTENCY_IN_PROGRESS", "A request with this key is still in progress")
            resp = Response(rec.response_body, status=rec.response_status)
            resp["Idempotent-Replay"] = "true"
            return resp

    try:
        placement = create()
    except DomainError as e:
        if rec:
            finalize(rec, e.http_status, e.as_body())
        raise
    except Exception:
        # Unexpected failure: free the key so a retry runs the request again
        if rec:
            release(rec)
        raise

    body = order_to_dict(placement.order, placement.payment)
    if rec:
        finalize(rec, status.HTTP_201_CREATED, body, order_id=placement.order.id)
    return Response(body, status=status.HTTP_201_CREATED)


class OrdersCollectionView(APIView):
    """List orders visible to the caller, or check out the active cart."""

    def get(self, request):
        actor = Actor.from_user(request.user)
        q = OrderListQuery.model_validate(request.GET.dict())
        total, orders = providers.get_order_service().list_orders(
            actor, OrderFilters(**q.model_dump())
        )
        return Response(
            {
                "count": total,
                "take": q.take,
                "skip": q.skip,
                "results": [order_to_dict(o) for o in orders],
            }
        )

    def post(self, request):
        """Create an order from the caller's active cart.

        Returns:
            Response: 201 with the order and a ``payment`` handle holding the
            client secret. Replays return the stored status code.
        """
        actor = Actor.from_user(request.user)
        dto = CreateOrderDTO.model_validate(request.data)
        service = providers.get_order_service()
        return _idempotent_create(
            request,
            "cart",
            actor,
            lambda: service.create_from_cart(
                actor, address_id=dto.address_id, address=dto.address, promo_code=dto.promo_code
            ),
        )


class CheckoutView(APIView):
    """Single-product purchase through a redirect checkout session."""

    def post(self, request):
        actor = Actor.from_user(request.user)
        dto = CheckoutDTO.model_validate(request.data)
        service = providers.get_order_service()
        return _idempotent_create(
            request,
            "checkout",
            actor,
            lambda: service.create_from_single_product(
                actor,
                dto.product_id,
                dto.quantity,
                contact=dto.contact,
                address_id=dto.address_id,
                address=dto.address,
            ),
        )


class RetrieveOrderView(APIView):
    def get(self, request, oid):
        placement = providers.get_order_service().get_order(Actor.from_user(request.user), oid)
        return Response(order_to_dict(placement.order, placement.payment))


class ProcessOrderView(APIView):
    def post(self, request, oid):
        order = providers.get_order_service().process_order(Actor.from_user(request.user), oid)
        return Response(order_to_dict(order))


class ShipOrderView(APIView):
    def post(self, request, oid):
        dto = ShipOrderDTO.model_validate(request.data)
        order = providers.get_order_service().ship_order(
            Actor.from_user(request.user), oid, dto.delivery_user_id
        )
        return Response(order_to_dict(order))


class DeliverOrderView(APIView):
    def post(self, request, oid):
        order = providers.get_order_service().deliver_order(Actor.from_user(request.user), oid)
        return Response(order_to_dict(order))


class CancelOrderView(APIView):
    def post(self, request, oid):
        order = providers.get_order_service().cancel_order(Actor.from_user(request.user), oid)
        return Response(order_to_dict(order))
