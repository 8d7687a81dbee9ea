import json
import uuid
from decimal import Decimal

import pytest

from apps.carts.services import CartService
from apps.notifications.adapters import NotifierStub
from apps.notifications.services import LowStockAlerts
from apps.payments.adapters import FakeGateway
from apps.payments.reconciler import WebhookReconciler


@pytest.fixture
def notifier():
    return NotifierStub()


@pytest.fixture
def reconciler(notifier):
    return WebhookReconciler(
        gateway=FakeGateway(), carts=CartService(), alerts=LowStockAlerts(notifier, threshold=3)
    )


@pytest.fixture
def pending_order(customer, as_actor, address, make_product):
    """A cart checkout of 2 units of a stock-5 product, awaiting payment."""
    from apps.orders.providers import get_order_service
    product = make_product(name="Kettle", price="30.00", stock=5)
    CartService().add_item(as_actor(customer), product.id, 2)
    placement = get_order_service().create_from_cart(as_actor(customer), address_id=address.id)
    return placement.order


@pytest.fixture
def make_event():
    def _make(kind, order_id=None, obj=None, event_id=None):
        data = {"object": "payment_intent", "id": f"pi_{uuid.uuid4().hex[:10]}", "metadata": {}}
        if kind.startswith("checkout.session"):
            data = {
                "object": "checkout.session",
                "id": f"cs_{uuid.uuid4().hex[:10]}",
                "payment_status": "paid",
                "payment_intent": f"pi_{uuid.uuid4().hex[:10]}",
                "metadata": {},
            }
        if order_id is not None:
            data["metadata"]["order_id"] = str(order_id)
        data.update(obj or {})
        return {"id": event_id or f"evt_{uuid.uuid4().hex}", "type": kind, "data": {"object": data}}
    return _make


@pytest.fixture
def signed_post(client):
    """POST an event to the webhook endpoint signed for the fake gateway."""
    def _post(event):
        payload = json.dumps(event).encode()
        return client.post(
            "/api/payments/webhooks/",
            data=payload,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=FakeGateway.sign(payload),
        )
    return _post


D = Decimal
