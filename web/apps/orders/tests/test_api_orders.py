import pytest

from apps.catalog.models import Product
from apps.orders import providers
from apps.orders.models import Order
from apps.payments.adapters import FakeGateway

CREATE_URL = "/api/orders/"
CHECKOUT_URL = "/api/orders/checkout/"


def _fill(customer, product, qty, as_actor):
    from apps.carts.services import CartService
    CartService().add_item(as_actor(customer), product.id, qty)


@pytest.mark.django_db
def test_create_order_from_cart_returns_201_with_client_secret(client, customer, auth, address, make_product, as_actor):
    p = make_product(price="12.50", stock=4)
    _fill(customer, p, 2, as_actor)

    r = client.post(CREATE_URL, data={"address_id": str(address.id)}, content_type="application/json", **auth(customer))
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "PENDING"
    assert body["total"] == "25.00"
    assert body["payment"]["kind"] == "client_secret"
    assert body["payment"]["value"].startswith("pi_fake_")
    assert body["items"][0]["name_at_purchase"] == p.name
    assert r.headers.get("X-Request-ID")


@pytest.mark.django_db
def test_create_order_with_invalid_body_is_400(client, customer, auth):
    r = client.post(CREATE_URL, data={"address_id": "not-a-uuid"}, content_type="application/json", **auth(customer))
    assert r.status_code == 400
    assert r.json()["detail"] == "VALIDATION_FAILED"


@pytest.mark.django_db
def test_guest_cannot_check_out_a_cart(client, address_payload):
    r = client.post(CREATE_URL, data={"address": address_payload}, content_type="application/json")
    assert r.status_code == 403


@pytest.mark.django_db
def test_provider_failure_is_502_with_order_id(client, customer, auth, address, make_product, as_actor, monkeypatch):
    from apps.payments.services import PaymentsService
    p = make_product(stock=3)
    _fill(customer, p, 1, as_actor)
    failing = PaymentsService(FakeGateway(fail_with="processor unavailable"))
    real = providers.get_order_service

    def _service():
        svc = real()
        svc.payments = failing
        return svc

    monkeypatch.setattr(providers, "get_order_service", _service)

    r = client.post(CREATE_URL, data={"address_id": str(address.id)}, content_type="application/json", **auth(customer))
    assert r.status_code == 502
    body = r.json()
    assert body["detail"] == "PAYMENT_PROVIDER_ERROR"
    order = Order.objects.get(pk=body["order_id"])
    assert order.status == "PENDING"
    assert Product.objects.get(pk=p.id).stock == 2


@pytest.mark.django_db
def test_guest_checkout_returns_redirect_url(client, address_payload, make_product):
    p = make_product(price="9.99", stock=2)
    r = client.post(
        CHECKOUT_URL,
        data={
            "product_id": str(p.id),
            "quantity": 1,
            "contact": {"email": "guest@example.com", "full_name": "Gus"},
            "address": address_payload,
        },
        content_type="application/json",
    )
    assert r.status_code == 201
    body = r.json()
    assert body["payment"]["kind"] == "redirect_url"
    assert body["payment"]["value"].startswith("https://")
    assert "customer_id" not in body


@pytest.mark.django_db
def test_read_order_own_and_foreign(client, customer, other_customer, auth, address, make_product, as_actor):
    _fill(customer, make_product(), 1, as_actor)
    oid = client.post(
        CREATE_URL, data={"address_id": str(address.id)}, content_type="application/json", **auth(customer)
    ).json()["id"]

    r = client.get(f"{CREATE_URL}{oid}/", **auth(customer))
    assert r.status_code == 200
    assert r.json()["id"] == oid
    assert r.json()["payment"]["kind"] == "client_secret"

    assert client.get(f"{CREATE_URL}{oid}/", **auth(other_customer)).status_code == 403


@pytest.mark.django_db
def test_read_unknown_order_is_404(client, manager, auth):
    import uuid
    r = client.get(f"{CREATE_URL}{uuid.uuid4()}/", **auth(manager))
    assert r.status_code == 404
    assert r.json()["detail"] == "ORDER_NOT_FOUND"


@pytest.mark.django_db
def test_list_orders_with_filters(client, customer, auth):
    from decimal import Decimal
    Order.objects.create(customer=customer, total=Decimal("5.00"))
    Order.objects.create(customer=customer, total=Decimal("80.00"), status="PAID")

    r = client.get(CREATE_URL, {"status": "PAID"}, **auth(customer))
    assert r.status_code == 200
    assert r.json()["count"] == 1
    assert r.json()["results"][0]["status"] == "PAID"

    r = client.get(CREATE_URL, {"take": "1"}, **auth(customer))
    assert r.json()["count"] == 2
    assert len(r.json()["results"]) == 1

    assert client.get(CREATE_URL, {"take": "0"}, **auth(customer)).status_code == 400


@pytest.mark.django_db
def test_status_endpoints(client, customer, manager, courier, auth):
    from decimal import Decimal
    order = Order.objects.create(customer=customer, total=Decimal("5.00"), status="PAID")
    base = f"{CREATE_URL}{order.id}"

    assert client.post(f"{base}/process/", **auth(manager)).json()["status"] == "PROCESSING"
    r = client.post(f"{base}/ship/", data={"delivery_user_id": str(courier.id)},
                    content_type="application/json", **auth(manager))
    assert r.status_code == 200
    assert r.json()["delivery_user_id"] == str(courier.id)

    r = client.post(f"{base}/cancel/", **auth(manager))
    assert r.status_code == 409
    assert r.json()["detail"] == "INVALID_TRANSITION"
    assert r.json()["current_status"] == "SHIPPED"

    assert client.post(f"{base}/deliver/", **auth(courier)).json()["status"] == "DELIVERED"


@pytest.mark.django_db
def test_client_cancels_pending_order(client, customer, auth, address, make_product, as_actor):
    p = make_product(stock=2)
    _fill(customer, p, 2, as_actor)
    oid = client.post(
        CREATE_URL, data={"address_id": str(address.id)}, content_type="application/json", **auth(customer)
    ).json()["id"]
    assert Product.objects.get(pk=p.id).stock == 0

    r = client.post(f"{CREATE_URL}{oid}/cancel/", **auth(customer))
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"
    assert Product.objects.get(pk=p.id).stock == 2


@pytest.mark.django_db
def test_saving_an_order_does_not_read_other_orders(customer):
    from django.db import connection
    from django.test.utils import CaptureQueriesContext

    Order.objects.create(customer=customer)
    with CaptureQueriesContext(connection) as ctx:
        Order.objects.create(customer=customer)
    selects = [q["sql"] for q in ctx.captured_queries if q["sql"].lstrip().upper().startswith("SELECT")]
    assert selects == []


@pytest.mark.django_db
def test_client_cancel_of_shipped_order_is_409(client, customer, courier, auth, address, make_product, as_actor):
    p = make_product(stock=2)
    _fill(customer, p, 1, as_actor)
    oid = client.post(
        CREATE_URL, data={"address_id": str(address.id)}, content_type="application/json", **auth(customer)
    ).json()["id"]
    Order.objects.filter(pk=oid).update(status="SHIPPED", delivery_user=courier)

    r = client.post(f"{CREATE_URL}{oid}/cancel/", **auth(customer))
    assert r.status_code == 409
    body = r.json()
    assert body["detail"] == "INVALID_TRANSITION"
    assert body["current_status"] == "SHIPPED"
