import pytest

from apps.catalog.models import Product
from apps.orders.models import Order

CREATE_URL = "/api/orders/"
CHECKOUT_URL = "/api/orders/checkout/"


@pytest.fixture
def cart_ready(customer, make_product, as_actor):
    from apps.carts.services import CartService
    p = make_product(price="15.00", stock=5)
    CartService().add_item(as_actor(customer), p.id, 2)
    return p


@pytest.mark.django_db
def test_idempotent_same_payload_returns_same_order_and_status_on_retry(client, customer, auth, address, cart_ready):
    key = "idem-same-1"
    payload = {"address_id": str(address.id)}

    r1 = client.post(CREATE_URL, data=payload, content_type="application/json",
                     HTTP_IDEMPOTENCY_KEY=key, **auth(customer))
    assert r1.status_code == 201
    body1 = r1.json()

    r2 = client.post(CREATE_URL, data=payload, content_type="application/json",
                     HTTP_IDEMPOTENCY_KEY=key, **auth(customer))
    assert r2.status_code == 201
    assert r2.json() == body1
    assert r2.headers.get("Idempotent-Replay") == "true"
    assert Order.objects.count() == 1
    assert Product.objects.get(pk=cart_ready.id).stock == 3


@pytest.mark.django_db
def test_idempotent_conflict_on_different_payload_with_same_key(client, customer, auth, address, address_payload, cart_ready):
    key = "idem-conflict-1"
    r1 = client.post(CREATE_URL, data={"address_id": str(address.id)}, content_type="application/json",
                     HTTP_IDEMPOTENCY_KEY=key, **auth(customer))
    assert r1.status_code == 201

    r2 = client.post(CREATE_URL, data={"address": address_payload}, content_type="application/json",
                     HTTP_IDEMPOTENCY_KEY=key, **auth(customer))
    assert r2.status_code == 409
    assert r2.json()["detail"] == "IDEMPOTENCY_CONFLICT"


@pytest.mark.django_db
def test_idempotent_replay_preserves_error_status(client, customer, auth, address, cart_ready):
    Product.objects.filter(pk=cart_ready.id).update(stock=1)
    key = "idem-409"
    payload = {"address_id": str(address.id)}

    r1 = client.post(CREATE_URL, data=payload, content_type="application/json",
                     HTTP_IDEMPOTENCY_KEY=key, **auth(customer))
    assert r1.status_code == 409
    assert r1.json()["detail"] == "INSUFFICIENT_STOCK"

    Product.objects.filter(pk=cart_ready.id).update(stock=10)
    r2 = client.post(CREATE_URL, data=payload, content_type="application/json",
                     HTTP_IDEMPOTENCY_KEY=key, **auth(customer))
    assert r2.status_code == 409
    assert r2.json() == r1.json()
    assert r2.headers.get("Idempotent-Replay") == "true"
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_same_key_is_scoped_per_caller(client, customer, auth, address_payload, make_product):
    p = make_product(stock=5)
    body = {
        "product_id": str(p.id),
        "quantity": 1,
        "contact": {"email": "guest@example.com"},
        "address": address_payload,
    }
    r1 = client.post(CHECKOUT_URL, data=body, content_type="application/json", HTTP_IDEMPOTENCY_KEY="k1")
    assert r1.status_code == 201

    r2 = client.post(CHECKOUT_URL, data=body, content_type="application/json",
                     HTTP_IDEMPOTENCY_KEY="k1", **auth(customer))
    assert r2.status_code == 201
    assert r2.json()["id"] != r1.json()["id"]
    assert r2.headers.get("Idempotent-Replay") is None


@pytest.mark.django_db
def test_unexpected_failure_frees_the_key_for_a_retry(client, customer, auth, address, cart_ready, monkeypatch):
    from apps.orders import providers
    from apps.orders.models import IdempotencyKey

    real = providers.get_order_service
    calls = []

    def _flaky_service():
        svc = real()
        create = svc.create_from_cart

        def _create(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("database went away")
            return create(*args, **kwargs)

        svc.create_from_cart = _create
        return svc

    monkeypatch.setattr(providers, "get_order_service", _flaky_service)
    payload = {"address_id": str(address.id)}

    with pytest.raises(RuntimeError):
        client.post(CREATE_URL, data=payload, content_type="application/json",
                    HTTP_IDEMPOTENCY_KEY="idem-flaky-1", **auth(customer))
    assert IdempotencyKey.objects.count() == 0

    r = client.post(CREATE_URL, data=payload, content_type="application/json",
                    HTTP_IDEMPOTENCY_KEY="idem-flaky-1", **auth(customer))
    assert r.status_code == 201
    assert r.headers.get("Idempotent-Replay") is None
    assert len(calls) == 2
    assert Order.objects.count() == 1
    assert IdempotencyKey.objects.get().response_status == 201
