from decimal import Decimal

import pytest
import stripe

from apps.common.errors import InvalidSignature, PaymentProviderError
from apps.payments.gateway import CheckoutLine, StripeGateway, to_minor_units


@pytest.fixture
def recorded(monkeypatch):
    calls = []

    def _fake(result):
        def _create(**kwargs):
            calls.append(kwargs)
            return result
        return _create

    return calls, _fake


@pytest.mark.parametrize("amount,cents", [
    (Decimal("10.00"), 1000),
    (Decimal("0.005"), 1),
    (Decimal("19.994"), 1999),
    (Decimal("0"), 0),
])
def test_to_minor_units(amount, cents):
    assert to_minor_units(amount) == cents


def test_create_payment_intent_sends_cents_and_per_call_key(monkeypatch, recorded):
    calls, fake = recorded
    monkeypatch.setattr(
        stripe.PaymentIntent, "create",
        fake({"id": "pi_1", "client_secret": "pi_1_secret", "status": "requires_payment_method"}),
    )
    gw = StripeGateway(api_key="sk_test_x", webhook_secret="whsec")
    res = gw.create_payment_intent(Decimal("12.34"), "usd", {"order_id": "o-1"}, idempotency_key="order-o-1-intent")

    assert res.client_secret == "pi_1_secret"
    sent = calls[0]
    assert sent["amount"] == 1234
    assert sent["api_key"] == "sk_test_x"
    assert sent["idempotency_key"] == "order-o-1-intent"
    assert sent["automatic_payment_methods"] == {"enabled": True, "allow_redirects": "never"}


def test_missing_idempotency_key_is_not_sent(monkeypatch, recorded):
    calls, fake = recorded
    monkeypatch.setattr(stripe.PaymentIntent, "create", fake({"id": "pi_2", "client_secret": "s", "status": "x"}))
    StripeGateway(api_key="sk", webhook_secret="w").create_payment_intent(Decimal("1"), "usd", {})
    assert "idempotency_key" not in calls[0]


def test_payment_link_uses_price_id_or_inline_price(monkeypatch, recorded, settings):
    settings.CHECKOUT_SESSION_TTL_SECONDS = 1800
    calls, fake = recorded
    monkeypatch.setattr(stripe.checkout.Session, "create", fake({"id": "cs_1", "url": "https://pay/cs_1"}))
    gw = StripeGateway(api_key="sk", webhook_secret="w")
    res = gw.create_payment_link(
        [
            CheckoutLine(name="Poster", unit_amount=Decimal("5.00"), quantity=2, price_id="price_9"),
            CheckoutLine(name="Frame", unit_amount=Decimal("7.50"), quantity=1),
        ],
        "usd",
        {"order_id": "o-2", "order_type": "single_product_purchase"},
        customer_email="g@example.com",
    )

    assert res.url == "https://pay/cs_1"
    sent = calls[0]
    assert sent["mode"] == "payment"
    assert sent["line_items"][0] == {"price": "price_9", "quantity": 2}
    assert sent["line_items"][1]["price_data"]["unit_amount"] == 750
    assert sent["payment_intent_data"] == {"metadata": sent["metadata"]}
    assert sent["customer_email"] == "g@example.com"
    assert sent["expires_at"] == res.expires_at


def test_stripe_errors_become_provider_errors(monkeypatch):
    def _fail(**kwargs):
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe.PaymentIntent, "create", _fail)
    with pytest.raises(PaymentProviderError) as exc:
        StripeGateway(api_key="sk", webhook_secret="w").create_payment_intent(Decimal("1"), "usd", {})
    assert exc.value.http_status == 502


def test_product_and_price_lifecycle(monkeypatch, recorded):
    calls, fake = recorded
    monkeypatch.setattr(stripe.Product, "create", fake({"id": "prod_1"}))
    monkeypatch.setattr(stripe.Product, "modify", fake({"id": "prod_1"}))
    monkeypatch.setattr(stripe.Price, "create", fake({"id": "price_1"}))
    monkeypatch.setattr(stripe.Price, "modify", fake({"id": "price_1"}))
    gw = StripeGateway(api_key="sk", webhook_secret="w")

    assert gw.create_product("Lamp", "Brass") == "prod_1"
    assert gw.create_price("prod_1", Decimal("19.99"), "usd") == "price_1"
    gw.archive_price("price_1")
    gw.archive_product("prod_1")

    assert calls[1]["unit_amount"] == 1999
    assert calls[2] == {"api_key": "sk", "id": "price_1", "active": False}
    assert calls[3] == {"api_key": "sk", "id": "prod_1", "active": False}


def test_webhook_without_secret_or_signature_is_rejected():
    with pytest.raises(InvalidSignature):
        StripeGateway(api_key="sk", webhook_secret="").construct_webhook_event(b"{}", "t=1,v1=x")
    with pytest.raises(InvalidSignature):
        StripeGateway(api_key="sk", webhook_secret="whsec").construct_webhook_event(b"{}", "")


def test_get_metadata_reads_event_object():
    gw = StripeGateway(api_key="sk", webhook_secret="w")
    event = {"data": {"object": {"metadata": {"order_id": "o-9"}}}}
    assert gw.get_metadata(event) == {"order_id": "o-9"}
    assert gw.get_metadata({}) == {}
