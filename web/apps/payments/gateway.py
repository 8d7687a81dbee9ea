"""Payment gateway port and its Stripe implementation.

Amounts cross this boundary exactly once: ``Decimal`` inside the system,
integer minor units (cents) on the processor side, converted with
``to_minor_units``. The Stripe adapter passes ``api_key`` per call instead
of mutating the module-global key, so tests and multiple accounts do not
step on each other.
"""

import json
import logging
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Protocol

import stripe
from django.conf import settings

from apps.common.errors import InvalidSignature, PaymentProviderError

logger = logging.getLogger("payments")


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to integer cents, rounding half up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---- DTOs ----
@dataclass(frozen=True)
class IntentResult:
    id: str
    client_secret: str
    status: str


@dataclass(frozen=True)
class SessionResult:
    id: str
    url: str
    expires_at: int


@dataclass(frozen=True)
class CheckoutLine:
    name: str
    unit_amount: Decimal
    quantity: int
    price_id: Optional[str] = None


# ---- Port ----
class PaymentGatewayPort(Protocol):
    """Capabilities the order workflow and the reconciler need from a processor."""

    name: str

    def create_payment_intent(
        self, amount: Decimal, currency: str, metadata: dict, idempotency_key: Optional[str] = None
    ) -> IntentResult: ...

    def create_payment_link(
        self,
        lines: list[CheckoutLine],
        currency: str,
        metadata: dict,
        customer_email: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> SessionResult: ...

    def create_product(self, name: str, description: str = "", metadata: Optional[dict] = None) -> str: ...

    def update_product(self, product_id: str, name: str, description: str = "") -> None: ...

    def archive_product(self, product_id: str) -> None: ...

    def create_price(self, product_id: str, amount: Decimal, currency: str) -> str: ...

    def archive_price(self, price_id: str) -> None: ...

    def refund(self, payment_intent_id: str, amount: Optional[Decimal] = None) -> str: ...

    def construct_webhook_event(self, payload: bytes, signature: str) -> dict: ...

    def get_metadata(self, event: dict) -> dict: ...


def event_metadata(event: dict) -> dict:
    obj = (event.get("data") or {}).get("object") or {}
    return dict(obj.get("metadata") or {})


# ---- Stripe ----
class StripeGateway:
    name = "stripe"

    def __init__(self, api_key: str | None = None, webhook_secret: str | None = None):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        )

    def _call(self, op: str, fn, **kwargs):
        if kwargs.get("idempotency_key") is None:
            kwargs.pop("idempotency_key", None)
        try:
            return fn(api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            logger.error(
                "stripe call failed",
                extra={"op": op, "stripe_code": getattr(e, "code", None), "error": str(e)},
            )
            raise PaymentProviderError(detail=f"Payment processor error during {op}")

    def create_payment_intent(self, amount, currency, metadata, idempotency_key=None) -> IntentResult:
        intent = self._call(
            "create_payment_intent",
            stripe.PaymentIntent.create,
            amount=to_minor_units(amount),
            currency=currency,
            metadata=metadata,
            automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
            idempotency_key=idempotency_key,
        )
        return IntentResult(id=intent["id"], client_secret=intent["client_secret"], status=intent["status"])

    def create_payment_link(
        self, lines, currency, metadata, customer_email=None, idempotency_key=None
    ) -> SessionResult:
        line_items = []
        for line in lines:
            if line.price_id:
                line_items.append({"price": line.price_id, "quantity": line.quantity})
            else:
                line_items.append({
                    "price_data": {
                        "currency": currency,
                        "unit_amount": to_minor_units(line.unit_amount),
                        "product_data": {"name": line.name},
                    },
                    "quantity": line.quantity,
                })
        expires_at = int(time.time()) + settings.CHECKOUT_SESSION_TTL_SECONDS
        params = dict(
            mode="payment",
            line_items=line_items,
            metadata=metadata,
            payment_intent_data={"metadata": metadata},
            expires_at=expires_at,
            success_url=settings.CHECKOUT_SUCCESS_URL,
            cancel_url=settings.CHECKOUT_CANCEL_URL,
            idempotency_key=idempotency_key,
        )
        if customer_email:
            params["customer_email"] = customer_email
        session = self._call("create_payment_link", stripe.checkout.Session.create, **params)
        return SessionResult(id=session["id"], url=session["url"], expires_at=expires_at)

    def create_product(self, name, description="", metadata=None) -> str:
        params = {"name": name, "metadata": metadata or {}}
        if description:
            params["description"] = description
        product = self._call("create_product", stripe.Product.create, **params)
        return product["id"]

    def update_product(self, product_id, name, description="") -> None:
        params = {"name": name}
        if description:
            params["description"] = description
        self._call("update_product", stripe.Product.modify, id=product_id, **params)

    def archive_product(self, product_id) -> None:
        self._call("archive_product", stripe.Product.modify, id=product_id, active=False)

    def create_price(self, product_id, amount, currency) -> str:
        price = self._call(
            "create_price",
            stripe.Price.create,
            product=product_id,
            unit_amount=to_minor_units(amount),
            currency=currency,
        )
        return price["id"]

    def archive_price(self, price_id) -> None:
        self._call("archive_price", stripe.Price.modify, id=price_id, active=False)

    def refund(self, payment_intent_id, amount=None) -> str:
        params = {"payment_intent": payment_intent_id}
        if amount is not None:
            params["amount"] = to_minor_units(amount)
        refund = self._call("refund", stripe.Refund.create, **params)
        return refund["id"]

    def construct_webhook_event(self, payload: bytes, signature: str) -> dict:
        """Verify the ``Stripe-Signature`` header and return the event as a dict.

        Raises:
            InvalidSignature: Missing secret, missing header, bad signature or
                an unparsable body. Nothing is trusted in any of those cases.
        """
        if not self.webhook_secret or not signature:
            raise InvalidSignature(detail="Missing webhook signature or secret")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError:
            raise InvalidSignature(detail="Webhook signature verification failed")
        except ValueError:
            raise InvalidSignature(detail="Webhook payload is not valid JSON")
        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        return json.loads(body)

    def get_metadata(self, event: dict) -> dict:
        return event_metadata(event)
