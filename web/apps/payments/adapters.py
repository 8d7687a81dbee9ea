"""In-process fake payment gateway.

Implements ``PaymentGatewayPort`` without network calls, for tests and
local development (``PAYMENT_GATEWAY=fake``). Every call is recorded in
``calls`` so tests can assert on what would have been sent to the processor.
Webhook payloads are "signed" with an HMAC of the body under
``FakeGateway.SECRET``; ``sign`` produces a matching header.
"""

import hashlib
import hmac
import json
import uuid
from decimal import Decimal
from typing import Optional

from apps.common.errors import InvalidSignature, PaymentProviderError

from .gateway import CheckoutLine, IntentResult, SessionResult, event_metadata, to_minor_units


class FakeGateway:
    name = "fake"
    SECRET = b"fake-webhook-secret"

    def __init__(self, fail_with: Optional[str] = None):
        # When set, every outbound call raises PaymentProviderError
        self.fail_with = fail_with
        self.calls: list[tuple[str, dict]] = []

    def _record(self, op: str, **kwargs):
        self.calls.append((op, kwargs))
        if self.fail_with:
            raise PaymentProviderError(detail=self.fail_with)

    def create_payment_intent(self, amount, currency, metadata, idempotency_key=None) -> IntentResult:
        self._record(
            "create_payment_intent",
            amount=to_minor_units(amount),
            currency=currency,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
        pid = f"pi_fake_{uuid.uuid4().hex[:16]}"
        return IntentResult(id=pid, client_secret=f"{pid}_secret", status="requires_payment_method")

    def create_payment_link(
        self, lines: list[CheckoutLine], currency, metadata, customer_email=None, idempotency_key=None
    ) -> SessionResult:
        self._record(
            "create_payment_link",
            lines=lines,
            currency=currency,
            metadata=metadata,
            customer_email=customer_email,
            idempotency_key=idempotency_key,
        )
        sid = f"cs_fake_{uuid.uuid4().hex[:16]}"
        return SessionResult(id=sid, url=f"https://checkout.invalid/pay/{sid}", expires_at=0)

    def create_product(self, name, description="", metadata=None) -> str:
        self._record("create_product", name=name, description=description, metadata=metadata)
        return f"prod_fake_{uuid.uuid4().hex[:12]}"

    def update_product(self, product_id, name, description="") -> None:
        self._record("update_product", product_id=product_id, name=name, description=description)

    def archive_product(self, product_id) -> None:
        self._record("archive_product", product_id=product_id)

    def create_price(self, product_id, amount: Decimal, currency) -> str:
        self._record("create_price", product_id=product_id, amount=to_minor_units(amount), currency=currency)
        return f"price_fake_{uuid.uuid4().hex[:12]}"

    def archive_price(self, price_id) -> None:
        self._record("archive_price", price_id=price_id)

    def refund(self, payment_intent_id, amount=None) -> str:
        self._record("refund", payment_intent_id=payment_intent_id, amount=amount)
        return f"re_fake_{uuid.uuid4().hex[:12]}"

    @classmethod
    def sign(cls, payload: bytes) -> str:
        return hmac.new(cls.SECRET, payload, hashlib.sha256).hexdigest()

    def construct_webhook_event(self, payload: bytes, signature: str) -> dict:
        if not signature or not hmac.compare_digest(self.sign(payload), signature):
            raise InvalidSignature(detail="Webhook signature verification failed")
        try:
            return json.loads(payload)
        except ValueError:
            raise InvalidSignature(detail="Webhook payload is not valid JSON")

    def get_metadata(self, event: dict) -> dict:
        return event_metadata(event)
