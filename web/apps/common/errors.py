"""Error kinds shared by every app.

Services raise these; the DRF exception handler in ``gateway.exceptions``
turns them into HTTP responses. ``str(err)`` is the stable code, so callers
that only look at the message still get something machine readable.
"""

from typing import Any


class DomainError(ValueError):
    """Base error carrying a stable ``code``, a human ``detail`` and context."""

    code = "DOMAIN_ERROR"
    http_status = 400

    def __init__(self, code: str | None = None, detail: str | None = None, **context: Any):
        self.code = code or self.code
        self.detail = detail or self.code
        self.context = context
        super().__init__(self.code)

    def as_body(self) -> dict:
        body = {"detail": self.code, "message": self.detail}
        body.update(self.context)
        return body


class ValidationFailed(DomainError):
    code = "VALIDATION_FAILED"
    http_status = 400


class Forbidden(DomainError):
    code = "FORBIDDEN"
    http_status = 403


class NotFound(DomainError):
    code = "NOT_FOUND"
    http_status = 404


class Conflict(DomainError):
    code = "CONFLICT"
    http_status = 409


class InsufficientStock(Conflict):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id, requested: int, product_name: str | None = None):
        self.product_id = product_id
        self.requested = requested
        label = product_name or str(product_id)
        super().__init__(
            detail=f"Insufficient stock for product {label}",
            product_id=str(product_id),
            requested=requested,
        )


class InvalidTransition(Conflict):
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, allowed):
        self.current = current
        self.allowed = [str(s) for s in allowed]
        super().__init__(
            detail=(
                f"Invalid status transition. Current status: {current}. "
                f"Allowed statuses: {', '.join(self.allowed)}"
            ),
            current_status=current,
            allowed_statuses=self.allowed,
        )


class NotEligible(DomainError):
    code = "PROMO_CODE_NOT_ELIGIBLE"
    http_status = 422


class BelowMinimumPurchase(NotEligible):
    code = "BELOW_MINIMUM_PURCHASE"

    def __init__(self, minimum, amount):
        self.minimum = minimum
        self.amount = amount
        super().__init__(
            detail=f"Minimum purchase amount for this promo code is {minimum}",
            minimum_purchase_amount=str(minimum),
            purchase_amount=str(amount),
        )


class InvalidSignature(DomainError):
    code = "INVALID_SIGNATURE"
    http_status = 400


class PaymentProviderError(DomainError):
    code = "PAYMENT_PROVIDER_ERROR"
    http_status = 502
