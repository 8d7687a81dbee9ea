"""Wiring for the payment gateway, the reconciler and the webhook ingress."""

from django.conf import settings

from apps.carts.services import CartService
from apps.notifications.providers import get_low_stock_alerts

from .adapters import FakeGateway
from .gateway import PaymentGatewayPort, StripeGateway
from .reconciler import WebhookReconciler
from .services import PaymentsService
from .webhooks import WebhookIngress


def get_payment_gateway() -> PaymentGatewayPort:
    """Stripe unless ``PAYMENT_GATEWAY`` says ``fake``."""
    kind = getattr(settings, "PAYMENT_GATEWAY", "stripe")
    if kind == "fake":
        return FakeGateway()
    if kind == "stripe":
        return StripeGateway()
    raise ValueError(f"Unknown PAYMENT_GATEWAY {kind!r}")


def get_payments_service() -> PaymentsService:
    return PaymentsService(gateway=get_payment_gateway())


def get_webhook_ingress() -> WebhookIngress:
    gateway = get_payment_gateway()
    reconciler = WebhookReconciler(gateway=gateway, carts=CartService(), alerts=get_low_stock_alerts())
    return WebhookIngress(gateway=gateway, reconciler=reconciler)
