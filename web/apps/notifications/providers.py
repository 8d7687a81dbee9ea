"""Wiring for the notifier port."""

from django.conf import settings

from .adapters import NotifierStub
from .domain import NotifierPort
from .http_adapters import HttpNotificationsClient
from .services import LowStockAlerts


def get_notifier() -> NotifierPort:
    """HTTP client when ``USE_HTTP_ADAPTERS`` is on, in-process stub otherwise."""
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        return HttpNotificationsClient()
    return NotifierStub()


def get_low_stock_alerts() -> LowStockAlerts:
    return LowStockAlerts(notifier=get_notifier())
