from django.urls import path

from .views import (
    CancelOrderView,
    CheckoutView,
    DeliverOrderView,
    OrdersCollectionView,
    ProcessOrderView,
    RetrieveOrderView,
    ShipOrderView,
)

app_name = "orders"

urlpatterns = [
    path("", OrdersCollectionView.as_view(), name="orders-collection"),  # GET list / POST create from cart
    path("checkout/", CheckoutView.as_view(), name="orders-checkout"),
    path("<uuid:oid>/", RetrieveOrderView.as_view(), name="orders-detail"),
    path("<uuid:oid>/process/", ProcessOrderView.as_view(), name="orders-process"),
    path("<uuid:oid>/ship/", ShipOrderView.as_view(), name="orders-ship"),
    path("<uuid:oid>/deliver/", DeliverOrderView.as_view(), name="orders-deliver"),
    path("<uuid:oid>/cancel/", CancelOrderView.as_view(), name="orders-cancel"),
]
