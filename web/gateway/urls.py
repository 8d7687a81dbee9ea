from django.urls import include, path

urlpatterns = [
    path("", include("apps.monitoring.urls")),
    path("api/orders/", include("apps.orders.urls")),
    path("api/cart/", include("apps.carts.urls")),
    path("api/promo-codes/", include("apps.promotions.urls")),
    path("api/payments/", include("apps.payments.urls")),
]
