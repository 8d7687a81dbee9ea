from django.urls import path

from .views import PaymentWebhookView

app_name = "payments"

urlpatterns = [
    path("webhooks/", PaymentWebhookView.as_view(), name="payments-webhooks"),
]
