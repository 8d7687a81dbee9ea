from rest_framework.response import Response
from rest_framework.views import APIView

from . import providers


class PaymentWebhookView(APIView):
    """Single entry point for processor events.

    The signature is checked against the raw body, so ``request.data`` must
    never be touched here. Verified events are always acknowledged; failures
    to reconcile are retried from the stored event.
    """

    authentication_classes: list = []
    permission_classes: list = []

    def post(self, request):
        signature = request.headers.get("Stripe-Signature", "")
        rec = providers.get_webhook_ingress().receive(request.body, signature)
        return Response({"received": True, "event_id": rec.event_id})
