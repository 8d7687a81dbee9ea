from django.db import DatabaseError, connection
from django.http import JsonResponse

from apps.payments.models import WebhookEvent


def health_view(_request):
    """Database reachability plus the webhook backlog an operator should watch."""
    db_ok = False
    backlog = {"failed": None, "dead_letter": None}
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
        db_ok = True
        backlog = {
            "failed": WebhookEvent.objects.filter(status=WebhookEvent.Status.FAILED).count(),
            "dead_letter": WebhookEvent.objects.filter(status=WebhookEvent.Status.DEAD_LETTER).count(),
        }
    except DatabaseError:
        db_ok = False

    code = 200 if db_ok else 503
    return JsonResponse(
        {"ok": db_ok, "components": {"db": {"ok": db_ok}, "webhooks": backlog}},
        status=code,
    )
