import logging

from django.core.management.base import BaseCommand

from apps.payments.models import WebhookEvent
from apps.payments.providers import get_webhook_ingress

logger = logging.getLogger("webhooks")


class Command(BaseCommand):
    help = "Re-dispatch FAILED webhook events whose retry time has come."

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=100)

    def handle(self, *args, **options):
        ran = get_webhook_ingress().retry_due(limit=options["limit"])
        dead = WebhookEvent.objects.filter(status=WebhookEvent.Status.DEAD_LETTER).count()
        logger.info("webhook retry run finished", extra={"retried": ran, "dead_letter": dead})
        self.stdout.write(f"retried={ran} dead_letter={dead}")
