"""Webhook ingress with a retry queue and a dead letter state.

The processor gets its acknowledgement as soon as the signature checks out
and the event is stored. Reconciliation failures never reach the processor;
they leave the event FAILED with a ``next_retry_at`` so ``retry_due`` (run by
the ``retry_webhooks`` management command) can pick it up again, and after
``WEBHOOK_MAX_ATTEMPTS`` the event is parked as DEAD_LETTER for an operator.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.common.errors import ValidationFailed

from .gateway import PaymentGatewayPort
from .models import WebhookEvent
from .reconciler import WebhookReconciler

logger = logging.getLogger("webhooks")

FINAL_STATUSES = (WebhookEvent.Status.PROCESSED, WebhookEvent.Status.DEAD_LETTER)


class WebhookIngress:
    def __init__(
        self,
        gateway: PaymentGatewayPort,
        reconciler: WebhookReconciler,
        max_attempts: int | None = None,
        retry_delay_seconds: int | None = None,
    ):
        self.gateway = gateway
        self.reconciler = reconciler
        self.max_attempts = max_attempts or settings.WEBHOOK_MAX_ATTEMPTS
        self.retry_delay = retry_delay_seconds or settings.WEBHOOK_RETRY_DELAY_SECONDS

    def receive(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify, store once per event id, then reconcile.

        Raises:
            InvalidSignature: Verification failed; nothing is stored.
            ValidationFailed: The verified event carries no id.
        """
        event = self.gateway.construct_webhook_event(payload, signature)
        event_id = event.get("id")
        if not event_id:
            raise ValidationFailed("EVENT_ID_MISSING", "Webhook event has no id")

        rec, created = WebhookEvent.objects.get_or_create(
            event_id=event_id,
            defaults={"type": event.get("type", ""), "payload": event},
        )
        if not created and rec.status in FINAL_STATUSES:
            logger.info(
                "duplicate webhook delivery",
                extra={"event_id": event_id, "event_type": rec.type, "status": rec.status},
            )
            return rec

        self.process(rec)
        return rec

    def process(self, rec: WebhookEvent) -> WebhookEvent:
        try:
            self.reconciler.handle(rec.payload)
        except Exception as e:
            logger.exception(
                "webhook reconciliation failed",
                extra={"event_id": rec.event_id, "event_type": rec.type, "attempt": rec.attempts + 1},
            )
            self._record_failure(rec, e)
            return rec

        rec.status = WebhookEvent.Status.PROCESSED
        rec.processed_at = timezone.now()
        rec.next_retry_at = None
        rec.save(update_fields=["status", "processed_at", "next_retry_at"])
        logger.info("webhook processed", extra={"event_id": rec.event_id, "event_type": rec.type})
        return rec

    def _record_failure(self, rec: WebhookEvent, exc: Exception) -> None:
        rec.attempts += 1
        rec.last_error = f"{type(exc).__name__}: {exc}"[:2000]
        if rec.attempts >= self.max_attempts:
            rec.status = WebhookEvent.Status.DEAD_LETTER
            rec.next_retry_at = None
            logger.error(
                "webhook moved to dead letter",
                extra={"event_id": rec.event_id, "event_type": rec.type, "attempts": rec.attempts},
            )
        else:
            rec.status = WebhookEvent.Status.FAILED
            rec.next_retry_at = timezone.now() + timedelta(seconds=self.retry_delay * rec.attempts)
        rec.save(update_fields=["attempts", "last_error", "status", "next_retry_at"])

    def retry_due(self, limit: int = 100) -> int:
        """Re-dispatch FAILED events whose retry time has come. Returns how many ran."""
        now = timezone.now()
        due = list(
            WebhookEvent.objects.filter(status=WebhookEvent.Status.FAILED, next_retry_at__lte=now)
            .order_by("next_retry_at")
            .values_list("pk", flat=True)[:limit]
        )
        ran = 0
        for pk in due:
            with transaction.atomic():
                rec = (
                    WebhookEvent.objects.select_for_update(skip_locked=True)
                    .filter(pk=pk, status=WebhookEvent.Status.FAILED)
                    .first()
                )
                if rec is None:
                    continue
                self.process(rec)
                ran += 1
        return ran
