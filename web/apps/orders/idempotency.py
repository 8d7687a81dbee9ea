"""Idempotency records for the order-creation endpoints.

The first request with a given ``Idempotency-Key`` creates a record and, once
it finishes, stores its response. A retry with the same payload gets that
stored response back; the same key with a different payload is a conflict.
"""

import hashlib
import json

from django.db import IntegrityError, transaction

from apps.common.errors import Conflict

from .models import IdempotencyKey


def _hash(payload: dict) -> str:
    """SHA-256 of the payload serialized with sorted keys and compact separators."""
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


def scoped_key(key: str, scope: str, user_id) -> str:
    """Namespace a client key per endpoint and caller so keys cannot collide."""
    return f"{scope}:{user_id or 'guest'}:{key}"


@transaction.atomic
def get_or_create_idempotent(key: str, payload: dict):
    """Get-or-create the record for ``key``.

    Returns:
        tuple[bool, IdempotencyKey]: ``(existing, rec)``; ``existing`` is
        False when this call created the record.

    Raises:
        Conflict: The key exists with a different payload hash.
    """
    h = _hash(payload)
    try:
        # Savepoint: an IntegrityError only rolls back this block
        with transaction.atomic():
            rec = IdempotencyKey.objects.create(
                key=key, request_hash=h, response_status=0, response_body={}
            )
            return False, rec
    except IntegrityError:
        rec = IdempotencyKey.objects.select_for_update().get(key=key)
        if rec.request_hash != h:
            raise Conflict("IDEMPOTENCY_CONFLICT", "Idempotency-Key reused with a different payload")
        return True, rec


def finalize(rec: IdempotencyKey, status_code: int, body: dict, order_id=None):
    """Store the final response so retries can replay it."""
    rec.response_status = status_code
    rec.response_body = body
    if order_id is not None:
        rec.order_id = order_id
    rec.save(update_fields=["response_status", "response_body", "order"])


def release(rec: IdempotencyKey) -> None:
    """Drop an unfinished record so the key can be used again."""
    IdempotencyKey.objects.filter(pk=rec.pk, response_status=0).delete()
