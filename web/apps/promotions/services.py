"""Promo code administration, eligibility and usage accounting."""

import logging
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.common.errors import BelowMinimumPurchase, Conflict, NotEligible, NotFound, ValidationFailed
from apps.common.policy import Actor, ensure_allowed

from .models import PromoCode
from .schemas import PromoCodeCreate, PromoCodeUpdate

logger = logging.getLogger("promotions")


class PromoCodeService:
    # ---- administration ----

    def create(self, actor: Actor, data: PromoCodeCreate) -> PromoCode:
        ensure_allowed(actor, "create", "PromoCode")
        try:
            with transaction.atomic():
                promo = PromoCode.objects.create(
                    code=data.code,
                    discount_type=data.discount_type.value,
                    discount_value=data.discount_value,
                    expiration_date=data.expiration_date,
                    usage_limit=data.usage_limit,
                    minimum_purchase_amount=data.minimum_purchase_amount,
                )
        except IntegrityError:
            raise Conflict("PROMO_CODE_EXISTS", f"Promo code {data.code} already exists")
        logger.info("promo code created", extra={"promo_code_id": str(promo.id), "code": promo.code})
        return promo

    def update(self, actor: Actor, promo_id, data: PromoCodeUpdate) -> PromoCode:
        """Apply a partial update.

        Once a code has been used, its usage limit cannot drop below the
        current usage count and its expiration cannot move into the past.
        A code must keep at least one of expiration date or usage limit.
        """
        ensure_allowed(actor, "update", "PromoCode")
        changes = data.model_dump(exclude_unset=True)
        with transaction.atomic():
            promo = self._get_for_update(promo_id)

            if "usage_limit" in changes and changes["usage_limit"] is not None:
                if changes["usage_limit"] < promo.usage_count:
                    raise ValidationFailed(
                        "USAGE_LIMIT_BELOW_USAGE_COUNT",
                        f"Usage limit cannot be lower than current usage count ({promo.usage_count})",
                    )
            if promo.usage_count > 0 and changes.get("expiration_date") is not None:
                if changes["expiration_date"] <= timezone.now():
                    raise ValidationFailed(
                        "EXPIRATION_IN_PAST",
                        "Expiration date cannot be moved into the past for a used promo code",
                    )

            for field, value in changes.items():
                if field == "status" and value is not None:
                    value = value.value
                setattr(promo, field, value)

            if promo.expiration_date is None and promo.usage_limit is None:
                raise ValidationFailed(
                    "PROMO_CODE_UNBOUNDED", "Either expiration_date or usage_limit must be set"
                )
            promo.save()
        logger.info("promo code updated", extra={"promo_code_id": str(promo.id), "fields": sorted(changes)})
        return promo

    def disable(self, actor: Actor, promo_id) -> PromoCode:
        ensure_allowed(actor, "update", "PromoCode")
        promo = self.find_by_id(actor, promo_id)
        promo.status = PromoCode.Status.DISABLED
        promo.save(update_fields=["status", "updated_at"])
        logger.info("promo code disabled", extra={"promo_code_id": str(promo.id)})
        return promo

    def find_by_id(self, actor: Actor, promo_id) -> PromoCode:
        ensure_allowed(actor, "read", "PromoCode")
        try:
            return PromoCode.objects.get(pk=promo_id)
        except (PromoCode.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("PROMO_CODE_NOT_FOUND", f"Promo code {promo_id} not found")

    def list(self, actor: Actor, status: Optional[str] = None):
        ensure_allowed(actor, "read", "PromoCode")
        qs = PromoCode.objects.all()
        if status:
            qs = qs.filter(status=status)
        return qs

    # ---- eligibility ----

    def validate(self, code: str, purchase_amount: Optional[Decimal] = None) -> PromoCode:
        """Return the promo code if it can be applied right now.

        Raises:
            NotEligible: The code does not exist, is disabled, has expired
                or has reached its usage limit.
            BelowMinimumPurchase: ``purchase_amount`` is under the code's
                minimum purchase amount.
        """
        promo = PromoCode.objects.filter(code=(code or "").strip().upper()).first()
        if promo is None:
            raise NotEligible("PROMO_CODE_NOT_FOUND", f"Promo code {code} not found")
        if promo.status != PromoCode.Status.ACTIVE:
            raise NotEligible("PROMO_CODE_DISABLED", "Promo code is disabled")
        if promo.expiration_date is not None and promo.expiration_date < timezone.now():
            raise NotEligible("PROMO_CODE_EXPIRED", "Promo code has expired")
        if promo.usage_limit is not None and promo.usage_count >= promo.usage_limit:
            raise NotEligible("PROMO_CODE_LIMIT_REACHED", "Promo code has reached its usage limit")
        if (
            promo.minimum_purchase_amount is not None
            and purchase_amount is not None
            and purchase_amount < promo.minimum_purchase_amount
        ):
            raise BelowMinimumPurchase(promo.minimum_purchase_amount, purchase_amount)
        return promo

    # ---- usage accounting (call inside the order transaction) ----

    def increment_usage(self, promo_id) -> None:
        updated = (
            PromoCode.objects.filter(pk=promo_id, status=PromoCode.Status.ACTIVE)
            .filter(Q(usage_limit__isnull=True) | Q(usage_count__lt=F("usage_limit")))
            .update(usage_count=F("usage_count") + 1)
        )
        if updated == 0:
            # Someone consumed the last use (or disabled the code) since validate()
            raise Conflict("PROMO_CODE_USAGE_CONFLICT", "Promo code can no longer be applied")

    def decrement_usage(self, promo_id) -> bool:
        updated = PromoCode.objects.filter(pk=promo_id, usage_count__gt=0).update(
            usage_count=F("usage_count") - 1
        )
        if updated == 0:
            logger.warning("promo usage already at zero", extra={"promo_code_id": str(promo_id)})
        return updated == 1

    def _get_for_update(self, promo_id) -> PromoCode:
        try:
            return PromoCode.objects.select_for_update().get(pk=promo_id)
        except (PromoCode.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("PROMO_CODE_NOT_FOUND", f"Promo code {promo_id} not found")
