import uuid

from django.db import models


class PromoCode(models.Model):
    class DiscountType(models.TextChoices):
        PERCENTAGE = "PERCENTAGE"
        FIXED = "FIXED"

    class Status(models.TextChoices):
        ACTIVE = "ACTIVE"
        DISABLED = "DISABLED"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=12, unique=True)
    discount_type = models.CharField(max_length=16, choices=DiscountType.choices)
    # PERCENTAGE values are stored as 0-100; FIXED values in currency units
    discount_value = models.DecimalField(max_digits=10, decimal_places=2)
    expiration_date = models.DateTimeField(null=True, blank=True)
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    minimum_purchase_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "promo_codes"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(expiration_date__isnull=False) | models.Q(usage_limit__isnull=False),
                name="promo_code_bounded",
            ),
            models.CheckConstraint(
                condition=models.Q(usage_limit__isnull=True) | models.Q(usage_count__lte=models.F("usage_limit")),
                name="promo_code_usage_within_limit",
            ),
        ]

    def __str__(self) -> str:
        return self.code
