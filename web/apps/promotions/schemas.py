"""Pydantic schemas for promo code administration and order snapshots."""

import re
import uuid
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from django.utils import timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CODE_RE = re.compile(r"^[A-Z0-9]{8,12}$")


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class PromoStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"


def _aware(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and timezone.is_naive(v):
        return timezone.make_aware(v, dt_timezone.utc)
    return v


class PromoCodeCreate(BaseModel):
    """Payload for creating a promo code.

    Attributes:
        code: 8-12 uppercase letters or digits. Normalized to uppercase.
        discount_type: PERCENTAGE or FIXED.
        discount_value: Non-negative, two decimals. PERCENTAGE values are
            percentages (0-100), not fractions.
        expiration_date: Optional, must be in the future.
        usage_limit: Optional, at least 1.
        minimum_purchase_amount: Optional, non-negative.

    A code must carry at least one of ``expiration_date`` or ``usage_limit``.
    """

    code: str
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    expiration_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(default=None, ge=1)
    minimum_purchase_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        v2 = v.strip().upper()
        if not CODE_RE.match(v2):
            raise ValueError("Code must be 8-12 uppercase letters or digits")
        return v2

    @field_validator("expiration_date")
    @classmethod
    def validate_expiration(cls, v: Optional[datetime]) -> Optional[datetime]:
        v = _aware(v)
        if v is not None and v <= timezone.now():
            raise ValueError("Expiration date must be in the future")
        return v

    @model_validator(mode="after")
    def check_bounds(self):
        if self.expiration_date is None and self.usage_limit is None:
            raise ValueError("Either expiration_date or usage_limit must be set")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class PromoCodeUpdate(BaseModel):
    """Partial update; only the fields present in the payload are applied."""

    expiration_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(default=None, ge=1)
    minimum_purchase_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    status: Optional[PromoStatus] = None

    @field_validator("expiration_date")
    @classmethod
    def normalize_expiration(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _aware(v)


class ApplyPromoCode(BaseModel):
    code: str = Field(min_length=1, max_length=12)


class PromoCodeSnapshot(BaseModel):
    """The promo code as it was when an order consumed it."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    minimum_purchase_amount: Optional[Decimal] = None


class PromoCodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    expiration_date: Optional[datetime] = None
    usage_limit: Optional[int] = None
    usage_count: int
    minimum_purchase_amount: Optional[Decimal] = None
    status: PromoStatus
