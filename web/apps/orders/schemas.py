"""Pydantic schemas for the orders API."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from apps.accounts.schemas import AddressIn

from .domain import OrderStatus


class CreateOrderDTO(BaseModel):
    """Checkout of the caller's active cart.

    Exactly one of ``address_id`` or ``address`` must be supplied; that rule
    is enforced by the service so it can answer with the right error kind.
    """

    address_id: Optional[uuid.UUID] = None
    address: Optional[AddressIn] = None
    promo_code: Optional[str] = Field(default=None, max_length=12)

    @field_validator("promo_code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else None


class ContactInfo(BaseModel):
    email: EmailStr
    full_name: str = Field(default="", max_length=200)
    phone: str = Field(default="", max_length=20)


class CheckoutDTO(BaseModel):
    """Buy one product directly, optionally as a guest."""

    product_id: uuid.UUID
    quantity: int = Field(gt=0, le=1000)
    contact: Optional[ContactInfo] = None
    address_id: Optional[uuid.UUID] = None
    address: Optional[AddressIn] = None


class ShipOrderDTO(BaseModel):
    delivery_user_id: uuid.UUID


class OrderListQuery(BaseModel):
    status: Optional[OrderStatus] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    min_total: Optional[Decimal] = Field(default=None, ge=0)
    max_total: Optional[Decimal] = Field(default=None, ge=0)
    take: int = Field(default=20, ge=1, le=100)
    skip: int = Field(default=0, ge=0)


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: Optional[uuid.UUID] = None
    name_at_purchase: str
    price_at_purchase: Decimal
    quantity: int
    tax: Decimal


class PaymentHandleOut(BaseModel):
    kind: str
    value: str
    external_id: str


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    status: OrderStatus
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    customer_id: Optional[uuid.UUID] = None
    delivery_user_id: Optional[uuid.UUID] = None
    promo_code_snapshot: Optional[dict] = None
    shipping_address_snapshot: Optional[dict] = None
    created_at: datetime
    items: list[OrderItemOut] = []
    payment: Optional[PaymentHandleOut] = None
