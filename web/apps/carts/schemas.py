import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class AddCartItem(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(gt=0, le=1000)


class UpdateCartItem(BaseModel):
    quantity: int = Field(gt=0, le=1000)


class CartItemOut(BaseModel):
    id: int
    product_id: uuid.UUID
    name: str
    unit_price: Decimal
    quantity: int


class CartOut(BaseModel):
    id: uuid.UUID
    status: str
    promo_code: Optional[str] = None
    items: list[CartItemOut]
    subtotal: Decimal
