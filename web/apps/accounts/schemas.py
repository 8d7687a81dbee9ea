"""Pydantic schemas for addresses supplied inline at checkout."""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

PHONE_RE = re.compile(r"^\+?[0-9]{6,11}$")


class AddressIn(BaseModel):
    """Shipping address as sent by the client (or a guest)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    address_line1: str = Field(min_length=1, max_length=200)
    address_line2: str = Field(default="", max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state_province: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country_code: str = Field(min_length=2, max_length=2)
    phone_number: str = Field(default="", max_length=12)

    @field_validator("country_code")
    @classmethod
    def validate_country(cls, v: str) -> str:
        v2 = v.upper()
        if not v2.isalpha():
            raise ValueError("Invalid country code")
        return v2

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        if v and not PHONE_RE.match(v):
            raise ValueError("Invalid phone number")
        return v


class AddressSnapshot(AddressIn):
    """Address copy stored on an order; validated again when read back."""
