"""User/address store used by the order workflow."""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError

from apps.common.errors import NotFound

from .models import Address
from .schemas import AddressIn

logger = logging.getLogger("orders")


def find_address(user_id, address_id) -> Address:
    """Return the address only if it belongs to ``user_id``."""
    try:
        return Address.objects.get(pk=address_id, customer_id=user_id)
    except (Address.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFound("ADDRESS_NOT_FOUND", f"Address {address_id} not found")


def create_address(user_id, data: AddressIn) -> Address:
    address = Address.objects.create(customer_id=user_id, **data.model_dump())
    logger.info("address created", extra={"address_id": str(address.id), "user_id": str(user_id)})
    return address
