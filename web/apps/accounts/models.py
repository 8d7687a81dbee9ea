import uuid

from django.db import models


class Customer(models.Model):
    """A storefront user as known to this service.

    Credentials and sessions live upstream; this row only carries what the
    order workflow and the authorization policy need.
    """

    class Role(models.TextChoices):
        CLIENT = "CLIENT"
        MANAGER = "MANAGER"
        DELIVERY = "DELIVERY"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=200, blank=True, default="")
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.CLIENT)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "customers"

    @property
    def is_authenticated(self) -> bool:
        return True

    def __str__(self) -> str:
        return self.email


class Address(models.Model):
    # Never mutated once an order points at it; a new row per distinct detail
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey(
        Customer, null=True, blank=True, on_delete=models.SET_NULL, related_name="addresses"
    )
    address_line1 = models.CharField(max_length=200)
    address_line2 = models.CharField(max_length=200, blank=True, default="")
    city = models.CharField(max_length=100)
    state_province = models.CharField(max_length=100)
    postal_code = models.CharField(max_length=20)
    country_code = models.CharField(max_length=2)
    phone_number = models.CharField(max_length=12, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "addresses"

    def as_snapshot(self) -> dict:
        return {
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "city": self.city,
            "state_province": self.state_province,
            "postal_code": self.postal_code,
            "country_code": self.country_code,
            "phone_number": self.phone_number,
        }
