from decimal import Decimal

import pytest


@pytest.fixture(autouse=True)
def use_stubs_for_tests(settings):
    settings.USE_HTTP_ADAPTERS = False
    settings.PAYMENT_GATEWAY = "fake"


def _customer(email, role="CLIENT", full_name=""):
    from apps.accounts.models import Customer
    return Customer.objects.create(email=email, role=role, full_name=full_name)


@pytest.fixture
def customer(db):
    return _customer("client@example.com", full_name="Cleo Client")


@pytest.fixture
def other_customer(db):
    return _customer("other@example.com", full_name="Otto Other")


@pytest.fixture
def manager(db):
    return _customer("manager@example.com", role="MANAGER")


@pytest.fixture
def courier(db):
    return _customer("courier@example.com", role="DELIVERY")


@pytest.fixture
def as_actor():
    from apps.common.policy import Actor
    return Actor.from_user


@pytest.fixture
def make_product(db):
    from apps.catalog.models import Product

    def _make(name="Widget", price="10.00", stock=5, **extra):
        return Product.objects.create(name=name, price=Decimal(price), stock=stock, **extra)
    return _make


@pytest.fixture
def address(customer):
    from apps.accounts.models import Address
    return Address.objects.create(
        customer=customer,
        address_line1="1 Main St",
        city="Springfield",
        state_province="IL",
        postal_code="62701",
        country_code="US",
        phone_number="5551234567",
    )


@pytest.fixture
def address_payload():
    return {
        "address_line1": "9 Side Rd",
        "city": "Shelbyville",
        "state_province": "IL",
        "postal_code": "62565",
        "country_code": "us",
        "phone_number": "5559876543",
    }


@pytest.fixture
def auth():
    """Request kwargs that identify ``user`` to the upstream-identity auth class."""
    def _auth(user):
        return {"HTTP_X_USER_ID": str(user.pk)}
    return _auth


@pytest.fixture
def make_promo(db):
    from apps.promotions.models import PromoCode

    def _make(code="SAVE10NOW", discount_type="PERCENTAGE", discount_value="10", usage_limit=10, **extra):
        return PromoCode.objects.create(
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(discount_value),
            usage_limit=usage_limit,
            **extra,
        )
    return _make
