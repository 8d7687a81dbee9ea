"""Order statuses, the status machine and the ports the workflow depends on.

The workflow in ``services.py`` only talks to collaborators through the
Protocols below; ``providers.py`` decides which concrete implementation each
port gets.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Protocol

from apps.common.errors import InvalidTransition


# ---- Enums ----
class OrderStatus(str, Enum):
    """Lifecycle of an order.

    ``PENDING -> PAID -> PROCESSING -> SHIPPED -> DELIVERED``, with
    ``CANCELLED`` reachable from PENDING, PAID and PROCESSING. DELIVERED and
    CANCELLED are terminal.
    """

    PENDING = "PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ALLOWED_PREDECESSORS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PAID: frozenset({OrderStatus.PENDING}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.PAID}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.PROCESSING}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.CANCELLED: frozenset({OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.PROCESSING}),
}

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Statuses that count as "already bought" for low-stock alerts
PURCHASED_STATUSES = frozenset(
    {OrderStatus.PAID, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED}
)


def _ordered(statuses: Iterable[OrderStatus]) -> list[str]:
    order = list(OrderStatus)
    return [s.value for s in sorted(statuses, key=order.index)]


def ensure_transition(current: str, target: OrderStatus) -> None:
    """Raise ``InvalidTransition`` unless ``current -> target`` is legal."""
    allowed = ALLOWED_PREDECESSORS[target]
    if OrderStatus(current) not in allowed:
        raise InvalidTransition(str(OrderStatus(current).value), _ordered(allowed))


def allowed_predecessors(target: OrderStatus) -> list[str]:
    return _ordered(ALLOWED_PREDECESSORS[target])


# ---- DTOs ----
@dataclass(frozen=True)
class PaymentHandle:
    """What the client needs to pay: a client secret or a redirect URL."""

    kind: str  # "client_secret" | "redirect_url"
    value: str
    external_id: str


@dataclass(frozen=True)
class OrderFilters:
    status: Optional[OrderStatus] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    min_total: Optional[Decimal] = None
    max_total: Optional[Decimal] = None
    take: int = 20
    skip: int = 0


# ---- Ports ----
class AddressStorePort(Protocol):
    def find_address(self, user_id, address_id): ...

    def create_address(self, user_id, data): ...


class CartStorePort(Protocol):
    def get_active_cart(self, user_id): ...

    def mark_as_ordered(self, cart_id) -> bool: ...

