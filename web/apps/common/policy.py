"""Authorization as a pure rule table.

``evaluate`` answers "may a subject with this role do ``action`` on a
resource of this type with these attributes?" by scanning the role's rules.
No I/O, no framework hooks: services call ``ensure_allowed`` at the top of
every mutating entry point.
"""

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from .errors import Forbidden

MANAGE = "manage"  # matches every action on the resource

Condition = Callable[[Mapping[str, Any], Optional[str]], bool]


class Role:
    MANAGER = "MANAGER"
    CLIENT = "CLIENT"
    DELIVERY = "DELIVERY"
    GUEST = "GUEST"


@dataclass(frozen=True)
class Actor:
    """Who is calling. ``id`` is None for guests."""

    id: Optional[str]
    role: str
    email: str = ""

    @classmethod
    def guest(cls) -> "Actor":
        return cls(id=None, role=Role.GUEST)

    @classmethod
    def from_user(cls, user) -> "Actor":
        """Build an actor from ``request.user`` (a Customer or anonymous)."""
        if user is None or not getattr(user, "is_authenticated", False) or not hasattr(user, "role"):
            return cls.guest()
        return cls(id=str(user.pk), role=user.role, email=user.email)

    @property
    def is_guest(self) -> bool:
        return self.id is None


@dataclass(frozen=True)
class Rule:
    action: str
    resource: str
    condition: Optional[Condition] = None


def _owned(attrs, subject_id) -> bool:
    owner = attrs.get("user_id")
    return subject_id is not None and owner is not None and str(owner) == str(subject_id)


def _active_product(attrs, _subject_id) -> bool:
    return attrs.get("status") == "ACTIVE"


def _awaiting_courier(attrs, _subject_id) -> bool:
    return attrs.get("status") == "SHIPPED"


def _assigned_order(attrs, subject_id) -> bool:
    owner = attrs.get("delivery_user_id")
    return subject_id is not None and owner is not None and str(owner) == str(subject_id)


RULES: dict[str, list[Rule]] = {
    Role.MANAGER: [
        Rule(MANAGE, "Product"),
        Rule(MANAGE, "PromoCode"),
        Rule("read", "Order"),
        Rule("update", "Order"),
        Rule("cancel", "Order"),
    ],
    Role.CLIENT: [
        Rule("read", "Product", _active_product),
        Rule("purchase", "Product"),
        Rule(MANAGE, "Like", _owned),
        Rule(MANAGE, "Cart", _owned),
        Rule("create", "Order"),
        Rule("read", "Order", _owned),
        Rule("cancel", "Order", _owned),
        Rule("read", "PromoCode"),
    ],
    Role.DELIVERY: [
        Rule("read", "Order", _assigned_order),
        Rule("read", "Order", _awaiting_courier),
        Rule("deliver", "Order", _assigned_order),
    ],
    Role.GUEST: [
        Rule("read", "Product", _active_product),
        Rule("purchase", "Product"),
    ],
}


def evaluate(
    role: str,
    action: str,
    resource_type: str,
    attributes: Optional[Mapping[str, Any]] = None,
    subject_id: Optional[str] = None,
) -> bool:
    """Return True when some rule of ``role`` grants the action.

    Conditional rules are checked against ``attributes``; with no
    attributes only unconditional rules can match.
    """
    attrs = attributes or {}
    for rule in RULES.get(role, ()):
        if rule.resource != resource_type:
            continue
        if rule.action not in (action, MANAGE):
            continue
        if rule.condition is None or rule.condition(attrs, subject_id):
            return True
    return False


def ensure_allowed(actor: Actor, action: str, resource_type: str, attributes=None) -> None:
    if not evaluate(actor.role, action, resource_type, attributes, actor.id):
        raise Forbidden(detail=f"{actor.role} cannot {action} {resource_type}")
