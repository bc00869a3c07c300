from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from django.conf import settings

from .errors import PermissionDenied

VOID_ITEM = "void_item"
DISCOUNT_ITEM = "discount_item"
COMP_ITEM = "comp_item"
ORDER_DISCOUNT = "order_discount"
MANAGER_OVERRIDE = "manager_override"

ALL_CAPABILITIES = (VOID_ITEM, DISCOUNT_ITEM, COMP_ITEM, ORDER_DISCOUNT, MANAGER_OVERRIDE)


@dataclass(frozen=True)
class Actor:
    """
    Staff identity and capability set, resolved upstream and handed to the engine.

    The engine never authenticates; it only checks capabilities on the actor
    it was given.
    """

    id: str
    role: str = ""
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    # DRF treats whatever the authenticator returns as request.user
    is_authenticated = True

    @classmethod
    def for_role(cls, actor_id: str, role: str, extra: Optional[Iterable[str]] = None) -> "Actor":
        """Build an actor from a role's default capabilities plus explicit grants"""
        role_map = settings.POS["ROLE_PERMISSIONS"]
        if role == "admin":
            granted = set(ALL_CAPABILITIES)
        else:
            granted = set(role_map.get(role, ()))
        granted.update(p for p in (extra or ()) if p)
        return cls(id=actor_id, role=role, permissions=frozenset(granted))

    def can(self, capability: str) -> bool:
        return capability in self.permissions

    def require(self, capability: str, detail: Optional[str] = None) -> None:
        if not self.can(capability):
            raise PermissionDenied(
                detail or f"Permission denied: {capability} required",
                required_permission=capability,
                actor_role=self.role,
            )


SYSTEM = Actor(id="system", role="system")
