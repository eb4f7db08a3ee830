"""Acting identity supplied by the user directory.

The ordering context never authenticates anyone; it is told who is acting
and only checks ownership and the admin role.
"""

from dataclasses import dataclass

from ordering.errors import Unauthorized

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Actor:
    customer_id: str
    email: str | None = None
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def label(self) -> str:
        """How the actor is recorded in an order's status history."""
        return f"{self.role}:{self.customer_id}"

    def require_admin(self) -> None:
        if not self.is_admin:
            raise Unauthorized("Admin access required", customer_id=self.customer_id)


SYSTEM = Actor(customer_id="system", role="system")
GATEWAY = Actor(customer_id="gateway", role="system")
