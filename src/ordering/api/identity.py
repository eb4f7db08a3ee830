"""Request identity.

Authentication happens upstream. The gateway in front of this service
forwards the authenticated user in ``X-Customer-Id``, ``X-Customer-Email``
and ``X-Role`` headers; routes turn them into an ``Actor``.
"""

from fastapi import Depends, Header, HTTPException

from ordering.actor import Actor


def current_actor(
    x_customer_id: str = Header(default=""),
    x_customer_email: str | None = Header(default=None),
    x_role: str = Header(default="customer"),
) -> Actor:
    if not x_customer_id:
        raise HTTPException(status_code=401, detail="Missing X-Customer-Id header")
    return Actor(customer_id=x_customer_id, email=x_customer_email, role=x_role or "customer")


def admin_actor(actor: Actor = Depends(current_actor)) -> Actor:
    actor.require_admin()
    return actor
