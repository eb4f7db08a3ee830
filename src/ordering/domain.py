"""Ordering bounded context — Catalogue stock, Shopping Cart, Coupons and Orders.

Handles cart pricing (CQRS), the order lifecycle state machine, and the
checkout flow that turns a cart into a priced order while reserving stock.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
