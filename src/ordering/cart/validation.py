"""Cart validation against the live catalogue.

``validate_cart`` only reports; it never edits the cart. ``RefreshCart``
(see ``cart.management``) applies the usual remediation on top of it.
"""

from dataclasses import dataclass
from enum import Enum

from ordering.errors import ItemUnavailable


class IssueKind(Enum):
    UNAVAILABLE = "unavailable"
    STOCK_SHORTFALL = "stock_shortfall"
    PRICE_CHANGED = "price_changed"


@dataclass(frozen=True)
class CartIssue:
    kind: IssueKind
    product_id: str
    variant: tuple = (None, None)
    reason: str = ""
    available_quantity: int | None = None
    old_price: float | None = None
    new_price: float | None = None

    def to_dict(self) -> dict:
        data = {
            "kind": self.kind.value,
            "product_id": self.product_id,
            "variant_name": self.variant[0],
            "variant_value": self.variant[1],
            "reason": self.reason,
        }
        if self.available_quantity is not None:
            data["available_quantity"] = self.available_quantity
        if self.old_price is not None:
            data["old_price"] = self.old_price
            data["new_price"] = self.new_price
        return data


def validate_cart(cart, catalog) -> list[CartIssue]:
    """List the problems of each line, at most one per line.

    A missing or retired product hides any stock or price problem, and a
    stock shortfall hides a price change.
    """
    issues = []
    for item in cart.lines:
        key = item.key
        product = catalog.get(item.product_id)

        if product is None or not product.is_sellable:
            issues.append(
                CartIssue(
                    kind=IssueKind.UNAVAILABLE,
                    product_id=key[0],
                    variant=key[1:],
                    reason="Product no longer available",
                )
            )
            continue

        if item.variant is not None and not _still_offered(product, item.variant):
            issues.append(
                CartIssue(
                    kind=IssueKind.UNAVAILABLE,
                    product_id=key[0],
                    variant=key[1:],
                    reason="Variant no longer available",
                )
            )
            continue

        if product.stock < item.quantity:
            issues.append(
                CartIssue(
                    kind=IssueKind.STOCK_SHORTFALL,
                    product_id=key[0],
                    variant=key[1:],
                    reason=f"Only {product.stock} items available in stock",
                    available_quantity=product.stock,
                )
            )
            continue

        if product.price != item.unit_price:
            issues.append(
                CartIssue(
                    kind=IssueKind.PRICE_CHANGED,
                    product_id=key[0],
                    variant=key[1:],
                    reason="Price has changed",
                    old_price=item.unit_price,
                    new_price=product.price,
                )
            )

    return issues


def _still_offered(product, variant) -> bool:
    try:
        product.priced_variant(variant)
    except ItemUnavailable:
        return False
    return True
