"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Product")
class ProductAdded:
    """A product was added to the catalogue."""

    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    price = Float(required=True)
    stock = Integer(required=True)


@ordering.event(part_of="Product")
class ProductPriceChanged:
    """A product's selling price changed. Open carts keep their snapshot."""

    __version__ = 1

    product_id = Identifier(required=True)
    previous_price = Float(required=True)
    new_price = Float(required=True)


@ordering.event(part_of="Product")
class ProductStatusChanged:
    __version__ = 1

    product_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)


@ordering.event(part_of="Product")
class StockDecremented:
    """Units were taken out of stock for an order."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)
    decremented_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockRestored:
    """Units were put back into stock (restock or cancelled order)."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)
    restored_at = DateTime(required=True)


@ordering.event(part_of="Product")
class LowStockDetected:
    __version__ = 1

    product_id = Identifier(required=True)
    remaining = Integer(required=True)
    threshold = Integer(required=True)
