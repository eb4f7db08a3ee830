"""Catalog Store — read access and atomic stock movements for other components.

Cart and checkout code never edits a ``Product`` directly. Stock leaves the
shelf through ``conditional_decrement_stock``, which reads the product's
revision and submits a ``ReserveStock`` command carrying it. When another
writer got there first the handler raises ``ConcurrentUpdate`` and the read
is retried, at most ``MAX_ATTEMPTS`` times.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.catalogue.management import ReserveStock, RestockProduct
from ordering.catalogue.product import Product
from ordering.errors import ConcurrentUpdate, InsufficientStock, ProductNotFound
from ordering.utils.dispatch import dispatch
from ordering.utils.locks import product_key

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 3


class CatalogStore:
    def get(self, product_id) -> Product | None:
        if not product_id:
            return None
        try:
            return current_domain.repository_for(Product).get(product_id)
        except ObjectNotFoundError:
            return None

    def require(self, product_id) -> Product:
        product = self.get(product_id)
        if product is None:
            raise ProductNotFound(f"Product not found: {product_id}", product_id=str(product_id))
        return product

    def conditional_decrement_stock(self, product_id, quantity: int) -> bool:
        """Decrement stock by ``quantity`` only if that many units are left.

        Returns ``False`` without changing anything when stock is short.
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            product = self.require(product_id)
            if product.stock < quantity:
                return False
            try:
                dispatch(
                    ReserveStock(
                        product_id=str(product_id),
                        quantity=quantity,
                        expected_revision=product.revision,
                    ),
                    product_key(product_id),
                )
                return True
            except InsufficientStock:
                return False
            except ConcurrentUpdate:
                logger.info(
                    "stock_decrement_retry",
                    product_id=str(product_id),
                    attempt=attempt,
                )
        raise ConcurrentUpdate(
            "Gave up reserving stock after repeated concurrent updates",
            product_id=str(product_id),
            attempts=MAX_ATTEMPTS,
        )

    def increment_stock(self, product_id, quantity: int) -> None:
        dispatch(
            RestockProduct(product_id=str(product_id), quantity=quantity),
            product_key(product_id),
        )
