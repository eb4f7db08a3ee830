"""Keyed in-process locks.

Every read-modify-write of a cart, an order, a product's stock or a day's
order sequence runs while holding the lock for that key, so two requests in
the same process never interleave on one document.
"""

import threading
from contextlib import ExitStack, contextmanager

_registry_guard = threading.Lock()
_locks: dict[str, threading.RLock] = {}


def lock_for(key: str) -> threading.RLock:
    with _registry_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.RLock()
        return lock


@contextmanager
def serialized(*keys: str | None):
    """Hold the locks for ``keys`` (acquired in sorted order) for the block."""
    with ExitStack() as stack:
        for key in sorted({k for k in keys if k}):
            stack.enter_context(lock_for(key))
        yield


def cart_key(customer_id) -> str:
    return f"cart:{customer_id}"


def order_key(order_id) -> str:
    return f"order:{order_id}"


def product_key(product_id) -> str:
    return f"product:{product_id}"


def sequence_key(day: str) -> str:
    return f"order-sequence:{day}"
