"""Synchronous command dispatch under a per-document lock."""

from protean.utils.globals import current_domain

from ordering.utils.locks import serialized


def dispatch(command, *keys: str | None):
    """Process ``command`` synchronously while holding the locks for ``keys``.

    Returns whatever the command handler returns.
    """
    with serialized(*keys):
        return current_domain.process(command, asynchronous=False)
