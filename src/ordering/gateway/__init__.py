"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- StripeGateway when STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET are set
"""

import os

from ordering.gateway.fake_adapter import FakeGateway
from ordering.gateway.port import PaymentGateway
from ordering.gateway.stripe_adapter import StripeGateway

_current_gateway: PaymentGateway | None = None


def _default_gateway() -> PaymentGateway:
    api_key = os.environ.get("STRIPE_SECRET_KEY")
    webhook_secret = os.environ.get("STRIPE_WEBHOOK_SECRET")
    if api_key and webhook_secret:
        return StripeGateway(api_key=api_key, webhook_secret=webhook_secret)
    return FakeGateway()


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _default_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
