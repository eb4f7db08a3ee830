"""Payment gateway port (abstract interface).

Defines what the ordering context needs from a payment provider: issuing
refunds against a captured payment and authenticating the provider's
webhook callbacks. Charges themselves are taken by the provider's client-side
flow; the order only learns about them through ``ConfirmPayment``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    gateway_refund_id: str | None = None
    gateway_status: str | None = None
    amount: float | None = None
    currency: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_refund(
        self,
        gateway_transaction_id: str,
        amount: float,
        currency: str,
        reason: str,
    ) -> RefundResult:
        """Refund a previous charge."""
        ...

    @abstractmethod
    def verify_webhook_signature(
        self,
        payload: str,
        signature: str,
    ) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
