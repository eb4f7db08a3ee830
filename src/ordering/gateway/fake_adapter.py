"""Configurable fake payment gateway for development and testing.

No external calls are made. Refunds succeed or fail depending on
``configure``, every call is recorded in ``calls``, and webhooks are
accepted when signed with ``test-signature``.
"""

from uuid import uuid4

from ordering.gateway.port import PaymentGateway, RefundResult

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Refund declined"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Refund declined") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_refund(
        self,
        gateway_transaction_id: str,
        amount: float,
        currency: str,
        reason: str,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "create_refund",
                "gateway_transaction_id": gateway_transaction_id,
                "amount": amount,
                "currency": currency,
                "reason": reason,
            }
        )

        if self.should_succeed:
            return RefundResult(
                success=True,
                gateway_refund_id=f"fake_ref_{uuid4().hex[:12]}",
                gateway_status="succeeded",
                amount=amount,
                currency=currency,
            )
        return RefundResult(
            success=False,
            gateway_status="failed",
            failure_reason=self.failure_reason,
        )

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:  # noqa: ARG002
        return signature == TEST_SIGNATURE
