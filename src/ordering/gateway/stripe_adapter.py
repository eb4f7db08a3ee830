"""Stripe payment gateway adapter.

Refunds go through ``stripe.Refund.create`` against the payment intent (or
charge) recorded on the order; amounts cross the wire in cents. Webhook
signatures are checked with ``stripe.WebhookSignature.verify_header``, which
also rejects deliveries older than ``tolerance`` seconds.
"""

import stripe
import structlog

from ordering.gateway.port import PaymentGateway, RefundResult

logger = structlog.get_logger(__name__)

STRIPE_REFUND_REASON = "requested_by_customer"


def to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str, tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def create_refund(
        self,
        gateway_transaction_id: str,
        amount: float,
        currency: str,
        reason: str,
    ) -> RefundResult:
        target = "charge" if gateway_transaction_id.startswith("ch_") else "payment_intent"
        try:
            refund = stripe.Refund.create(
                api_key=self.api_key,
                amount=to_cents(amount),
                reason=STRIPE_REFUND_REASON,
                metadata={"reason": reason},
                **{target: gateway_transaction_id},
            )
        except stripe.StripeError as exc:
            logger.warning(
                "stripe_refund_failed",
                transaction_id=gateway_transaction_id,
                stripe_code=getattr(exc, "code", None),
                error=str(exc),
            )
            return RefundResult(
                success=False,
                gateway_status="failed",
                failure_reason=exc.user_message or str(exc),
            )

        if refund.status in ("failed", "canceled"):
            return RefundResult(
                success=False,
                gateway_refund_id=refund.id,
                gateway_status=refund.status,
                failure_reason=getattr(refund, "failure_reason", None) or f"Refund {refund.status}",
            )
        return RefundResult(
            success=True,
            gateway_refund_id=refund.id,
            gateway_status=refund.status,
            amount=refund.amount / 100,
            currency=(refund.currency or currency).upper(),
        )

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        if not signature:
            return False
        try:
            stripe.WebhookSignature.verify_header(payload, signature, self.webhook_secret, self.tolerance)
        except stripe.SignatureVerificationError as exc:
            logger.warning("stripe_webhook_signature_rejected", error=str(exc))
            return False
        return True
