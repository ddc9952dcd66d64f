"""Outcome of one interaction with the payment widget.

The widget reports through three separate callbacks. They are collapsed
into a single result type: ``PaymentSuccess`` | ``PaymentFailure`` |
``PaymentCancelled``.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentSuccess:
    gateway_order_id: str
    gateway_payment_id: str
    signature: str

    @classmethod
    def from_callback(cls, response: dict) -> "PaymentSuccess":
        return cls(
            gateway_order_id=response.get("razorpay_order_id", ""),
            gateway_payment_id=response.get("razorpay_payment_id", ""),
            signature=response.get("razorpay_signature", ""),
        )


@dataclass(frozen=True)
class PaymentFailure:
    reason: str
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None

    @classmethod
    def from_callback(cls, response: dict) -> "PaymentFailure":
        error = response.get("error") or {}
        metadata = error.get("metadata") or {}
        return cls(
            reason=error.get("description") or "Payment failed",
            gateway_order_id=metadata.get("order_id") or None,
            gateway_payment_id=metadata.get("payment_id") or None,
        )


@dataclass(frozen=True)
class PaymentCancelled:
    pass


PaymentOutcome = PaymentSuccess | PaymentFailure | PaymentCancelled
