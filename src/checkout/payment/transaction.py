"""Payment transaction handler. Drives one payment attempt end to end.

State Machine:
    IDLE → INITIATING → AWAITING_GATEWAY → VERIFYING → SETTLED
                                                     → VERIFY_FAILED
                                         → GATEWAY_FAILED    → IDLE
                                         → GATEWAY_CANCELLED → IDLE
    any in-flight state → IDLE on an unexpected error

Within an attempt the steps are strictly ordered: gateway script loaded,
then intent created, then widget opened, then the backend verifies the
widget's success report, and only then is the order placed. The widget's
success callback alone never settles a payment.

``pay()`` is only accepted from IDLE, so a second click while an attempt
is in flight is a no-op. ``processing_payment`` is derived from the state
and can never outlive the attempt.

SETTLED and VERIFY_FAILED are terminal for the session: after a verified
payment the checkout is over, and after a failed verification money may
have been taken, so a fresh attempt is not offered.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

import structlog

from checkout.address.address import ShippingAddress
from checkout.config import CheckoutSettings
from checkout.order.finalizer import OrderFinalizer, OrderRecord
from payments.backend.client import PaymentBackend
from payments.gateway.bridge import open_checkout
from payments.gateway.loader import GatewayLoader
from payments.gateway.outcome import PaymentCancelled, PaymentFailure, PaymentSuccess
from payments.gateway.port import CheckoutOptions
from payments.intent.initiator import PaymentIntent, PaymentOrderInitiator
from shared.exceptions import (
    BackendError,
    GatewayConfigurationError,
    GatewayUnavailableError,
    OrderPlacementError,
    VerificationError,
)

logger = structlog.get_logger(__name__)

PAYMENT_SUCCESSFUL = "Payment successful! Order placed."
PAYMENT_CANCELLED = "Payment cancelled"
PAYMENT_IN_PROGRESS = "A payment is already in progress"
PAYMENT_CLOSED = "This checkout is closed"
UNEXPECTED_ERROR = "Something went wrong while processing your payment. Please try again."


class TransactionState(Enum):
    IDLE = "Idle"
    INITIATING = "Initiating"
    AWAITING_GATEWAY = "Awaiting_Gateway"
    VERIFYING = "Verifying"
    SETTLED = "Settled"
    VERIFY_FAILED = "Verify_Failed"
    GATEWAY_CANCELLED = "Gateway_Cancelled"
    GATEWAY_FAILED = "Gateway_Failed"


_VALID_TRANSITIONS = {
    TransactionState.IDLE: {TransactionState.INITIATING},
    TransactionState.INITIATING: {TransactionState.AWAITING_GATEWAY, TransactionState.IDLE},
    TransactionState.AWAITING_GATEWAY: {
        TransactionState.VERIFYING,
        TransactionState.GATEWAY_FAILED,
        TransactionState.GATEWAY_CANCELLED,
        TransactionState.IDLE,
    },
    TransactionState.VERIFYING: {
        TransactionState.SETTLED,
        TransactionState.VERIFY_FAILED,
        TransactionState.IDLE,
    },
    TransactionState.GATEWAY_FAILED: {TransactionState.IDLE},
    TransactionState.GATEWAY_CANCELLED: {TransactionState.IDLE},
    TransactionState.SETTLED: set(),  # Terminal
    TransactionState.VERIFY_FAILED: set(),  # Terminal
}

_IN_FLIGHT = {
    TransactionState.INITIATING,
    TransactionState.AWAITING_GATEWAY,
    TransactionState.VERIFYING,
}


class PaymentResultStatus(Enum):
    SETTLED = "Settled"
    ORDER_PLACEMENT_FAILED = "Order_Placement_Failed"
    VERIFY_FAILED = "Verify_Failed"
    GATEWAY_FAILED = "Gateway_Failed"
    GATEWAY_CANCELLED = "Gateway_Cancelled"
    GATEWAY_UNAVAILABLE = "Gateway_Unavailable"
    CONFIGURATION_ERROR = "Configuration_Error"
    INITIATION_FAILED = "Initiation_Failed"
    ERROR = "Error"
    IGNORED = "Ignored"


@dataclass(frozen=True)
class PaymentResult:
    """What the buyer is told once a click on "Pay" has run its course."""

    status: PaymentResultStatus
    message: str
    orders: list[OrderRecord] = field(default_factory=list)
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentResultStatus.SETTLED


class InvalidTransition(Exception):
    pass


class PaymentTransactionHandler:
    def __init__(
        self,
        buyer_id: str,
        loader: GatewayLoader,
        initiator: PaymentOrderInitiator,
        backend: PaymentBackend,
        finalizer: OrderFinalizer,
        settings: CheckoutSettings,
    ) -> None:
        self.buyer_id = buyer_id
        self._loader = loader
        self._initiator = initiator
        self._backend = backend
        self._finalizer = finalizer
        self._settings = settings
        self.state = TransactionState.IDLE
        self._finalizing = False
        self._finalized = False

    @property
    def processing_payment(self) -> bool:
        return self.state in _IN_FLIGHT or self._finalizing

    @property
    def finished(self) -> bool:
        """True once the handler can never accept another payment."""
        return not _VALID_TRANSITIONS[self.state]

    def _transition(self, target: TransactionState) -> None:
        if target not in _VALID_TRANSITIONS[self.state]:
            raise InvalidTransition(f"Cannot transition from {self.state.value} to {target.value}")
        logger.debug("Payment state changed", buyer_id=self.buyer_id, source=self.state.value, target=target.value)
        self.state = target

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    async def pay(self, total: Decimal, address: ShippingAddress) -> PaymentResult:
        """Run one payment attempt for ``total`` and report its outcome."""
        if self.state != TransactionState.IDLE:
            message = PAYMENT_IN_PROGRESS if self.processing_payment else PAYMENT_CLOSED
            logger.info("Ignoring payment request", buyer_id=self.buyer_id, state=self.state.value)
            return PaymentResult(status=PaymentResultStatus.IGNORED, message=message)

        self._transition(TransactionState.INITIATING)
        try:
            return await self._attempt(total, address)
        except Exception:
            logger.exception("Payment attempt failed unexpectedly", buyer_id=self.buyer_id, state=self.state.value)
            return PaymentResult(status=PaymentResultStatus.ERROR, message=UNEXPECTED_ERROR)
        finally:
            self._finalizing = False
            if self.state in _IN_FLIGHT:
                self.state = TransactionState.IDLE

    async def _attempt(self, total: Decimal, address: ShippingAddress) -> PaymentResult:
        if not await self._loader.ensure_loaded():
            self._transition(TransactionState.IDLE)
            return PaymentResult(
                status=PaymentResultStatus.GATEWAY_UNAVAILABLE,
                message=GatewayUnavailableError.user_message,
            )

        try:
            intent = await self._initiator.create_intent(self.buyer_id, total)
        except GatewayConfigurationError as exc:
            self._transition(TransactionState.IDLE)
            return PaymentResult(status=PaymentResultStatus.CONFIGURATION_ERROR, message=exc.user_message)
        except BackendError as exc:
            self._transition(TransactionState.IDLE)
            return PaymentResult(status=PaymentResultStatus.INITIATION_FAILED, message=exc.user_message)

        self._transition(TransactionState.AWAITING_GATEWAY)
        outcome = await open_checkout(
            self._loader.handle,
            self._checkout_options(intent, address),
            timeout=self._settings.gateway_widget_timeout,
        )

        if isinstance(outcome, PaymentSuccess):
            return await self._verify_and_settle(outcome)
        if isinstance(outcome, PaymentFailure):
            return await self._gateway_failed(intent, outcome)
        if isinstance(outcome, PaymentCancelled):
            return self._gateway_cancelled(intent)
        raise TypeError(f"Unknown payment outcome {outcome!r}")

    # -------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------
    async def _verify_and_settle(self, success: PaymentSuccess) -> PaymentResult:
        self._transition(TransactionState.VERIFYING)
        try:
            await self._backend.confirm_payment(success)
        except VerificationError as exc:
            self._transition(TransactionState.VERIFY_FAILED)
            logger.error(
                "Payment verification failed",
                buyer_id=self.buyer_id,
                gateway_order_id=success.gateway_order_id,
                gateway_payment_id=success.gateway_payment_id,
                error=str(exc),
            )
            return PaymentResult(
                status=PaymentResultStatus.VERIFY_FAILED,
                message=exc.user_message,
                gateway_order_id=success.gateway_order_id,
                gateway_payment_id=success.gateway_payment_id,
            )

        self._transition(TransactionState.SETTLED)
        if self._finalized:
            logger.warning("Order already finalized", buyer_id=self.buyer_id, gateway_order_id=success.gateway_order_id)
            return PaymentResult(status=PaymentResultStatus.IGNORED, message=PAYMENT_CLOSED)

        self._finalized = True
        self._finalizing = True
        try:
            orders = await self._finalizer.finalize(self.buyer_id)
        except Exception as exc:
            # Money has moved; every failure from here on is reported as paid but not placed.
            if not isinstance(exc, OrderPlacementError):
                logger.exception(
                    "Order placement crashed after verified payment",
                    buyer_id=self.buyer_id,
                    gateway_order_id=success.gateway_order_id,
                    gateway_payment_id=success.gateway_payment_id,
                )
            return PaymentResult(
                status=PaymentResultStatus.ORDER_PLACEMENT_FAILED,
                message=OrderPlacementError.user_message,
                gateway_order_id=success.gateway_order_id,
                gateway_payment_id=success.gateway_payment_id,
            )
        finally:
            self._finalizing = False

        return PaymentResult(
            status=PaymentResultStatus.SETTLED,
            message=PAYMENT_SUCCESSFUL,
            orders=orders,
            gateway_order_id=success.gateway_order_id,
            gateway_payment_id=success.gateway_payment_id,
        )

    async def _gateway_failed(self, intent: PaymentIntent, failure: PaymentFailure) -> PaymentResult:
        self._transition(TransactionState.GATEWAY_FAILED)
        logger.info(
            "Gateway reported payment failure",
            buyer_id=self.buyer_id,
            gateway_order_id=failure.gateway_order_id or intent.gateway_order_id,
            reason=failure.reason,
        )
        await self._report_failure(failure)
        self._transition(TransactionState.IDLE)
        return PaymentResult(
            status=PaymentResultStatus.GATEWAY_FAILED,
            message=failure.reason,
            gateway_order_id=failure.gateway_order_id,
            gateway_payment_id=failure.gateway_payment_id,
        )

    def _gateway_cancelled(self, intent: PaymentIntent) -> PaymentResult:
        self._transition(TransactionState.GATEWAY_CANCELLED)
        logger.info("Payment widget dismissed", buyer_id=self.buyer_id, gateway_order_id=intent.gateway_order_id)
        self._transition(TransactionState.IDLE)
        return PaymentResult(status=PaymentResultStatus.GATEWAY_CANCELLED, message=PAYMENT_CANCELLED)

    async def _report_failure(self, failure: PaymentFailure) -> None:
        """Best-effort: the buyer must see the failure even if this call fails."""
        try:
            await self._backend.record_failure(failure)
        except Exception as exc:
            logger.warning("Could not record payment failure", buyer_id=self.buyer_id, error=str(exc))

    def _checkout_options(self, intent: PaymentIntent, address: ShippingAddress) -> CheckoutOptions:
        return CheckoutOptions(
            key=intent.gateway_public_key,
            amount=intent.amount,
            currency=intent.currency,
            order_id=intent.gateway_order_id,
            name=self._settings.merchant_name,
            description=self._settings.purchase_description,
            prefill=address.contact_prefill(),
            notes={"address": address.one_line()},
            theme={"color": self._settings.theme_color},
        )
