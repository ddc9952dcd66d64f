"""Turn the widget's success/failure/dismiss callbacks into one awaitable."""

import asyncio
import dataclasses

import structlog

from payments.gateway.outcome import PaymentCancelled, PaymentFailure, PaymentOutcome, PaymentSuccess
from payments.gateway.port import CheckoutOptions, GatewayHandle

logger = structlog.get_logger(__name__)

PAYMENT_FAILED_EVENT = "payment.failed"


async def open_checkout(
    handle: GatewayHandle,
    options: CheckoutOptions,
    timeout: float | None = None,
) -> PaymentOutcome:
    """Open the widget and wait for its first outcome.

    Only the first callback resolves the outcome. Gateways occasionally
    repeat a callback; repeats are logged and dropped. A widget that stays
    silent for ``timeout`` seconds is treated as dismissed.
    """
    outcome: asyncio.Future = asyncio.get_running_loop().create_future()

    def _resolve(result: PaymentOutcome) -> None:
        if outcome.done():
            logger.warning(
                "Ignoring repeated gateway callback",
                order_id=options.order_id,
                outcome=type(result).__name__,
            )
            return
        outcome.set_result(result)

    widget = handle.create_widget(
        dataclasses.replace(
            options,
            handler=lambda response: _resolve(PaymentSuccess.from_callback(response)),
            on_dismiss=lambda: _resolve(PaymentCancelled()),
        )
    )
    widget.on(PAYMENT_FAILED_EVENT, lambda response: _resolve(PaymentFailure.from_callback(response)))
    widget.open()

    try:
        return await asyncio.wait_for(outcome, timeout=timeout)
    except TimeoutError:
        logger.warning("Payment widget timed out", order_id=options.order_id, timeout=timeout)
        return PaymentCancelled()
