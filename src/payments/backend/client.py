"""REST client for the payment endpoints of the storefront backend.

- ``POST /payment/create-order``: server-side payment intent
- ``POST /payment/success``: server-side signature verification
- ``POST /payment/failure``: failure logging
"""

from decimal import Decimal

import httpx
import pydantic
import structlog

from payments.backend.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    PaymentFailureRequest,
    PaymentSuccessRequest,
    PaymentSuccessResponse,
)
from payments.gateway.outcome import PaymentFailure, PaymentSuccess
from shared.exceptions import BackendError, BackendUnavailableError, InvalidCartError, VerificationError
from shared.http import parse_json, send

logger = structlog.get_logger(__name__)


class PaymentBackend:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def create_order(self, buyer_id: str, total: Decimal, currency: str) -> CreateOrderResponse:
        """Ask the backend for a gateway order covering the buyer's cart."""
        request = CreateOrderRequest.for_total(buyer_id, total, currency)
        response = await send(
            self._client,
            "POST",
            "/payment/create-order",
            json=request.model_dump(by_alias=True),
        )
        body = parse_json(response)
        if isinstance(body, dict) and body.get("success") is False:
            raise InvalidCartError(f"create-order refused: {body.get('message')}")

        try:
            return CreateOrderResponse.model_validate(body)
        except pydantic.ValidationError as exc:
            raise BackendUnavailableError(f"Malformed create-order response: {exc.error_count()} error(s)") from exc

    async def confirm_payment(self, success: PaymentSuccess) -> PaymentSuccessResponse:
        """Have the backend verify the gateway's signature for this payment.

        Raises ``VerificationError`` unless the backend positively confirms.
        """
        request = PaymentSuccessRequest(
            razorpay_order_id=success.gateway_order_id,
            razorpay_payment_id=success.gateway_payment_id,
            razorpay_signature=success.signature,
        )
        try:
            response = await send(self._client, "POST", "/payment/success", json=request.model_dump())
            result = PaymentSuccessResponse.model_validate(parse_json(response))
        except BackendError as exc:
            raise VerificationError(f"Verification request failed: {exc}") from exc
        except pydantic.ValidationError as exc:
            raise VerificationError(f"Malformed verification response: {exc.error_count()} error(s)") from exc

        if not result.success:
            raise VerificationError(f"Verification rejected: {result.message}")
        return result

    async def record_failure(self, failure: PaymentFailure) -> None:
        request = PaymentFailureRequest(
            order_id=failure.gateway_order_id or "",
            payment_id=failure.gateway_payment_id or "",
            error_message=failure.reason,
        )
        await send(
            self._client,
            "POST",
            "/payment/failure",
            json=request.model_dump(by_alias=True),
        )
        logger.info(
            "Recorded payment failure",
            gateway_order_id=failure.gateway_order_id,
            gateway_payment_id=failure.gateway_payment_id,
        )
