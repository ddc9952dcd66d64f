"""Payment intent creation.

The backend is the source of truth for the amount: it prices the cart it
holds for the buyer and returns the canonical amount to charge, which may
differ from the client's own total.

Outside production the returned publishable key must look like a sandbox
key (``rzp_test_...``) and must not be flagged live; anything else is a
configuration error and the widget is never opened.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog

from checkout.config import CheckoutSettings
from checkout.pricing.calculator import to_minor_units
from payments.backend.client import PaymentBackend
from payments.backend.schemas import CreateOrderResponse
from shared.exceptions import GatewayConfigurationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentIntent:
    gateway_order_id: str
    amount: int  # minor units
    currency: str
    gateway_public_key: str


class PaymentOrderInitiator:
    def __init__(self, backend: PaymentBackend, settings: CheckoutSettings) -> None:
        self._backend = backend
        self._settings = settings

    async def create_intent(self, buyer_id: str, amount: Decimal) -> PaymentIntent:
        response = await self._backend.create_order(buyer_id, amount, self._settings.currency)
        self._check_credentials(response)

        expected = to_minor_units(amount)
        if response.amount != expected:
            logger.warning(
                "Backend charged a different amount than the cart total",
                buyer_id=buyer_id,
                client_amount=expected,
                backend_amount=response.amount,
            )

        logger.info(
            "Payment intent created",
            buyer_id=buyer_id,
            gateway_order_id=response.order_id,
            amount=response.amount,
            currency=response.currency,
        )
        return PaymentIntent(
            gateway_order_id=response.order_id,
            amount=response.amount,
            currency=response.currency,
            gateway_public_key=response.key_id,
        )

    def _check_credentials(self, response: CreateOrderResponse) -> None:
        if self._settings.is_production:
            return

        prefix = self._settings.sandbox_key_prefix
        if response.livemode or not response.key_id.startswith(prefix):
            logger.error(
                "Refusing non-sandbox gateway credentials",
                environment=self._settings.environment,
                key_prefix=response.key_id[: len(prefix)],
                livemode=response.livemode,
            )
            raise GatewayConfigurationError(f"Expected a key starting with {prefix!r} in {self._settings.environment}")
