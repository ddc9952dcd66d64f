"""One buyer's checkout: cart snapshot, address wizard and payment handler.

``CheckoutServices`` bundles the backend collaborators for a single
authenticated buyer. ``CheckoutSession`` wires them into the components
of a checkout page and is what the HTTP API drives.
"""

import time
from dataclasses import dataclass
from uuid import uuid4

import httpx
import structlog

from checkout.address.address import AddressForm
from checkout.cart.service import CartLine, CartService, HttpCartService
from checkout.config import CheckoutSettings
from checkout.order.finalizer import HttpOrderService, OrderFinalizer, OrderService
from checkout.payment.transaction import PaymentResult, PaymentResultStatus, PaymentTransactionHandler
from checkout.pricing.calculator import PriceSummary, calculate_price_summary
from checkout.wizard.steps import CheckoutStep, StepController, StepTransition
from payments.backend.client import PaymentBackend
from payments.gateway import get_script_host
from payments.gateway.loader import GatewayLoader
from payments.gateway.port import ScriptHost
from payments.intent.initiator import PaymentOrderInitiator
from shared.http import build_client

logger = structlog.get_logger(__name__)

NOT_ON_PAYMENT_STEP = "Complete your shipping address before paying"


@dataclass
class CheckoutServices:
    cart: CartService
    orders: OrderService
    backend: PaymentBackend
    host: ScriptHost
    client: httpx.AsyncClient | None = None

    @classmethod
    def over_http(
        cls,
        settings: CheckoutSettings,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        host: ScriptHost | None = None,
    ) -> "CheckoutServices":
        """Backend collaborators sharing one client authenticated as the buyer."""
        client = build_client(
            settings.api_base_url,
            token=token,
            timeout=settings.request_timeout,
            transport=transport,
        )
        return cls(
            cart=HttpCartService(client),
            orders=HttpOrderService(client),
            backend=PaymentBackend(client),
            host=host or get_script_host(),
            client=client,
        )

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()


class CheckoutSession:
    def __init__(
        self,
        buyer_id: str,
        services: CheckoutServices,
        settings: CheckoutSettings,
        form: AddressForm | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or uuid4().hex
        self.last_active = time.monotonic()
        self.buyer_id = str(buyer_id)
        self.services = services
        self.settings = settings
        self.cart_lines: list[CartLine] = []
        self.form = form or AddressForm()
        self.steps = StepController(self.form)
        self.loader = GatewayLoader(
            services.host,
            settings.gateway_script_url,
            global_name=settings.gateway_global_name,
            timeout=settings.gateway_load_timeout,
        )
        self.payment = PaymentTransactionHandler(
            buyer_id=self.buyer_id,
            loader=self.loader,
            initiator=PaymentOrderInitiator(services.backend, settings),
            backend=services.backend,
            finalizer=OrderFinalizer(services.orders, services.cart),
            settings=settings,
        )

    @classmethod
    async def open(
        cls,
        buyer_id: str,
        services: CheckoutServices,
        settings: CheckoutSettings,
        full_name: str | None = None,
        email: str | None = None,
    ) -> "CheckoutSession":
        """Start a checkout with the address pre-filled from the buyer's profile."""
        session = cls(buyer_id, services, settings, form=AddressForm.from_profile(full_name, email))
        await session.refresh_cart()
        logger.info("Checkout started", session_id=session.id, buyer_id=session.buyer_id)
        return session

    def touch(self) -> None:
        self.last_active = time.monotonic()

    def idle_for(self) -> float:
        return time.monotonic() - self.last_active

    @property
    def finished(self) -> bool:
        return self.payment.finished

    @property
    def step(self) -> CheckoutStep:
        return self.steps.step

    @property
    def summary(self) -> PriceSummary:
        return calculate_price_summary(
            self.cart_lines,
            free_shipping_threshold=self.settings.free_shipping_threshold,
            flat_shipping_fee=self.settings.flat_shipping_fee,
        )

    async def refresh_cart(self) -> list[CartLine]:
        self.cart_lines = await self.services.cart.get_cart(self.buyer_id)
        return self.cart_lines

    def edit_address(self, **changes: str) -> None:
        self.form.update(**changes)

    def advance(self) -> StepTransition:
        return self.steps.advance(self.cart_lines)

    def back(self) -> StepTransition:
        # The address stays frozen until the in-flight attempt resolves.
        if self.payment.processing_payment:
            return StepTransition(
                accepted=False,
                step=self.step,
                errors={"payment": "A payment is already in progress"},
            )
        return self.steps.back()

    async def pay(self) -> PaymentResult:
        if self.step != CheckoutStep.PAYMENT:
            return PaymentResult(status=PaymentResultStatus.IGNORED, message=NOT_ON_PAYMENT_STEP)

        result = await self.payment.pay(self.summary.total, self.form.address)
        if result.status == PaymentResultStatus.SETTLED:
            self.cart_lines = []
        return result
