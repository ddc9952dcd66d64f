"""Pydantic request/response schemas for the Checkout API.

These are external contracts, kept separate from the session and
payment types they are built from.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from checkout.order.finalizer import OrderRecord
from checkout.payment.transaction import PaymentResult
from checkout.session import CheckoutSession
from checkout.wizard.steps import StepTransition


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class StartCheckoutRequest(BaseModel):
    buyer_id: str
    full_name: str | None = None
    email: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "buyer_id": "42",
                    "full_name": "Asha Devi",
                    "email": "asha@example.com",
                }
            ]
        }
    }


class UpdateAddressRequest(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    email: str | None = None
    address_line: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None


class ConfigureGatewayRequest(BaseModel):
    outcome: str = Field(default="success", pattern="^(success|failure|cancel|abandon)$")
    failure_reason: str = "Card declined"
    repeat_callbacks: int = Field(default=1, ge=1)
    should_load: bool = True
    load_delay: float = Field(default=0.0, ge=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class AddressView(BaseModel):
    full_name: str
    phone: str
    email: str
    address_line: str
    city: str
    state: str
    pincode: str


class CartLineView(BaseModel):
    product_ref: str
    title: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal


class PriceSummaryView(BaseModel):
    subtotal: Decimal
    shipping: Decimal
    total: Decimal


class SessionResponse(BaseModel):
    session_id: str
    buyer_id: str
    step: str
    address: AddressView
    address_frozen: bool
    cart: list[CartLineView]
    summary: PriceSummaryView
    processing_payment: bool
    transaction_state: str

    @classmethod
    def from_session(cls, session: CheckoutSession) -> "SessionResponse":
        summary = session.summary
        return cls(
            session_id=session.id,
            buyer_id=session.buyer_id,
            step=session.step.value,
            address=AddressView(**session.form.address.model_dump()),
            address_frozen=session.form.frozen,
            cart=[
                CartLineView(
                    product_ref=line.product_ref,
                    title=line.title,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    line_total=line.line_total,
                )
                for line in session.cart_lines
            ],
            summary=PriceSummaryView(subtotal=summary.subtotal, shipping=summary.shipping, total=summary.total),
            processing_payment=session.payment.processing_payment,
            transaction_state=session.payment.state.value,
        )


class StepResponse(BaseModel):
    accepted: bool
    step: str
    errors: dict[str, str] = {}

    @classmethod
    def from_transition(cls, transition: StepTransition) -> "StepResponse":
        return cls(accepted=transition.accepted, step=transition.step.value, errors=transition.errors)


class OrderView(BaseModel):
    id: str
    status: str
    total_amount: Decimal

    @classmethod
    def from_record(cls, record: OrderRecord) -> "OrderView":
        return cls(id=record.id, status=record.status, total_amount=record.total_amount)


class PaymentResponse(BaseModel):
    status: str
    success: bool
    message: str
    orders: list[OrderView] = []
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None

    @classmethod
    def from_result(cls, result: PaymentResult) -> "PaymentResponse":
        return cls(
            status=result.status.value,
            success=result.succeeded,
            message=result.message,
            orders=[OrderView.from_record(order) for order in result.orders],
            gateway_order_id=result.gateway_order_id,
            gateway_payment_id=result.gateway_payment_id,
        )


class GatewayConfigResponse(BaseModel):
    host: str
    outcome: str
    failure_reason: str
    repeat_callbacks: int
    should_load: bool
    load_delay: float
