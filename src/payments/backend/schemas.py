"""Pydantic schemas for the payment backend's REST contract.

These mirror the backend's JSON (camelCase and the gateway's
``razorpay_*`` names) and keep that naming out of the rest of the code.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    buyer_id: str = Field(alias="buyerId")
    amount: float = Field(gt=0)  # major units (rupees)
    currency: str = "INR"

    @classmethod
    def for_total(cls, buyer_id: str, total: Decimal, currency: str) -> "CreateOrderRequest":
        return cls(buyer_id=buyer_id, amount=float(total), currency=currency)


class CreateOrderResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    success: bool = True
    order_id: str = Field(alias="orderId")
    amount: int  # minor units (paise)
    currency: str
    key_id: str = Field(alias="keyId")
    livemode: bool | None = None
    message: str | None = None


class PaymentSuccessRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PaymentSuccessResponse(BaseModel):
    success: bool
    message: str = ""


class PaymentFailureRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(default="", alias="razorpayOrderId")
    payment_id: str = Field(default="", alias="razorpayPaymentId")
    error_message: str = Field(alias="errorMessage")
