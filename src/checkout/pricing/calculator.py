"""Price summary for the checkout sidebar and the payment amount."""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from checkout.cart.service import CartLine

ZERO = Decimal("0")
DEFAULT_FREE_SHIPPING_THRESHOLD = Decimal("999")
DEFAULT_FLAT_SHIPPING_FEE = Decimal("50")


@dataclass(frozen=True)
class PriceSummary:
    subtotal: Decimal
    shipping: Decimal
    total: Decimal


def calculate_price_summary(
    lines: Iterable[CartLine],
    free_shipping_threshold: Decimal = DEFAULT_FREE_SHIPPING_THRESHOLD,
    flat_shipping_fee: Decimal = DEFAULT_FLAT_SHIPPING_FEE,
) -> PriceSummary:
    """Subtotal, shipping and total for a set of cart lines.

    Shipping is free once the subtotal is strictly above the threshold.
    An empty cart costs nothing, shipping included.
    """
    lines = list(lines)
    if not lines:
        return PriceSummary(subtotal=ZERO, shipping=ZERO, total=ZERO)

    subtotal = sum((line.line_total for line in lines), ZERO)
    shipping = ZERO if subtotal > free_shipping_threshold else flat_shipping_fee
    return PriceSummary(subtotal=subtotal, shipping=shipping, total=subtotal + shipping)


def to_minor_units(amount: Decimal) -> int:
    """Convert rupees to paise, the unit the gateway charges in."""
    return int((amount * 100).to_integral_value())
