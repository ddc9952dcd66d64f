"""Two-step checkout wizard: shipping address, then payment.

State Machine:
    ADDRESS → PAYMENT   (cart non-empty and address valid)
    PAYMENT → ADDRESS   (always)

A refused transition is a normal result carrying the validation errors,
not an exception.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import structlog

from checkout.address.address import AddressForm
from checkout.cart.service import CartLine

logger = structlog.get_logger(__name__)

EMPTY_CART_MESSAGE = "Your cart is empty"


class CheckoutStep(Enum):
    ADDRESS = "Address"
    PAYMENT = "Payment"


@dataclass(frozen=True)
class StepTransition:
    accepted: bool
    step: CheckoutStep
    errors: dict[str, str] = field(default_factory=dict)


class StepController:
    def __init__(self, form: AddressForm) -> None:
        self.form = form
        self.step = CheckoutStep.ADDRESS

    def advance(self, cart_lines: Sequence[CartLine]) -> StepTransition:
        """Move from the address step to the payment step if allowed."""
        if self.step == CheckoutStep.PAYMENT:
            return StepTransition(accepted=True, step=self.step)

        errors = {}
        if not cart_lines:
            errors["cart"] = EMPTY_CART_MESSAGE
        errors.update(self.form.validate())

        if errors:
            logger.info("Checkout step refused", missing=sorted(errors))
            return StepTransition(accepted=False, step=self.step, errors=errors)

        self.form.freeze()
        self.step = CheckoutStep.PAYMENT
        return StepTransition(accepted=True, step=self.step)

    def back(self) -> StepTransition:
        """Return to the address step."""
        self.step = CheckoutStep.ADDRESS
        self.form.unfreeze()
        return StepTransition(accepted=True, step=self.step)
