"""Checkout failure taxonomy.

Each class maps to one user-facing category. ``user_message`` is what the
buyer sees; the exception's own message (and any chained cause) is only
ever logged.
"""


class CheckoutError(Exception):
    """Base class for every checkout failure."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None, user_message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class ValidationError(CheckoutError):
    """Local validation failure, keyed by field name."""

    user_message = "Please correct the highlighted fields."

    def __init__(self, messages: dict[str, list[str]]) -> None:
        self.messages = messages
        super().__init__(str(messages))


# ---------------------------------------------------------------------------
# Backend failures
# ---------------------------------------------------------------------------
class BackendError(CheckoutError):
    """The order/payment backend refused or failed a request."""

    user_message = "Failed to create payment order"


class AuthenticationError(BackendError):
    user_message = "Session expired. Please login again."


class InsufficientStockError(BackendError):
    user_message = "Some items in your cart are no longer in stock."


class InvalidCartError(BackendError):
    user_message = "Your cart could not be validated. Please review it and try again."


class BackendUnavailableError(BackendError):
    user_message = "Could not reach the server. Please try again."


# ---------------------------------------------------------------------------
# Gateway and settlement failures
# ---------------------------------------------------------------------------
class GatewayUnavailableError(CheckoutError):
    user_message = "Payment gateway not available. Please refresh the page."


class GatewayConfigurationError(CheckoutError):
    user_message = "Payment gateway configuration error"


class VerificationError(CheckoutError):
    user_message = "We could not confirm your payment. If money was debited, please contact support."


class OrderPlacementError(CheckoutError):
    user_message = "Your payment succeeded but we could not place your order. Please contact support."
