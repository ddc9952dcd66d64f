"""Cart collaborator: read-only cart lines for checkout.

The cart itself is owned by the storefront backend. Checkout only reads
the buyer's lines and, after an order is placed, drops its local copy.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

import httpx
import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field

from shared.exceptions import BackendUnavailableError, ValidationError
from shared.http import parse_json, send

logger = structlog.get_logger(__name__)


class CartLine(BaseModel):
    """One product in the buyer's cart."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    product_ref: str
    title: str = ""
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_payload(cls, item: dict) -> "CartLine":
        """Build a line from the backend's ``{quantity, product: {id, name, price}}`` shape."""
        product = item.get("product") or {}
        try:
            return cls(
                product_ref=product.get("id", ""),
                title=product.get("name") or "",
                unit_price=product.get("price") or 0,
                quantity=item.get("quantity", 0),
            )
        except pydantic.ValidationError as exc:
            raise ValidationError(
                {"cart": [f"Invalid cart line for product {product.get('id')!r}: {exc.error_count()} error(s)"]}
            ) from exc


class CartService(ABC):
    """Cart collaborator interface."""

    @abstractmethod
    async def get_cart(self, buyer_id: str) -> list[CartLine]:
        """Return the buyer's current cart lines."""
        ...

    @abstractmethod
    def clear_cart(self) -> None:
        """Forget the locally cached cart after an order is placed."""
        ...


class HttpCartService(CartService):
    """Reads the cart from ``GET /buyer/{buyer_id}/cart`` and caches it."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client
        self.lines: list[CartLine] = []

    async def get_cart(self, buyer_id: str) -> list[CartLine]:
        response = await send(self._client, "GET", f"/buyer/{buyer_id}/cart")
        payload = parse_json(response)
        if not isinstance(payload, list):
            raise BackendUnavailableError(f"Expected a list of cart items, got {type(payload).__name__}")

        self.lines = [CartLine.from_payload(item) for item in payload]
        logger.info("Fetched cart", buyer_id=buyer_id, line_count=len(self.lines))
        return list(self.lines)

    def clear_cart(self) -> None:
        self.lines = []


class InMemoryCartService(CartService):
    """Cart held in memory, for development and tests."""

    def __init__(self, carts: dict[str, list[CartLine]] | None = None) -> None:
        self.carts: dict[str, list[CartLine]] = carts or {}
        self.cleared = 0
        self._buyer_id: str | None = None

    async def get_cart(self, buyer_id: str) -> list[CartLine]:
        self._buyer_id = str(buyer_id)
        return list(self.carts.get(self._buyer_id, []))

    def clear_cart(self) -> None:
        """Empty the cart of the buyer last read; other buyers are untouched."""
        if self._buyer_id is not None:
            self.carts.pop(self._buyer_id, None)
        self.cleared += 1
