"""Order placement after a verified payment.

Converts the buyer's cart into persisted orders (the backend creates one
order per seller) and then drops the local cart cache. Called only once
the payment is verified; any failure here means money moved without an
order, so it is reported as ``OrderPlacementError`` and never retried.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

import httpx
import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field

from checkout.cart.service import CartService
from shared.exceptions import BackendError, OrderPlacementError
from shared.http import parse_json, send

logger = structlog.get_logger(__name__)


class OrderRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, extra="ignore")

    id: str
    status: str = "Pending"
    total_amount: Decimal = Field(default=Decimal("0"), alias="totalAmount")


class OrderService(ABC):
    @abstractmethod
    async def place_order(self, buyer_id: str) -> list[OrderRecord]: ...


class HttpOrderService(OrderService):
    """Places orders through ``POST /buyer/{buyer_id}/orders``."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def place_order(self, buyer_id: str) -> list[OrderRecord]:
        response = await send(self._client, "POST", f"/buyer/{buyer_id}/orders")
        body = parse_json(response)
        items = body if isinstance(body, list) else [body]
        try:
            return [OrderRecord.model_validate(item) for item in items]
        except pydantic.ValidationError as exc:
            raise BackendError(f"Malformed order response: {exc.error_count()} error(s)") from exc


class OrderFinalizer:
    def __init__(self, orders: OrderService, cart: CartService) -> None:
        self._orders = orders
        self._cart = cart

    async def finalize(self, buyer_id: str) -> list[OrderRecord]:
        try:
            orders = await self._orders.place_order(buyer_id)
        except BackendError as exc:
            logger.error("Order placement failed after verified payment", buyer_id=buyer_id, error=str(exc))
            raise OrderPlacementError(str(exc)) from exc

        if not orders:
            logger.error("Backend placed no orders after verified payment", buyer_id=buyer_id)
            raise OrderPlacementError("Backend returned no orders")

        self._cart.clear_cart()
        logger.info(
            "Order placed",
            buyer_id=buyer_id,
            order_ids=[order.id for order in orders],
        )
        return orders
