import json
from decimal import Decimal
from pathlib import Path

import httpx
import pytest
from checkout.config import CheckoutSettings
from payments.gateway import reset_script_host
from shared.http import build_client

BACKEND_URL = "http://backend.test/api"


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


class FakeBackend:
    """Storefront backend served through ``httpx.MockTransport``.

    Every knob defaults to the happy path. Requests are recorded as
    ``(method, path)`` pairs with the ``/api`` prefix stripped, and JSON
    bodies are kept alongside.
    """

    def __init__(self) -> None:
        self.cart = [
            {"id": 1, "quantity": 2, "product": {"id": 10, "name": "Dokra Horse", "price": 400}},
            {"id": 2, "quantity": 1, "product": {"id": 11, "name": "Warli Painting", "price": 400}},
        ]
        self.cart_status = 200
        self.key_id = "rzp_test_1234567890"
        self.livemode = None
        self.create_order_status = 200
        self.create_order_body = None
        self.charged_amount = None
        self.verify_status = 200
        self.verify_success = True
        self.failure_status = 200
        self.orders_status = 200
        self.orders = [{"id": 101, "status": "Pending", "totalAmount": 1200}]
        self.calls: list[tuple[str, str]] = []
        self.bodies: dict[str, list] = {}
        self.on_request = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, token: str | None = "buyer-token") -> httpx.AsyncClient:
        return build_client(BACKEND_URL, token=token, transport=self.transport())

    def count(self, method: str, path: str) -> int:
        return self.calls.count((method, path))

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        self.calls.append((request.method, path))
        if request.content:
            self.bodies.setdefault(path, []).append(json.loads(request.content))
        if self.on_request is not None:
            self.on_request(request.method, path)

        if request.method == "GET" and path.endswith("/cart"):
            return httpx.Response(self.cart_status, json=self.cart)

        if path == "/payment/create-order":
            if self.create_order_body is not None:
                return httpx.Response(self.create_order_status, json=self.create_order_body)
            requested = Decimal(str(json.loads(request.content)["amount"]))
            body = {
                "success": True,
                "orderId": "order_test_001",
                "amount": self.charged_amount or int(requested * 100),
                "currency": "INR",
                "keyId": self.key_id,
            }
            if self.livemode is not None:
                body["livemode"] = self.livemode
            return httpx.Response(self.create_order_status, json=body)

        if path == "/payment/success":
            return httpx.Response(
                self.verify_status,
                json={"success": self.verify_success, "message": "verified" if self.verify_success else "bad signature"},
            )

        if path == "/payment/failure":
            return httpx.Response(self.failure_status, json={"success": True})

        if request.method == "POST" and path.endswith("/orders"):
            return httpx.Response(self.orders_status, json=self.orders)

        return httpx.Response(404, json={"message": f"No route for {path}"})


@pytest.fixture()
def fake_backend():
    return FakeBackend()


@pytest.fixture()
def settings():
    return CheckoutSettings(environment="test", api_base_url=BACKEND_URL)


@pytest.fixture(autouse=True)
def _reset_gateway_host():
    yield
    reset_script_host()
