from decimal import Decimal

import pytest
from checkout.address.address import ShippingAddress
from checkout.cart.service import CartLine, InMemoryCartService
from checkout.order.finalizer import HttpOrderService
from checkout.session import CheckoutServices
from payments.backend.client import PaymentBackend
from payments.gateway import set_script_host
from payments.gateway.fake_adapter import FakeScriptHost

BUYER_ID = "42"


@pytest.fixture()
def cart_lines():
    return [
        CartLine(product_ref="10", title="Dokra Horse", unit_price=Decimal("400"), quantity=2),
        CartLine(product_ref="11", title="Warli Painting", unit_price=Decimal("400"), quantity=1),
    ]


@pytest.fixture()
def cart_service(cart_lines):
    return InMemoryCartService({BUYER_ID: cart_lines})


@pytest.fixture()
def host():
    host = FakeScriptHost()
    set_script_host(host)
    return host


@pytest.fixture()
def services(fake_backend, cart_service, host):
    client = fake_backend.client()
    return CheckoutServices(
        cart=cart_service,
        orders=HttpOrderService(client),
        backend=PaymentBackend(client),
        host=host,
        client=client,
    )


@pytest.fixture()
def address():
    return ShippingAddress(
        full_name="Asha Devi",
        phone="9876543210",
        email="asha@example.com",
        address_line="12 Forest Road",
        city="Ranchi",
        state="Jharkhand",
        pincode="834001",
    )
