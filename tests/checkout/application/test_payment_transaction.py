"""Tests for the payment transaction handler."""

import asyncio
from decimal import Decimal

import pytest
from checkout.config import CheckoutSettings
from checkout.order.finalizer import OrderFinalizer
from checkout.payment.transaction import (
    PAYMENT_CANCELLED,
    PAYMENT_SUCCESSFUL,
    PaymentResultStatus,
    PaymentTransactionHandler,
    TransactionState,
)
from payments.gateway.loader import GatewayLoader
from payments.intent.initiator import PaymentOrderInitiator

TOTAL = Decimal("1200")


def _handler(services, settings):
    return PaymentTransactionHandler(
        buyer_id="42",
        loader=GatewayLoader(services.host, settings.gateway_script_url, timeout=settings.gateway_load_timeout),
        initiator=PaymentOrderInitiator(services.backend, settings),
        backend=services.backend,
        finalizer=OrderFinalizer(services.orders, services.cart),
        settings=settings,
    )


@pytest.fixture()
def handler(services, settings):
    return _handler(services, settings)


def _crash_on_orders(method, path):
    if path.endswith("/orders"):
        raise RuntimeError("connection reset by peer")


class TestSuccessfulPayment:
    def test_settles_and_places_order(self, handler, address, fake_backend, cart_service):
        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.SETTLED
        assert result.succeeded
        assert result.message == PAYMENT_SUCCESSFUL
        assert [order.id for order in result.orders] == ["101"]
        assert result.gateway_order_id == "order_test_001"
        assert handler.state == TransactionState.SETTLED
        assert handler.processing_payment is False
        assert cart_service.cleared == 1

    def test_steps_run_in_order(self, handler, address, fake_backend):
        asyncio.run(handler.pay(TOTAL, address))

        assert [path for _, path in fake_backend.calls] == [
            "/payment/create-order",
            "/payment/success",
            "/buyer/42/orders",
        ]

    def test_widget_is_opened_with_intent_and_address(self, handler, address, host, settings):
        asyncio.run(handler.pay(TOTAL, address))

        options = host.opened[0]
        assert options.key == "rzp_test_1234567890"
        assert options.amount == 120000
        assert options.currency == "INR"
        assert options.order_id == "order_test_001"
        assert options.name == settings.merchant_name
        assert options.description == settings.purchase_description
        assert options.prefill == {"name": "Asha Devi", "email": "asha@example.com", "contact": "9876543210"}
        assert options.notes == {"address": "12 Forest Road, Ranchi, Jharkhand - 834001"}
        assert options.theme == {"color": "#D4A574"}

    def test_backend_amount_is_charged(self, handler, address, fake_backend, host):
        fake_backend.charged_amount = 115000
        asyncio.run(handler.pay(TOTAL, address))
        assert host.opened[0].amount == 115000

    def test_duplicate_success_callbacks_finalize_once(self, handler, address, fake_backend, host, cart_service):
        host.configure(repeat_callbacks=3)

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.SETTLED
        assert fake_backend.count("POST", "/payment/success") == 1
        assert fake_backend.count("POST", "/buyer/42/orders") == 1
        assert cart_service.cleared == 1

    def test_no_further_payment_after_settlement(self, handler, address, fake_backend):
        asyncio.run(handler.pay(TOTAL, address))

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.IGNORED
        assert fake_backend.count("POST", "/payment/create-order") == 1

    def test_processing_flag_during_verification(self, handler, address, fake_backend):
        seen = {}

        def observe(method, path):
            if path == "/payment/success":
                seen["state"] = handler.state
                seen["processing"] = handler.processing_payment

        fake_backend.on_request = observe
        asyncio.run(handler.pay(TOTAL, address))

        assert seen == {"state": TransactionState.VERIFYING, "processing": True}
        assert handler.processing_payment is False

    def test_processing_flag_during_order_placement(self, handler, address, fake_backend):
        seen = []
        fake_backend.on_request = _crash_on_orders

        asyncio.run(handler.pay(TOTAL, address))

        assert seen == [True]
        assert handler.processing_payment is False


class TestVerificationFailure:
    def test_rejected_signature(self, handler, address, fake_backend, cart_service):
        fake_backend.verify_success = False

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.VERIFY_FAILED
        assert "contact support" in result.message
        assert result.gateway_payment_id is not None
        assert fake_backend.count("POST", "/buyer/42/orders") == 0
        assert cart_service.cleared == 0
        assert handler.state == TransactionState.VERIFY_FAILED
        assert handler.processing_payment is False

    def test_verification_outage(self, handler, address, fake_backend, cart_service):
        fake_backend.verify_status = 503

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.VERIFY_FAILED
        assert cart_service.cleared == 0

    def test_no_retry_after_verification_failure(self, handler, address, fake_backend):
        fake_backend.verify_success = False
        asyncio.run(handler.pay(TOTAL, address))

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.IGNORED
        assert fake_backend.count("POST", "/payment/create-order") == 1


class TestOrderPlacementFailure:
    def test_reports_paid_but_not_placed(self, handler, address, fake_backend, cart_service):
        fake_backend.orders_status = 500
        fake_backend.orders = {"message": "boom"}

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.ORDER_PLACEMENT_FAILED
        assert result.message == "Your payment succeeded but we could not place your order. Please contact support."
        assert handler.state == TransactionState.SETTLED
        assert handler.processing_payment is False
        assert cart_service.cleared == 0

    def test_unexpected_placement_crash_still_reports_paid(self, handler, address, fake_backend, cart_service):
        fake_backend.on_request = _crash_on_orders

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.ORDER_PLACEMENT_FAILED
        assert result.message == "Your payment succeeded but we could not place your order. Please contact support."
        assert result.gateway_order_id == "order_test_001"
        assert result.gateway_payment_id.startswith("pay_fake_")
        assert handler.state == TransactionState.SETTLED
        assert handler.processing_payment is False
        assert cart_service.cleared == 0

    def test_no_second_charge_after_placement_crash(self, handler, address, fake_backend):
        fake_backend.on_request = _crash_on_orders
        asyncio.run(handler.pay(TOTAL, address))

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.IGNORED
        assert fake_backend.count("POST", "/payment/create-order") == 1


class TestGatewayFailure:
    def test_failure_is_reported_and_logged(self, handler, address, fake_backend, host):
        host.configure(outcome="failure", failure_reason="Bank declined the card")

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.GATEWAY_FAILED
        assert result.message == "Bank declined the card"
        assert fake_backend.bodies["/payment/failure"][0]["errorMessage"] == "Bank declined the card"
        assert fake_backend.count("POST", "/payment/success") == 0
        assert fake_backend.count("POST", "/buyer/42/orders") == 0
        assert handler.state == TransactionState.IDLE
        assert handler.processing_payment is False

    def test_failure_logging_errors_are_swallowed(self, handler, address, fake_backend, host):
        host.configure(outcome="failure", failure_reason="Bank declined the card")
        fake_backend.failure_status = 500

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.GATEWAY_FAILED
        assert result.message == "Bank declined the card"
        assert handler.state == TransactionState.IDLE

    def test_retry_after_failure(self, handler, address, fake_backend, host):
        host.configure(outcome="failure")
        asyncio.run(handler.pay(TOTAL, address))

        host.configure(outcome="success")
        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.SETTLED
        assert fake_backend.count("POST", "/payment/create-order") == 2
        assert len(host.injected) == 2


class TestCancellation:
    def test_dismiss_returns_to_idle(self, handler, address, fake_backend, host):
        host.configure(outcome="cancel")

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.GATEWAY_CANCELLED
        assert result.message == PAYMENT_CANCELLED
        assert fake_backend.count("POST", "/payment/failure") == 0
        assert fake_backend.count("POST", "/payment/success") == 0
        assert handler.state == TransactionState.IDLE
        assert handler.processing_payment is False

    def test_silent_widget_times_out_as_dismissed(self, services, address, fake_backend, host):
        host.configure(outcome="abandon")
        settings = CheckoutSettings(environment="test", gateway_widget_timeout=0.01)
        handler = _handler(services, settings)

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.GATEWAY_CANCELLED
        assert fake_backend.count("POST", "/payment/success") == 0
        assert handler.state == TransactionState.IDLE
        assert handler.processing_payment is False

    def test_retry_after_timeout(self, services, address, fake_backend, host):
        host.configure(outcome="abandon")
        handler = _handler(services, CheckoutSettings(environment="test", gateway_widget_timeout=0.01))
        asyncio.run(handler.pay(TOTAL, address))

        host.configure(outcome="success")
        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.SETTLED
        assert fake_backend.count("POST", "/payment/create-order") == 2


class TestBeforeTheWidget:
    def test_gateway_script_unavailable(self, handler, address, fake_backend, host):
        host.configure(should_load=False)

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.GATEWAY_UNAVAILABLE
        assert result.message == "Payment gateway not available. Please refresh the page."
        assert fake_backend.calls == []
        assert handler.processing_payment is False

    def test_live_key_outside_production(self, handler, address, fake_backend, host):
        fake_backend.key_id = "rzp_live_abcdef"

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.CONFIGURATION_ERROR
        assert result.message == "Payment gateway configuration error"
        assert host.opened == []
        assert handler.state == TransactionState.IDLE

    def test_live_key_in_production(self, services, address, fake_backend):
        fake_backend.key_id = "rzp_live_abcdef"
        handler = _handler(services, CheckoutSettings(environment="production"))

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.SETTLED

    def test_intent_refused_by_backend(self, handler, address, fake_backend, host):
        fake_backend.create_order_status = 409
        fake_backend.create_order_body = {"code": "INSUFFICIENT_STOCK", "message": "Only 1 left"}

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.INITIATION_FAILED
        assert result.message == "Some items in your cart are no longer in stock."
        assert host.opened == []
        assert handler.state == TransactionState.IDLE

    def test_unexpected_error_releases_the_handler(self, handler, address, fake_backend):
        def explode(method, path):
            raise RuntimeError("unexpected")

        fake_backend.on_request = explode

        result = asyncio.run(handler.pay(TOTAL, address))

        assert result.status == PaymentResultStatus.ERROR
        assert handler.state == TransactionState.IDLE
        assert handler.processing_payment is False


class TestReentrancy:
    def test_second_click_while_in_flight_is_ignored(self, handler, address, fake_backend, host):
        host.configure(load_delay=0.01)

        async def double_click():
            return await asyncio.gather(handler.pay(TOTAL, address), handler.pay(TOTAL, address))

        first, second = asyncio.run(double_click())

        assert first.status == PaymentResultStatus.SETTLED
        assert second.status == PaymentResultStatus.IGNORED
        assert second.message == "A payment is already in progress"
        assert fake_backend.count("POST", "/payment/create-order") == 1
        assert len(host.opened) == 1
