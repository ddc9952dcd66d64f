"""Configurable fake payment gateway for development and testing.

This adapter simulates the gateway's client script and checkout widget
without a browser or any external calls. It can be configured at runtime
to succeed, fail, be dismissed or never answer, making it useful for:
- Manual API testing via /checkout/gateway/configure
- Automated tests with predictable outcomes
- Development without real gateway credentials

Widget outcomes use the same callback payloads as the real gateway, and
signatures are always "test-signature".
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from uuid import uuid4

from payments.gateway.port import (
    CheckoutOptions,
    GatewayHandle,
    GatewayWidget,
    ScriptHost,
    ScriptLoadError,
    ScriptTag,
)

OUTCOMES = ("success", "failure", "cancel", "abandon")


@dataclass
class FakeGatewayBehavior:
    outcome: str = "success"
    failure_reason: str = "Card declined"
    repeat_callbacks: int = 1


class FakeCheckoutWidget(GatewayWidget):
    def __init__(self, options: CheckoutOptions, behavior: FakeGatewayBehavior, opened: list) -> None:
        self.options = options
        self._behavior = behavior
        self._opened = opened
        self._listeners: dict[str, list[Callable[[dict], None]]] = {}

    def on(self, event: str, callback: Callable[[dict], None]) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def open(self) -> None:
        self._opened.append(self.options)
        payment_id = f"pay_fake_{uuid4().hex[:12]}"

        for _ in range(max(self._behavior.repeat_callbacks, 1)):
            if self._behavior.outcome == "success":
                self.options.handler(
                    {
                        "razorpay_order_id": self.options.order_id,
                        "razorpay_payment_id": payment_id,
                        "razorpay_signature": "test-signature",
                    }
                )
            elif self._behavior.outcome == "failure":
                for callback in self._listeners.get("payment.failed", []):
                    callback(
                        {
                            "error": {
                                "description": self._behavior.failure_reason,
                                "metadata": {"order_id": self.options.order_id, "payment_id": payment_id},
                            }
                        }
                    )
            elif self._behavior.outcome == "cancel":
                self.options.on_dismiss()


class FakeGatewayHandle(GatewayHandle):
    def __init__(self, behavior: FakeGatewayBehavior, opened: list) -> None:
        self._behavior = behavior
        self._opened = opened

    def create_widget(self, options: CheckoutOptions) -> GatewayWidget:
        return FakeCheckoutWidget(options, self._behavior, self._opened)


class FakeScriptHost(ScriptHost):
    """In-memory page: script tags, globals, and a configurable gateway."""

    def __init__(self) -> None:
        self.behavior = FakeGatewayBehavior()
        self.should_load: bool = True
        self.load_delay: float = 0.0
        self.scripts: list[ScriptTag] = []
        self.globals: dict[str, GatewayHandle] = {}
        self.injected: list[str] = []
        self.opened: list[CheckoutOptions] = []

    def configure(
        self,
        outcome: str = "success",
        failure_reason: str = "Card declined",
        repeat_callbacks: int = 1,
        should_load: bool = True,
        load_delay: float = 0.0,
    ) -> None:
        """Configure gateway behavior at runtime."""
        if outcome not in OUTCOMES:
            raise ValueError(f"outcome must be one of {OUTCOMES}")
        self.behavior = FakeGatewayBehavior(
            outcome=outcome,
            failure_reason=failure_reason,
            repeat_callbacks=repeat_callbacks,
        )
        self.should_load = should_load
        self.load_delay = load_delay

    def find_scripts(self, origin: str) -> list[ScriptTag]:
        return [tag for tag in self.scripts if tag.src.startswith(origin)]

    def remove_script(self, tag: ScriptTag) -> None:
        self.scripts.remove(tag)

    def clear_global(self, name: str) -> None:
        self.globals.pop(name, None)

    async def inject_script(self, src: str, global_name: str) -> GatewayHandle:
        tag = ScriptTag(tag_id=uuid4().hex, src=src)
        self.scripts.append(tag)
        self.injected.append(src)

        await asyncio.sleep(self.load_delay)
        if not self.should_load:
            raise ScriptLoadError(f"Failed to load {src}")

        handle = FakeGatewayHandle(self.behavior, self.opened)
        self.globals[global_name] = handle
        return handle
