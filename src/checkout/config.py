"""Checkout configuration.

Values are read from ``CHECKOUT_*`` environment variables (or a ``.env``
file). ``CHECKOUT_ENVIRONMENT=production`` switches off the sandbox key
guard and the fake gateway configuration endpoint.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class CheckoutSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHECKOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"
    api_base_url: str = "http://localhost:8080/api"
    request_timeout: float = 30.0

    # Pricing
    currency: str = "INR"
    free_shipping_threshold: Decimal = Decimal("999")
    flat_shipping_fee: Decimal = Decimal("50")

    # Payment gateway
    gateway_script_url: str = "https://checkout.razorpay.com/v1/checkout.js"
    gateway_global_name: str = "Razorpay"
    gateway_load_timeout: float = 15.0
    gateway_widget_timeout: float = 900.0
    sandbox_key_prefix: str = "rzp_test_"

    # Widget branding
    merchant_name: str = "VanVyaapaar"
    purchase_description: str = "Tribal Crafts Purchase"
    theme_color: str = "#D4A574"

    # Sessions
    session_idle_timeout: float = 1800.0

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> CheckoutSettings:
    return CheckoutSettings()
