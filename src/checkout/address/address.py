"""Shipping address and the form that collects it.

The address is edited field by field while the wizard is on the address
step and frozen while the buyer is on the payment step. Validation is
presence-only: the five required fields must be non-empty.
"""

from pydantic import BaseModel, ConfigDict

from shared.exceptions import ValidationError

ADDRESS_FIELDS = ("full_name", "phone", "email", "address_line", "city", "state", "pincode")
REQUIRED_FIELDS = ("full_name", "phone", "address_line", "city", "pincode")

_FIELD_LABELS = {
    "full_name": "full name",
    "phone": "phone number",
    "address_line": "address",
    "city": "city",
    "pincode": "pincode",
}


class ShippingAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str = ""
    phone: str = ""
    email: str = ""
    address_line: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""

    def contact_prefill(self) -> dict[str, str]:
        """Contact details in the shape the payment widget pre-fills."""
        return {"name": self.full_name, "email": self.email, "contact": self.phone}

    def one_line(self) -> str:
        return f"{self.address_line}, {self.city}, {self.state} - {self.pincode}"


class AddressForm:
    """Mutable form state around an immutable ``ShippingAddress``."""

    def __init__(self, address: ShippingAddress | None = None) -> None:
        self.address = address or ShippingAddress()
        self.frozen = False

    @classmethod
    def from_profile(cls, full_name: str | None = None, email: str | None = None) -> "AddressForm":
        """Start a form pre-filled from the signed-in buyer's profile."""
        return cls(ShippingAddress(full_name=full_name or "", email=email or ""))

    def set_field(self, name: str, value: str) -> None:
        self.update(**{name: value})

    def update(self, **changes: str) -> None:
        """Apply one or more field edits."""
        if self.frozen:
            raise ValidationError({"address": ["The shipping address cannot be changed during payment"]})

        unknown = sorted(set(changes) - set(ADDRESS_FIELDS))
        if unknown:
            raise ValidationError({name: ["Unknown address field"] for name in unknown})

        self.address = self.address.model_copy(update={k: v or "" for k, v in changes.items()})

    def validate(self) -> dict[str, str]:
        """Return missing required fields mapped to a message; empty means valid."""
        return {
            name: f"Please enter your {_FIELD_LABELS[name]}"
            for name in REQUIRED_FIELDS
            if not getattr(self.address, name)
        }

    def is_valid(self) -> bool:
        return not self.validate()

    def freeze(self) -> None:
        self.frozen = True

    def unfreeze(self) -> None:
        self.frozen = False
