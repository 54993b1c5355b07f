"""Result types shared by the payment processor adapters, and their registry."""

import enum
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from airswitch.exceptions import ValidationError
from airswitch.models import PaymentMethod

CENT = Decimal("0.01")


class ChargeStatus(str, enum.Enum):
    SUCCEEDED = "SUCCEEDED"
    PENDING = "PENDING"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ChargeIntent:
    """What the client needs to complete a payment, plus our idempotency key."""

    provider: str
    reference: str
    client_handle: str


@dataclass(frozen=True)
class ChargeVerification:
    status: ChargeStatus
    amount: Decimal = Decimal("0.00")
    currency: str = ""
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == ChargeStatus.SUCCEEDED


@dataclass(frozen=True)
class ChargeEvent:
    """An authenticated processor webhook, normalised across providers."""

    provider: str
    event_type: str
    reference: str
    succeeded: bool
    amount: Decimal = Decimal("0.00")
    currency: str = ""
    metadata: dict = field(default_factory=dict)

    @property
    def user_id(self) -> Optional[str]:
        return self.metadata.get("user_id")

    @property
    def plan_id(self) -> Optional[str]:
        return self.metadata.get("plan_id") or None

    @property
    def purpose(self) -> str:
        return self.metadata.get("purpose", "")


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount) -> Decimal:
    return (Decimal(amount or 0) / 100).quantize(CENT)


def get_payment_gateway(method: str):
    """Return the adapter for an external payment method."""
    if method == PaymentMethod.STRIPE:
        from airswitch.utils.card import get_stripe_gateway

        return get_stripe_gateway()
    if method == PaymentMethod.PAYSTACK:
        from airswitch.utils.bank_transfer import get_paystack_gateway

        return get_paystack_gateway()
    raise ValidationError(f"Unsupported payment method: {method}")
