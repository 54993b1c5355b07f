import json
import logging
from decimal import Decimal
from functools import lru_cache
from typing import Optional

import stripe
from django.conf import settings

from airswitch.exceptions import GatewayError, InvalidSignature
from airswitch.models import PaymentMethod
from airswitch.utils.payments import (
    ChargeEvent,
    ChargeIntent,
    ChargeStatus,
    ChargeVerification,
    from_minor_units,
    to_minor_units,
)

logger = logging.getLogger(__name__)

PENDING_INTENT_STATUSES = {
    "processing",
    "requires_action",
    "requires_capture",
    "requires_confirmation",
    "requires_payment_method",
}


class StripeGateway:
    """
    Card processor adapter. Amounts are major units at this interface and
    cents on the wire; user and plan ids travel in the intent metadata so the
    webhook can be provisioned without a side lookup.
    """

    provider = PaymentMethod.STRIPE

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[stripe.StripeClient] = None,
    ):
        self.webhook_secret = webhook_secret or getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
        self.client = client or stripe.StripeClient(
            api_key or getattr(settings, "STRIPE_SECRET_KEY", ""),
            http_client=stripe.RequestsClient(
                timeout=timeout or getattr(settings, "GATEWAY_TIMEOUT", 15)
            ),
        )

    def create_charge(
        self,
        amount: Decimal,
        currency: str,
        user_id,
        metadata: Optional[dict] = None,
        email: Optional[str] = None,
    ) -> ChargeIntent:
        params = {
            "amount": to_minor_units(amount),
            "currency": currency.lower(),
            "metadata": {"user_id": str(user_id), **(metadata or {})},
            "automatic_payment_methods": {"enabled": True},
        }
        if email:
            params["receipt_email"] = email
        try:
            intent = self.client.payment_intents.create(params=params)
        except stripe.StripeError as exc:
            logger.error(
                "Stripe create intent failed: user=%s amount=%s %s error=%s",
                user_id,
                amount,
                currency,
                exc,
            )
            raise GatewayError("Card processor rejected the charge.") from exc

        logger.info(
            "Stripe intent created: user=%s intent=%s amount=%s %s",
            user_id,
            intent.id,
            amount,
            currency,
        )
        return ChargeIntent(
            provider=self.provider,
            reference=intent.id,
            client_handle=intent.client_secret,
        )

    def verify_charge(self, reference: str) -> ChargeVerification:
        try:
            intent = self.client.payment_intents.retrieve(reference)
        except stripe.StripeError as exc:
            logger.error("Stripe verify failed: intent=%s error=%s", reference, exc)
            raise GatewayError("Could not verify card payment.") from exc

        currency = (intent.currency or "").upper()
        amount = from_minor_units(intent.amount_received or intent.amount)
        if intent.status == "succeeded":
            return ChargeVerification(ChargeStatus.SUCCEEDED, amount, currency)
        if intent.status in PENDING_INTENT_STATUSES:
            return ChargeVerification(
                ChargeStatus.PENDING, amount, currency, reason=intent.status
            )
        return ChargeVerification(
            ChargeStatus.FAILED, amount, currency, reason=intent.status or "unknown"
        )

    def parse_webhook(self, payload: bytes, signature: str) -> ChargeEvent:
        """Verify the Stripe-Signature header, then normalise the event."""
        if not self.webhook_secret or not signature:
            raise InvalidSignature("Missing Stripe signature.")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            logger.warning("Stripe webhook signature invalid: %s", exc)
            raise InvalidSignature() from exc
        except ValueError as exc:
            raise InvalidSignature("Malformed Stripe payload.") from exc

        event = json.loads(payload)
        obj = (event.get("data") or {}).get("object") or {}
        return ChargeEvent(
            provider=self.provider,
            event_type=event.get("type", ""),
            reference=obj.get("id", ""),
            succeeded=event.get("type") == "payment_intent.succeeded",
            amount=from_minor_units(obj.get("amount_received") or obj.get("amount")),
            currency=(obj.get("currency") or "").upper(),
            metadata=dict(obj.get("metadata") or {}),
        )


@lru_cache(maxsize=None)
def get_stripe_gateway() -> StripeGateway:
    return StripeGateway()
