import hashlib
import hmac
import json
import logging
from decimal import Decimal
from functools import lru_cache
from typing import Optional

import requests
from django.conf import settings

from airswitch.exceptions import GatewayError, GatewayTimeout, InvalidSignature
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

FAILED_STATUSES = {"failed", "abandoned", "reversed"}


class PaystackGateway:
    """
    Checkout-style processor adapter: initialize returns an authorization URL
    the client opens, verify-by-reference is the source of truth. Amounts go
    over the wire in kobo/cents.
    """

    provider = PaymentMethod.PAYSTACK

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.secret_key = secret_key or getattr(settings, "PAYSTACK_SECRET_KEY", "")
        self.base_url = (
            base_url or getattr(settings, "PAYSTACK_BASE_URL", "https://api.paystack.co")
        ).rstrip("/")
        self.timeout = timeout or getattr(settings, "GATEWAY_TIMEOUT", 15)
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers={
                    "Authorization": f"Bearer {self.secret_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                **kwargs,
            )
            payload = response.json()
        except requests.exceptions.Timeout as exc:
            logger.error("Paystack timeout: %s %s error=%s", method, path, exc)
            raise GatewayTimeout("Paystack timed out.") from exc
        except requests.exceptions.RequestException as exc:
            logger.error("Paystack request error: %s %s error=%s", method, path, exc)
            raise GatewayError("Paystack unreachable.") from exc
        except ValueError as exc:
            raise GatewayError("Paystack returned a non-JSON response.") from exc

        if response.status_code >= 400 or not payload.get("status"):
            message = payload.get("message") or f"HTTP {response.status_code}"
            logger.warning(
                "Paystack rejected %s %s: status=%d message=%s",
                method,
                path,
                response.status_code,
                message,
            )
            raise GatewayError(message, status=response.status_code, payload=payload)
        return payload.get("data") or {}

    def create_charge(
        self,
        amount: Decimal,
        currency: str,
        user_id,
        metadata: Optional[dict] = None,
        email: Optional[str] = None,
    ) -> ChargeIntent:
        if not email:
            raise GatewayError("Paystack requires a customer email.")
        metadata = {"user_id": str(user_id), **(metadata or {})}
        body = {
            "email": email,
            "amount": to_minor_units(amount),
            "currency": currency.upper(),
            "metadata": {
                **metadata,
                "custom_fields": [
                    {
                        "display_name": "User ID",
                        "variable_name": "user_id",
                        "value": metadata["user_id"],
                    },
                    {
                        "display_name": "Plan ID",
                        "variable_name": "plan_id",
                        "value": metadata.get("plan_id", ""),
                    },
                ],
            },
        }
        callback_url = getattr(settings, "PAYSTACK_CALLBACK_URL", "")
        if callback_url:
            body["callback_url"] = callback_url

        data = self._request("POST", "/transaction/initialize", json=body)
        logger.info(
            "Paystack transaction initialized: user=%s reference=%s amount=%s %s",
            user_id,
            data.get("reference"),
            amount,
            currency,
        )
        return ChargeIntent(
            provider=self.provider,
            reference=data["reference"],
            client_handle=data["authorization_url"],
        )

    def verify_charge(self, reference: str) -> ChargeVerification:
        data = self._request("GET", f"/transaction/verify/{reference}")
        status = (data.get("status") or "").lower()
        amount = from_minor_units(data.get("amount"))
        currency = (data.get("currency") or "").upper()
        if status == "success":
            return ChargeVerification(ChargeStatus.SUCCEEDED, amount, currency)
        if status in FAILED_STATUSES:
            return ChargeVerification(ChargeStatus.FAILED, amount, currency, reason=status)
        return ChargeVerification(ChargeStatus.PENDING, amount, currency, reason=status)

    def compute_signature(self, payload: bytes) -> str:
        return hmac.new(self.secret_key.encode(), payload, hashlib.sha512).hexdigest()

    def parse_webhook(self, payload: bytes, signature: str) -> ChargeEvent:
        """Check x-paystack-signature (HMAC-SHA512 of the raw body) before parsing."""
        if not self.secret_key or not signature:
            raise InvalidSignature("Missing Paystack signature.")
        if not hmac.compare_digest(self.compute_signature(payload), signature):
            logger.warning("Paystack webhook signature invalid")
            raise InvalidSignature()

        try:
            event = json.loads(payload)
        except ValueError as exc:
            raise InvalidSignature("Malformed Paystack payload.") from exc

        data = event.get("data") or {}
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            metadata = {}
        for custom in metadata.get("custom_fields") or []:
            name = custom.get("variable_name")
            if name in ("user_id", "plan_id") and not metadata.get(name):
                metadata[name] = custom.get("value")

        return ChargeEvent(
            provider=self.provider,
            event_type=event.get("event", ""),
            reference=data.get("reference", ""),
            succeeded=event.get("event") == "charge.success",
            amount=from_minor_units(data.get("amount")),
            currency=(data.get("currency") or "").upper(),
            metadata={k: v for k, v in metadata.items() if k != "custom_fields"},
        )


@lru_cache(maxsize=None)
def get_paystack_gateway() -> PaystackGateway:
    return PaystackGateway()
