import base64
import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import requests
from cryptography.exceptions import InvalidSignature as InvalidSignatureError
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from django.conf import settings

from airswitch.exceptions import GatewayError, GatewayTimeout, InvalidSignature
from airswitch.utils.token import TokenGrant, TokenManager

logger = logging.getLogger(__name__)

DEFAULT_SMDP_ADDRESS = "rsp.telnyx.com"

# Carrier answers these when a SIM is already in the requested state.
ALREADY_IN_STATE_STATUSES = (409, 422)


@dataclass(frozen=True)
class ProvisionedResource:
    external_id: str
    iccid: str
    activation_code: str
    smdp_address: str
    qr_url: str
    status: str = ""


@dataclass(frozen=True)
class UsageReport:
    data_usage: float
    data_limit: float
    unit: str = "MB"


def _fetch_api_key_grant() -> TokenGrant:
    api_key = getattr(settings, "TELNYX_API_KEY", "")
    if not api_key:
        raise GatewayError("TELNYX_API_KEY is not configured.")
    return TokenGrant(
        token=api_key,
        expires_in=getattr(settings, "TELNYX_TOKEN_LIFESPAN", 86400),
    )


class CarrierClient:
    """
    Provisioning gateway over the carrier's SIM card API.

    Every call carries a bearer token from the TokenManager. An HTTP 401 forces
    exactly one token refresh and one retry of the same request. Network
    failures and provider rejections surface as GatewayError; timeouts as
    GatewayTimeout because the carrier may still have acted on the request.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_manager: Optional[TokenManager] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (
            base_url or getattr(settings, "TELNYX_BASE_URL", "https://api.telnyx.com/v2")
        ).rstrip("/")
        self.token_manager = token_manager or TokenManager(
            _fetch_api_key_grant,
            buffer_fraction=getattr(settings, "TOKEN_REFRESH_BUFFER", 0.2),
        )
        self.timeout = timeout or getattr(settings, "GATEWAY_TIMEOUT", 15)
        self.session = session or requests.Session()

    def _send(self, method: str, url: str, token: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(
                method,
                url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.Timeout as exc:
            logger.error("Carrier timeout: %s %s error=%s", method, url, exc)
            raise GatewayTimeout(f"Carrier timed out on {method} {url}") from exc
        except requests.exceptions.ConnectionError as exc:
            logger.error("Carrier connection error: %s %s error=%s", method, url, exc)
            raise GatewayError("Carrier unreachable.") from exc
        except requests.exceptions.RequestException as exc:
            logger.error("Carrier request error: %s %s error=%s", method, url, exc)
            raise GatewayError("Carrier request failed.") from exc

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        response = self._send(method, url, self.token_manager.get_token(), **kwargs)

        if response.status_code == 401:
            logger.warning("Carrier 401 on %s %s, refreshing token", method, path)
            response = self._send(
                method, url, self.token_manager.refresh_token(), **kwargs
            )

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {"raw": response.text}

        if response.status_code >= 400:
            detail = _error_detail(payload) or f"HTTP {response.status_code}"
            logger.warning(
                "Carrier rejected %s %s: status=%d detail=%s",
                method,
                path,
                response.status_code,
                detail,
            )
            raise GatewayError(detail, status=response.status_code, payload=payload)

        return payload

    def create_resource(self, quantity: int = 1) -> ProvisionedResource:
        payload = self._request(
            "POST", "/sim_cards", json={"sim_card_type": "esim", "quantity": quantity}
        )
        data = payload.get("data") or {}
        if isinstance(data, list):
            data = data[0] if data else {}
        if not data.get("id"):
            raise GatewayError("Carrier returned no SIM id.", payload=payload)

        iccid = data.get("iccid") or ""
        smdp_address = data.get("smdp_address") or DEFAULT_SMDP_ADDRESS
        resource = ProvisionedResource(
            external_id=data["id"],
            iccid=iccid,
            activation_code=data.get("activation_code")
            or f"LPA:1${smdp_address}${iccid}",
            smdp_address=smdp_address,
            qr_url=data.get("qr_code_url") or "",
            status=data.get("status") or "",
        )
        logger.info(
            "Carrier SIM created: external_id=%s iccid=%s",
            resource.external_id,
            resource.iccid,
        )
        return resource

    def get_resource(self, external_id: str) -> dict:
        return self._request("GET", f"/sim_cards/{external_id}").get("data") or {}

    def activate(self, external_id: str) -> dict:
        payload = self._request("POST", f"/sim_cards/{external_id}/actions/activate")
        logger.info("Carrier SIM activated: external_id=%s", external_id)
        return payload

    def deactivate(self, external_id: str) -> dict:
        """Deactivate a SIM. A SIM that is already inactive is not an error."""
        try:
            payload = self._request(
                "POST", f"/sim_cards/{external_id}/actions/deactivate"
            )
        except GatewayError as exc:
            if exc.status in ALREADY_IN_STATE_STATUSES:
                logger.info(
                    "Carrier SIM already inactive: external_id=%s detail=%s",
                    external_id,
                    exc.message,
                )
                return {}
            raise
        logger.info("Carrier SIM deactivated: external_id=%s", external_id)
        return payload

    def get_usage(self, external_id: str) -> UsageReport:
        data = self._request("GET", f"/sim_cards/{external_id}/usage").get("data") or {}
        return UsageReport(
            data_usage=float(data.get("data_usage") or 0),
            data_limit=float(data.get("data_limit") or 0),
            unit=data.get("unit") or "MB",
        )

    # ── Numbers and messaging ─────────────────────────────────

    def search_numbers(self, country_code: str = "US", limit: int = 10) -> list:
        payload = self._request(
            "GET",
            "/available_phone_numbers",
            params={
                "filter[country_code]": country_code,
                "filter[limit]": limit,
                "filter[features]": "sms,voice",
            },
        )
        data = payload.get("data") or []
        return data if isinstance(data, list) else []

    def purchase_number(self, phone_number: str) -> dict:
        payload = self._request(
            "POST",
            "/number_orders",
            json={"phone_numbers": [{"phone_number": phone_number}]},
        )
        data = payload.get("data") or {}
        if not data.get("id"):
            raise GatewayError("Carrier returned no number order id.", payload=payload)
        logger.info("Carrier number ordered: number=%s order=%s", phone_number, data["id"])
        return data

    def send_sms(self, to: str, from_: str, text: str) -> dict:
        payload = self._request(
            "POST", "/messages", json={"to": to, "from": from_, "text": text}
        )
        data = payload.get("data") or {}
        if not data.get("id"):
            raise GatewayError("Carrier returned no message id.", payload=payload)
        logger.info("Carrier SMS sent: id=%s from=%s", data["id"], from_)
        return data


def _error_detail(payload: dict) -> str:
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if errors and isinstance(errors, list):
        first = errors[0] or {}
        return first.get("detail") or first.get("title") or ""
    return ""


@lru_cache(maxsize=None)
def get_carrier_client() -> CarrierClient:
    """Process-wide client so every request shares one cached credential."""
    return CarrierClient()


def verify_carrier_signature(
    payload: bytes,
    signature: Optional[str],
    timestamp: Optional[str],
    public_key: Optional[str] = None,
    tolerance: Optional[int] = None,
    now: Optional[float] = None,
) -> None:
    """
    Check the carrier's Ed25519 webhook signature over "<timestamp>|<body>".

    Verification is skipped when no TELNYX_PUBLIC_KEY is configured.

    Raises:
        InvalidSignature: missing, stale or non-matching signature.
    """
    public_key = public_key if public_key is not None else getattr(settings, "TELNYX_PUBLIC_KEY", "")
    if not public_key:
        return
    if not signature or not timestamp:
        raise InvalidSignature("Missing carrier signature headers.")

    tolerance = tolerance if tolerance is not None else getattr(settings, "TELNYX_WEBHOOK_TOLERANCE", 300)
    try:
        sent_at = int(timestamp)
    except ValueError:
        raise InvalidSignature("Malformed carrier signature timestamp.")
    if abs((now if now is not None else time.time()) - sent_at) > tolerance:
        raise InvalidSignature("Carrier signature timestamp outside tolerance.")

    try:
        key = Ed25519PublicKey.from_public_bytes(base64.b64decode(public_key))
        key.verify(base64.b64decode(signature), f"{timestamp}|".encode() + payload)
    except (InvalidSignatureError, ValueError) as exc:
        logger.warning("Carrier webhook signature rejected: %s", exc.__class__.__name__)
        raise InvalidSignature() from exc
