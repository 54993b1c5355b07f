import base64
import hashlib
import hmac
import json
import time
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import requests
import stripe
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from django.test import SimpleTestCase, override_settings

from airswitch.exceptions import (
    GatewayError,
    GatewayTimeout,
    InvalidSignature,
    NotFound,
    ValidationError,
)
from airswitch.utils.bank_transfer import PaystackGateway
from airswitch.utils.card import StripeGateway
from airswitch.utils.carrier import CarrierClient, verify_carrier_signature
from airswitch.utils.fx import FixedRateProvider
from airswitch.utils.payments import ChargeStatus, from_minor_units, to_minor_units
from airswitch.utils.plans import get_plan, list_plans
from airswitch.utils.token import TokenGrant, TokenManager


def http_response(status_code=200, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.content = json.dumps(body or {}).encode()
    response.json.return_value = body or {}
    response.text = json.dumps(body or {})
    return response


# ============================================================
# Carrier Client
# ============================================================


class CarrierClientTest(SimpleTestCase):
    def setUp(self):
        self.fetches = 0
        self.session = MagicMock()
        self.client = CarrierClient(
            base_url="https://carrier.test/v2",
            token_manager=TokenManager(self.fetch),
            timeout=3,
            session=self.session,
        )

    def fetch(self):
        self.fetches += 1
        return TokenGrant(token=f"key-{self.fetches}", expires_in=3600)

    def test_create_resource(self):
        self.session.request.return_value = http_response(
            200, {"data": {"id": "sim-9", "iccid": "8901000000000009", "status": "standby"}}
        )

        resource = self.client.create_resource()

        self.assertEqual(resource.external_id, "sim-9")
        self.assertEqual(resource.smdp_address, "rsp.telnyx.com")
        self.assertEqual(resource.activation_code, "LPA:1$rsp.telnyx.com$8901000000000009")
        method, url = self.session.request.call_args.args
        self.assertEqual((method, url), ("POST", "https://carrier.test/v2/sim_cards"))
        self.assertEqual(self.session.request.call_args.kwargs["timeout"], 3)

    def test_create_resource_without_id_raises(self):
        self.session.request.return_value = http_response(200, {"data": {}})
        with self.assertRaises(GatewayError):
            self.client.create_resource()

    def test_unauthorized_refreshes_token_once_and_retries(self):
        self.session.request.side_effect = [
            http_response(401, {"errors": [{"detail": "expired"}]}),
            http_response(200, {"data": {"id": "sim-1"}}),
        ]

        self.client.get_resource("sim-1")

        self.assertEqual(self.fetches, 2)
        first, second = self.session.request.call_args_list
        self.assertEqual(first.kwargs["headers"]["Authorization"], "Bearer key-1")
        self.assertEqual(second.kwargs["headers"]["Authorization"], "Bearer key-2")

    def test_second_unauthorized_is_a_gateway_error(self):
        self.session.request.side_effect = [http_response(401), http_response(401)]
        with self.assertRaises(GatewayError) as ctx:
            self.client.get_resource("sim-1")
        self.assertEqual(ctx.exception.status, 401)
        self.assertEqual(self.session.request.call_count, 2)

    def test_rejection_carries_provider_detail(self):
        self.session.request.return_value = http_response(
            500, {"errors": [{"detail": "inventory exhausted"}]}
        )
        with self.assertRaises(GatewayError) as ctx:
            self.client.create_resource()
        self.assertEqual(ctx.exception.message, "inventory exhausted")
        self.assertEqual(ctx.exception.status, 500)

    def test_timeout_is_unknown_outcome(self):
        self.session.request.side_effect = requests.exceptions.Timeout("read timed out")
        with self.assertRaises(GatewayTimeout):
            self.client.create_resource()

    def test_connection_error(self):
        self.session.request.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(GatewayError):
            self.client.activate("sim-1")

    def test_deactivate_already_inactive_is_not_an_error(self):
        self.session.request.return_value = http_response(
            422, {"errors": [{"detail": "SIM card is already disabled"}]}
        )
        self.assertEqual(self.client.deactivate("sim-1"), {})

    def test_get_usage(self):
        self.session.request.return_value = http_response(
            200, {"data": {"data_usage": "12.5", "data_limit": 1024, "unit": "MB"}}
        )
        usage = self.client.get_usage("sim-1")
        self.assertEqual(usage.data_usage, 12.5)
        self.assertEqual(usage.data_limit, 1024.0)

    def test_search_numbers(self):
        self.session.request.return_value = http_response(
            200, {"data": [{"phone_number": "+15551234567"}, {"phone_number": "+15557654321"}]}
        )

        numbers = self.client.search_numbers("GB", limit=2)

        self.assertEqual(len(numbers), 2)
        method, url = self.session.request.call_args.args
        self.assertEqual((method, url), ("GET", "https://carrier.test/v2/available_phone_numbers"))
        self.assertEqual(
            self.session.request.call_args.kwargs["params"],
            {"filter[country_code]": "GB", "filter[limit]": 2, "filter[features]": "sms,voice"},
        )

    def test_purchase_number(self):
        self.session.request.return_value = http_response(
            200, {"data": {"id": "ord-1", "status": "pending"}}
        )

        order = self.client.purchase_number("+15551234567")

        self.assertEqual(order["id"], "ord-1")
        self.assertEqual(
            self.session.request.call_args.kwargs["json"],
            {"phone_numbers": [{"phone_number": "+15551234567"}]},
        )

    def test_purchase_number_without_order_id_raises(self):
        self.session.request.return_value = http_response(200, {"data": {}})
        with self.assertRaises(GatewayError):
            self.client.purchase_number("+15551234567")

    def test_send_sms(self):
        self.session.request.return_value = http_response(
            200, {"data": {"id": "msg-1", "to": [{"phone_number": "+15557654321", "status": "queued"}]}}
        )

        data = self.client.send_sms("+15557654321", "+15551234567", "hello")

        self.assertEqual(data["id"], "msg-1")
        method, url = self.session.request.call_args.args
        self.assertEqual((method, url), ("POST", "https://carrier.test/v2/messages"))
        self.assertEqual(
            self.session.request.call_args.kwargs["json"],
            {"to": "+15557654321", "from": "+15551234567", "text": "hello"},
        )

    @override_settings(TELNYX_API_KEY="")
    def test_missing_api_key(self):
        client = CarrierClient(session=self.session)
        with self.assertRaises(GatewayError):
            client.get_resource("sim-1")
        self.session.request.assert_not_called()


class CarrierSignatureTest(SimpleTestCase):
    def setUp(self):
        self.private_key = Ed25519PrivateKey.generate()
        raw = self.private_key.public_key().public_bytes(
            serialization.Encoding.Raw, serialization.PublicFormat.Raw
        )
        self.public_key = base64.b64encode(raw).decode()
        self.body = b'{"data": {"event_type": "sim_card.updated"}}'
        self.timestamp = str(int(time.time()))

    def sign(self, timestamp, body):
        return base64.b64encode(
            self.private_key.sign(f"{timestamp}|".encode() + body)
        ).decode()

    def test_valid_signature(self):
        verify_carrier_signature(
            self.body, self.sign(self.timestamp, self.body), self.timestamp, self.public_key
        )

    def test_tampered_body(self):
        signature = self.sign(self.timestamp, self.body)
        with self.assertRaises(InvalidSignature):
            verify_carrier_signature(
                self.body + b" ", signature, self.timestamp, self.public_key
            )

    def test_stale_timestamp(self):
        old = str(int(time.time()) - 3600)
        with self.assertRaises(InvalidSignature):
            verify_carrier_signature(self.body, self.sign(old, self.body), old, self.public_key)

    def test_missing_headers(self):
        with self.assertRaises(InvalidSignature):
            verify_carrier_signature(self.body, None, None, self.public_key)

    @override_settings(TELNYX_PUBLIC_KEY="")
    def test_skipped_without_configured_key(self):
        verify_carrier_signature(self.body, None, None)


# ============================================================
# Payment Processors
# ============================================================


class StripeGatewayTest(SimpleTestCase):
    def setUp(self):
        self.client = MagicMock()
        self.gateway = StripeGateway(
            api_key="sk_test", webhook_secret="whsec_test", client=self.client
        )

    def test_create_charge_sends_minor_units_and_metadata(self):
        self.client.payment_intents.create.return_value = SimpleNamespace(
            id="pi_1", client_secret="pi_1_secret"
        )

        intent = self.gateway.create_charge(
            Decimal("5.00"), "USD", 7, metadata={"plan_id": "AIRSWITCH_GLOBAL_TEST"}
        )

        self.assertEqual(intent.reference, "pi_1")
        self.assertEqual(intent.client_handle, "pi_1_secret")
        params = self.client.payment_intents.create.call_args.kwargs["params"]
        self.assertEqual(params["amount"], 500)
        self.assertEqual(params["currency"], "usd")
        self.assertEqual(
            params["metadata"], {"user_id": "7", "plan_id": "AIRSWITCH_GLOBAL_TEST"}
        )

    def test_create_charge_error(self):
        self.client.payment_intents.create.side_effect = stripe.StripeError("declined")
        with self.assertRaises(GatewayError):
            self.gateway.create_charge(Decimal("5.00"), "USD", 7)

    def test_verify_succeeded(self):
        self.client.payment_intents.retrieve.return_value = SimpleNamespace(
            status="succeeded", amount=500, amount_received=500, currency="usd"
        )
        verification = self.gateway.verify_charge("pi_1")
        self.assertTrue(verification.succeeded)
        self.assertEqual(verification.amount, Decimal("5.00"))
        self.assertEqual(verification.currency, "USD")

    def test_verify_processing_is_pending(self):
        self.client.payment_intents.retrieve.return_value = SimpleNamespace(
            status="processing", amount=500, amount_received=0, currency="usd"
        )
        self.assertEqual(self.gateway.verify_charge("pi_1").status, ChargeStatus.PENDING)

    @patch("airswitch.utils.card.stripe.Webhook.construct_event")
    def test_parse_webhook(self, mock_construct):
        payload = json.dumps(
            {
                "type": "payment_intent.succeeded",
                "data": {
                    "object": {
                        "id": "pi_1",
                        "amount": 500,
                        "amount_received": 500,
                        "currency": "usd",
                        "metadata": {"user_id": "7", "plan_id": "AIRSWITCH_GLOBAL_TEST"},
                    }
                },
            }
        ).encode()

        event = self.gateway.parse_webhook(payload, "t=1,v1=abc")

        mock_construct.assert_called_once_with(payload, "t=1,v1=abc", "whsec_test")
        self.assertTrue(event.succeeded)
        self.assertEqual(event.reference, "pi_1")
        self.assertEqual(event.user_id, "7")
        self.assertEqual(event.plan_id, "AIRSWITCH_GLOBAL_TEST")

    @patch("airswitch.utils.card.stripe.Webhook.construct_event")
    def test_parse_webhook_bad_signature(self, mock_construct):
        mock_construct.side_effect = stripe.SignatureVerificationError("bad", "t=1,v1=x")
        with self.assertRaises(InvalidSignature):
            self.gateway.parse_webhook(b"{}", "t=1,v1=x")

    def test_parse_webhook_without_signature(self):
        with self.assertRaises(InvalidSignature):
            self.gateway.parse_webhook(b"{}", "")


class PaystackGatewayTest(SimpleTestCase):
    def setUp(self):
        self.session = MagicMock()
        self.gateway = PaystackGateway(
            secret_key="sk_test_paystack", base_url="https://paystack.test", session=self.session
        )

    def signed(self, event):
        payload = json.dumps(event).encode()
        signature = hmac.new(b"sk_test_paystack", payload, hashlib.sha512).hexdigest()
        return payload, signature

    def test_create_charge(self):
        self.session.request.return_value = http_response(
            200,
            {
                "status": True,
                "data": {
                    "reference": "ps_ref_1",
                    "authorization_url": "https://checkout.paystack.test/abc",
                },
            },
        )

        intent = self.gateway.create_charge(
            Decimal("4500.00"), "NGN", 7, metadata={"plan_id": "AIRSWITCH_NG_TEST"}, email="a@b.co"
        )

        self.assertEqual(intent.reference, "ps_ref_1")
        self.assertEqual(intent.client_handle, "https://checkout.paystack.test/abc")
        body = self.session.request.call_args.kwargs["json"]
        self.assertEqual(body["amount"], 450000)
        self.assertEqual(body["metadata"]["plan_id"], "AIRSWITCH_NG_TEST")

    def test_create_charge_requires_email(self):
        with self.assertRaises(GatewayError):
            self.gateway.create_charge(Decimal("1.00"), "NGN", 7)

    def test_verify(self):
        self.session.request.return_value = http_response(
            200,
            {"status": True, "data": {"status": "success", "amount": 450000, "currency": "NGN"}},
        )
        verification = self.gateway.verify_charge("ps_ref_1")
        self.assertTrue(verification.succeeded)
        self.assertEqual(verification.amount, Decimal("4500.00"))

    def test_verify_abandoned_is_failed(self):
        self.session.request.return_value = http_response(
            200,
            {"status": True, "data": {"status": "abandoned", "amount": 450000, "currency": "NGN"}},
        )
        self.assertEqual(self.gateway.verify_charge("ps_ref_1").status, ChargeStatus.FAILED)

    def test_verify_timeout(self):
        self.session.request.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(GatewayTimeout):
            self.gateway.verify_charge("ps_ref_1")

    def test_parse_webhook_reads_custom_fields(self):
        payload, signature = self.signed(
            {
                "event": "charge.success",
                "data": {
                    "reference": "ps_ref_1",
                    "amount": 450000,
                    "currency": "NGN",
                    "metadata": {
                        "custom_fields": [
                            {"variable_name": "user_id", "value": "7"},
                            {"variable_name": "plan_id", "value": "AIRSWITCH_NG_TEST"},
                        ]
                    },
                },
            }
        )

        event = self.gateway.parse_webhook(payload, signature)

        self.assertTrue(event.succeeded)
        self.assertEqual(event.user_id, "7")
        self.assertEqual(event.plan_id, "AIRSWITCH_NG_TEST")
        self.assertEqual(event.amount, Decimal("4500.00"))

    def test_parse_webhook_rejects_bad_signature(self):
        payload, _ = self.signed({"event": "charge.success", "data": {}})
        with self.assertRaises(InvalidSignature):
            self.gateway.parse_webhook(payload, "0" * 128)


class MinorUnitsTest(SimpleTestCase):
    def test_round_trip_common_amounts(self):
        self.assertEqual(to_minor_units(Decimal("5.00")), 500)
        self.assertEqual(to_minor_units(Decimal("0.29")), 29)
        self.assertEqual(from_minor_units(450000), Decimal("4500.00"))
        self.assertEqual(from_minor_units(None), Decimal("0.00"))


# ============================================================
# Catalog and Rates
# ============================================================


class PlanCatalogTest(SimpleTestCase):
    def test_list_plans(self):
        ids = [plan.id for plan in list_plans()]
        self.assertIn("AIRSWITCH_NG_TEST", ids)

    def test_price_in_currency(self):
        plan = get_plan("AIRSWITCH_GLOBAL_TEST")
        self.assertEqual(plan.price_in("USD"), Decimal("5.00"))
        self.assertEqual(plan.price_in("NGN"), Decimal("7500.00"))

    def test_unknown_plan(self):
        with self.assertRaises(NotFound):
            get_plan("NOPE")

    @override_settings(ESIM_PLANS=[{"id": "USD_ONLY", "prices": {"usd": "1.50"}}])
    def test_unsold_currency(self):
        plan = get_plan("USD_ONLY")
        self.assertEqual(plan.price_in("USD"), Decimal("1.50"))
        with self.assertRaises(ValidationError):
            plan.price_in("NGN")


class FixedRateProviderTest(SimpleTestCase):
    def test_configured_inverse_and_identity(self):
        rates = FixedRateProvider({"USD": {"NGN": "1500"}})
        self.assertEqual(rates.get_rate("USD", "NGN"), Decimal("1500"))
        self.assertEqual(rates.get_rate("NGN", "USD"), Decimal("1") / Decimal("1500"))
        self.assertEqual(rates.get_rate("USD", "USD"), Decimal("1"))

    def test_unknown_pair(self):
        with self.assertRaises(ValueError):
            FixedRateProvider({}).get_rate("USD", "EUR")
