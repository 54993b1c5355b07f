from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.test import TestCase
from rest_framework.test import APIClient

from airswitch.models import (
    ESim,
    EsimOrder,
    PaymentMethod,
    PointsTransaction,
    Referral,
    Transaction,
    UserPoints,
    Wallet,
)
from airswitch.services import PointsService, ReferralService, WalletService
from airswitch.tests.helpers import make_carrier, make_user, set_balance, succeeded
from airswitch.utils.payments import ChargeIntent, ChargeStatus, ChargeVerification

# ============================================================
# Wallet API
# ============================================================


class WalletAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = make_user()
        self.client.force_authenticate(self.user)

    def test_wallet_is_created_with_the_user(self):
        response = self.client.get("/api/wallet/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["balance_usd"], "0.00")
        self.assertEqual(response.data["balance_ngn"], "0.00")

    def test_requires_authentication(self):
        response = APIClient().get("/api/wallet/")
        self.assertEqual(response.status_code, 403)

    def test_fund_is_admin_only(self):
        response = self.client.post(
            "/api/wallet/fund/",
            {"user_id": self.user.pk, "amount": "10.00", "reference": "manual-1"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(Wallet.objects.get(user=self.user).balance_usd, Decimal("0.00"))

    def test_admin_fund_with_reference(self):
        admin = make_user("admin", is_staff=True)
        self.client.force_authenticate(admin)
        body = {"user_id": self.user.pk, "amount": "10.00", "currency": "USD", "reference": "manual-1"}

        response1 = self.client.post("/api/wallet/fund/", body, format="json")
        response2 = self.client.post("/api/wallet/fund/", body, format="json")

        self.assertEqual(response1.status_code, 200)
        self.assertEqual(response1.data["wallet"]["balance_usd"], "10.00")
        self.assertEqual(response1.data["transaction"]["status"], "SUCCESS")
        self.assertEqual(
            response1.data["transaction"]["id"], response2.data["transaction"]["id"]
        )
        self.assertEqual(Wallet.objects.get(user=self.user).balance_usd, Decimal("10.00"))

    def test_fund_rejects_bad_amounts(self):
        admin = make_user("admin", is_staff=True)
        self.client.force_authenticate(admin)
        for amount in ("0", "-5.00", "1.234"):
            response = self.client.post(
                "/api/wallet/fund/",
                {"user_id": self.user.pk, "amount": amount, "reference": f"r-{amount}"},
                format="json",
            )
            self.assertEqual(response.status_code, 400, amount)

    def test_fund_unknown_user(self):
        admin = make_user("admin", is_staff=True)
        self.client.force_authenticate(admin)
        response = self.client.post(
            "/api/wallet/fund/",
            {"user_id": 99999, "amount": "1.00", "reference": "r-1"},
            format="json",
        )
        self.assertEqual(response.status_code, 404)


class TopUpAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = make_user()
        self.client.force_authenticate(self.user)
        self.gateway = MagicMock()
        self.gateway.create_charge.return_value = ChargeIntent(
            provider=PaymentMethod.STRIPE, reference="pi_top", client_handle="pi_top_secret"
        )

    @patch("airswitch.services.topup.get_payment_gateway")
    def test_create_and_confirm(self, mock_get_gateway):
        mock_get_gateway.return_value = self.gateway
        self.gateway.verify_charge.return_value = succeeded("20.00")

        created = self.client.post(
            "/api/wallet/topups/",
            {"amount": "20.00", "method": "STRIPE"},
            format="json",
        )
        confirmed = self.client.post("/api/wallet/topups/pi_top/confirm/", format="json")

        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["client_handle"], "pi_top_secret")
        self.assertEqual(created.data["transaction"]["status"], "PENDING")
        self.assertEqual(confirmed.status_code, 200)
        self.assertEqual(confirmed.data["wallet"]["balance_usd"], "20.00")
        self.assertEqual(confirmed.data["transaction"]["id"], created.data["transaction"]["id"])

    @patch("airswitch.services.topup.get_payment_gateway")
    def test_confirm_unsettled(self, mock_get_gateway):
        mock_get_gateway.return_value = self.gateway
        self.client.post("/api/wallet/topups/", {"amount": "20.00", "method": "STRIPE"}, format="json")
        self.gateway.verify_charge.return_value = ChargeVerification(
            ChargeStatus.PENDING, Decimal("20.00"), "USD", reason="processing"
        )

        response = self.client.post("/api/wallet/topups/pi_top/confirm/", format="json")

        self.assertEqual(response.status_code, 402)
        self.assertEqual(response.data["code"], "payment_not_confirmed")

    def test_confirm_unknown_reference(self):
        response = self.client.post("/api/wallet/topups/nope/confirm/", format="json")
        self.assertEqual(response.status_code, 404)

    def test_wallet_method_is_not_a_topup(self):
        response = self.client.post(
            "/api/wallet/topups/", {"amount": "20.00", "method": "WALLET"}, format="json"
        )
        self.assertEqual(response.status_code, 400)


class TransactionAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = make_user()
        self.client.force_authenticate(self.user)
        WalletService.fund(self.user.pk, "10.00", "USD", reference="r-1")
        WalletService.fund(self.user.pk, "5000.00", "NGN", reference="r-2")
        Transaction.objects.create(
            user=self.user,
            amount=Decimal("3.00"),
            currency="USD",
            transaction_type=Transaction.TransactionType.DEBIT,
            status=Transaction.Status.PENDING,
            reference="pi_1",
            provider=PaymentMethod.STRIPE,
        )
        other = make_user("bob")
        WalletService.fund(other.pk, "1.00", "USD", reference="r-3")

    def test_list_transactions(self):
        response = self.client.get("/api/wallet/transactions/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 3)
        self.assertEqual(response.data[0]["reference"], "pi_1")

    def test_filters(self):
        self.assertEqual(len(self.client.get("/api/wallet/transactions/?status=pending").data), 1)
        self.assertEqual(len(self.client.get("/api/wallet/transactions/?type=CREDIT").data), 2)
        self.assertEqual(len(self.client.get("/api/wallet/transactions/?currency=NGN").data), 1)

    def test_transaction_detail(self):
        tx = Transaction.objects.get(reference="r-1")
        response = self.client.get(f"/api/wallet/transactions/{tx.id}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["amount"], "10.00")

    def test_other_users_transaction_is_hidden(self):
        tx = Transaction.objects.get(reference="r-3")
        response = self.client.get(f"/api/wallet/transactions/{tx.id}/")
        self.assertEqual(response.status_code, 404)


# ============================================================
# eSIM API
# ============================================================


@patch("airswitch.services.provisioning.get_carrier_client")
class EsimAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = make_user()
        self.client.force_authenticate(self.user)

    def purchase(self, key="key-1", **body):
        return self.client.post(
            "/api/esims/purchase/",
            {"plan_id": "AIRSWITCH_GLOBAL_TEST", "payment_method": "WALLET", **body},
            format="json",
            HTTP_IDEMPOTENCY_KEY=key,
        )

    def test_plans(self, mock_get_carrier):
        response = self.client.get("/api/esims/plans/")
        self.assertEqual(response.status_code, 200)
        plans = {plan["id"]: plan for plan in response.data}
        self.assertEqual(plans["AIRSWITCH_GLOBAL_TEST"]["prices"], {"USD": "5.00", "NGN": "7500.00"})

    def test_purchase_and_replay(self, mock_get_carrier):
        mock_get_carrier.return_value = make_carrier()
        set_balance(self.user, usd="10.00")

        first = self.purchase()
        second = self.purchase()

        self.assertEqual(first.status_code, 201)
        self.assertTrue(first.data["activated"])
        self.assertEqual(first.data["order"]["amount"], "5.00")
        self.assertEqual(first.data["order"]["esim"]["status"], "ACTIVE")
        self.assertEqual(second.status_code, 200)
        self.assertTrue(second.data["replayed"])
        self.assertEqual(first.data["order"]["id"], second.data["order"]["id"])
        self.assertEqual(Wallet.objects.get(user=self.user).balance_usd, Decimal("5.00"))

    def test_insufficient_funds(self, mock_get_carrier):
        carrier = make_carrier()
        mock_get_carrier.return_value = carrier
        set_balance(self.user, usd="1.00")

        response = self.purchase()

        self.assertEqual(response.status_code, 402)
        self.assertEqual(response.data["code"], "insufficient_funds")
        carrier.create_resource.assert_not_called()

    def test_card_purchase_requires_reference(self, mock_get_carrier):
        response = self.client.post(
            "/api/esims/purchase/",
            {"plan_id": "AIRSWITCH_GLOBAL_TEST", "payment_method": "STRIPE"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("payment_reference", response.data)

    def test_unknown_plan(self, mock_get_carrier):
        mock_get_carrier.return_value = make_carrier()
        response = self.purchase(plan_id="NOPE")
        self.assertEqual(response.status_code, 404)

    @patch("airswitch.services.provisioning.get_payment_gateway")
    def test_create_payment(self, mock_get_gateway, mock_get_carrier):
        gateway = MagicMock()
        gateway.create_charge.return_value = ChargeIntent(
            provider=PaymentMethod.PAYSTACK,
            reference="ps_1",
            client_handle="https://checkout.paystack.test/ps_1",
        )
        mock_get_gateway.return_value = gateway

        response = self.client.post(
            "/api/esims/payments/",
            {"plan_id": "AIRSWITCH_NG_TEST", "method": "PAYSTACK", "currency": "NGN"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["reference"], "ps_1")
        self.assertEqual(response.data["transaction"]["amount"], "4500.00")
        self.assertEqual(response.data["transaction"]["status"], "PENDING")

    def test_lifecycle(self, mock_get_carrier):
        carrier = make_carrier()
        mock_get_carrier.return_value = carrier
        set_balance(self.user, usd="10.00")
        esim_id = self.purchase().data["order"]["esim"]["id"]

        listed = self.client.get("/api/esims/")
        usage = self.client.get(f"/api/esims/{esim_id}/usage/")
        deactivated = self.client.post(f"/api/esims/{esim_id}/deactivate/")
        activated = self.client.post(f"/api/esims/{esim_id}/activate/")

        self.assertEqual([e["id"] for e in listed.data], [esim_id])
        self.assertEqual(usage.data["data_usage"], 120.5)
        self.assertEqual(deactivated.data["status"], "INACTIVE")
        self.assertEqual(activated.data["status"], "ACTIVE")

    def test_other_users_esim(self, mock_get_carrier):
        mock_get_carrier.return_value = make_carrier()
        other = make_user("bob")
        esim = ESim.objects.create(user=other, external_id="sim-9", iccid="9")

        response = self.client.post(f"/api/esims/{esim.id}/activate/")

        self.assertEqual(response.status_code, 404)
        self.assertFalse(EsimOrder.objects.exists())


# ============================================================
# Points and Referral API
# ============================================================


class PointsAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = make_user()
        self.client.force_authenticate(self.user)

    def test_points_created_on_first_access(self):
        response = self.client.get("/api/points/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["available_points"], 0)
        self.assertTrue(UserPoints.objects.filter(user=self.user).exists())

    def test_redeem(self):
        PointsService.award_bonus(self.user.pk, 750)

        response = self.client.post("/api/points/redeem/", {"points": 500}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["credited"], "5.00")
        self.assertEqual(response.data["points"]["available_points"], 250)
        self.assertEqual(Wallet.objects.get(user=self.user).balance_usd, Decimal("5.00"))

    def test_redeem_more_than_available(self):
        PointsService.award_bonus(self.user.pk, 100)
        response = self.client.post("/api/points/redeem/", {"points": 500}, format="json")
        self.assertEqual(response.status_code, 402)
        self.assertEqual(response.data["code"], "insufficient_points")

    def test_redeem_rejects_fractional_points(self):
        response = self.client.post("/api/points/redeem/", {"points": 2.5}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_history_is_paginated(self):
        for _ in range(3):
            PointsService.award_bonus(self.user.pk, 10)

        response = self.client.get("/api/points/history/?limit=2")

        self.assertEqual(response.data["count"], 3)
        self.assertEqual(len(response.data["results"]), 2)

    def test_breakdown(self):
        PointsService.award_bonus(self.user.pk, 200)
        PointsService.redeem(self.user.pk, 100)

        response = self.client.get("/api/points/breakdown/")

        self.assertEqual(response.data["bonus"], 200)
        self.assertEqual(response.data["redeemed"], 100)

    def test_bonus_is_admin_only(self):
        response = self.client.post(
            "/api/points/bonus/", {"user_id": self.user.pk, "points": 100}, format="json"
        )
        self.assertEqual(response.status_code, 403)

        self.client.force_authenticate(make_user("admin", is_staff=True))
        response = self.client.post(
            "/api/points/bonus/", {"user_id": self.user.pk, "points": 100}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["points_type"], PointsTransaction.PointsType.BONUS)


class ReferralAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.alice = make_user("alice")
        self.bob = make_user("bob")

    def test_code_is_stable(self):
        self.client.force_authenticate(self.alice)
        first = self.client.get("/api/referrals/code/").data["referral_code"]
        second = self.client.get("/api/referrals/code/").data["referral_code"]
        self.assertEqual(first, second)
        self.assertTrue(first.startswith("AIR-"))

    def test_claim_awards_referrer_once(self):
        code = ReferralService.get_or_create_code(self.alice).referral_code
        self.client.force_authenticate(self.bob)

        first = self.client.post("/api/referrals/claim/", {"referral_code": code}, format="json")
        second = self.client.post("/api/referrals/claim/", {"referral_code": code}, format="json")

        self.assertTrue(first.data["claimed"])
        self.assertEqual(first.data["referral"]["status"], "COMPLETED")
        self.assertFalse(second.data["claimed"])
        self.assertEqual(UserPoints.objects.get(user=self.alice).available_points, 500)

    def test_claim_unknown_code(self):
        self.client.force_authenticate(self.bob)
        response = self.client.post(
            "/api/referrals/claim/", {"referral_code": "AIR-00000000"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["claimed"])

    def test_invite_and_progress(self):
        self.client.force_authenticate(self.alice)

        invited = self.client.post(
            "/api/referrals/invite/", {"email": "Friend@Example.com"}, format="json"
        )
        duplicate = self.client.post(
            "/api/referrals/invite/", {"email": "friend@example.com"}, format="json"
        )
        progress = self.client.get("/api/referrals/progress/")

        self.assertEqual(invited.status_code, 201)
        self.assertEqual(invited.data["referee_email"], "friend@example.com")
        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(progress.data["total"], 1)
        self.assertEqual(progress.data["pending"], 1)
        self.assertEqual(progress.data["points_earned"], 0)
        self.assertEqual(len(progress.data["referrals"]), 1)
        self.assertEqual(Referral.objects.filter(referrer=self.alice).count(), 1)

    def test_history_includes_referee(self):
        self.bob.first_name = "Bob"
        self.bob.last_name = "Stone"
        self.bob.save()
        code = ReferralService.get_or_create_code(self.alice).referral_code
        ReferralService.claim(code, self.bob)
        ReferralService.invite(self.alice, "friend@example.com")
        self.client.force_authenticate(self.alice)

        response = self.client.get("/api/referrals/history/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 2)
        invited, completed = response.data
        self.assertEqual(invited["email"], "friend@example.com")
        self.assertEqual(invited["name"], "")
        self.assertEqual(invited["status"], "PENDING")
        self.assertEqual(completed["email"], "bob@example.com")
        self.assertEqual(completed["name"], "Bob Stone")
        self.assertEqual(completed["points_awarded"], 500)

    def test_history_is_private(self):
        ReferralService.invite(self.alice, "friend@example.com")
        self.client.force_authenticate(self.bob)

        response = self.client.get("/api/referrals/history/")

        self.assertEqual(response.data, [])
