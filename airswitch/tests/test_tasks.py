from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from airswitch.exceptions import GatewayError
from airswitch.models import CompensationTask, EsimOrder, PaymentMethod, Transaction, Wallet
from airswitch.tests.helpers import make_carrier, make_gateway, make_user, succeeded
from airswitch.utils.payments import ChargeStatus, ChargeVerification


def backdate(tx, minutes=60):
    Transaction.objects.filter(pk=tx.pk).update(
        created_at=timezone.now() - timedelta(minutes=minutes)
    )


# ============================================================
# Compensation Tasks
# ============================================================


class CompensationTaskTest(TestCase):
    def setUp(self):
        self.task = CompensationTask.objects.create(
            external_id="sim-1", payment_reference="wallet_1_k", reason="commit failed"
        )

    @patch("airswitch.services.compensation.get_carrier_client")
    def test_process_compensation(self, mock_get_carrier):
        carrier = make_carrier()
        mock_get_carrier.return_value = carrier

        from airswitch.tasks import process_compensation

        result = process_compensation.apply(args=[self.task.id])

        self.assertEqual(result.get()["status"], CompensationTask.Status.COMPLETED)
        carrier.deactivate.assert_called_once_with("sim-1")
        self.task.refresh_from_db()
        self.assertEqual(self.task.attempts, 1)
        self.assertIsNotNone(self.task.completed_at)

    @patch("airswitch.services.compensation.get_carrier_client")
    def test_process_compensation_failure_counts_attempt(self, mock_get_carrier):
        carrier = make_carrier()
        carrier.deactivate.side_effect = GatewayError("carrier down")
        mock_get_carrier.return_value = carrier

        from airswitch.tasks import process_compensation

        result = process_compensation.apply(args=[self.task.id])

        self.assertEqual(result.get()["status"], CompensationTask.Status.PENDING)
        self.task.refresh_from_db()
        self.assertEqual(self.task.attempts, 1)
        self.assertEqual(self.task.last_error, "carrier down")

    def test_process_compensation_missing_task(self):
        from airswitch.tasks import process_compensation

        CompensationTask.objects.filter(pk=self.task.pk).update(
            status=CompensationTask.Status.COMPLETED
        )
        result = process_compensation.apply(args=[self.task.id])

        self.assertEqual(result.get()["status"], "NOT_FOUND")

    @patch("airswitch.tasks.process_compensation.delay")
    def test_retry_pending_compensations(self, mock_delay):
        exhausted = CompensationTask.objects.create(external_id="sim-2", attempts=5)

        from airswitch.tasks import retry_pending_compensations

        result = retry_pending_compensations.apply()

        self.assertEqual(result.get(), {"dispatched": 1, "abandoned": 1})
        mock_delay.assert_called_once_with(self.task.id)
        exhausted.refresh_from_db()
        self.assertEqual(exhausted.status, CompensationTask.Status.ABANDONED)

    @patch("airswitch.services.compensation.get_carrier_client")
    def test_run_compensations_command(self, mock_get_carrier):
        mock_get_carrier.return_value = make_carrier()
        abandoned = CompensationTask.objects.create(
            external_id="sim-2", attempts=5, status=CompensationTask.Status.ABANDONED
        )
        out = StringIO()

        call_command("run_compensations", "--include-abandoned", stdout=out)

        self.assertIn("Reset 1 abandoned compensation(s).", out.getvalue())
        self.assertIn("Completed 2 of 2 compensation(s).", out.getvalue())
        abandoned.refresh_from_db()
        self.assertEqual(abandoned.status, CompensationTask.Status.COMPLETED)

    def test_run_compensations_command_with_nothing_to_do(self):
        CompensationTask.objects.all().delete()
        out = StringIO()

        call_command("run_compensations", stdout=out)

        self.assertIn("No pending compensations.", out.getvalue())


# ============================================================
# Payment Reconciliation
# ============================================================


class ReconcilePaymentsTest(TestCase):
    def setUp(self):
        self.user = make_user()

    def pending(self, reference, tx_type, amount="5.00", currency="USD", metadata=None):
        tx = Transaction.objects.create(
            user=self.user,
            amount=Decimal(amount),
            currency=currency,
            transaction_type=tx_type,
            status=Transaction.Status.PENDING,
            reference=reference,
            provider=PaymentMethod.STRIPE,
            metadata=metadata,
        )
        backdate(tx)
        return tx

    @patch("airswitch.services.topup.get_payment_gateway")
    def test_stale_topup_is_confirmed(self, mock_get_gateway):
        gateway, _ = make_gateway(succeeded("20.00"))
        mock_get_gateway.return_value = gateway
        tx = self.pending("pi_top", Transaction.TransactionType.CREDIT, amount="20.00")

        from airswitch.tasks import reconcile_pending_payments

        result = reconcile_pending_payments.apply()

        self.assertEqual(result.get(), {"checked": 1, "settled": 1})
        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.SUCCESS)
        self.assertEqual(Wallet.objects.get(user=self.user).balance_usd, Decimal("20.00"))

    @patch("airswitch.services.provisioning.get_payment_gateway")
    @patch("airswitch.services.provisioning.get_carrier_client")
    def test_stale_esim_payment_is_fulfilled(self, mock_get_carrier, mock_get_gateway):
        gateway, _ = make_gateway(succeeded("5.00"))
        mock_get_gateway.return_value = gateway
        mock_get_carrier.return_value = make_carrier()
        tx = self.pending(
            "pi_esim",
            Transaction.TransactionType.DEBIT,
            metadata={"plan_id": "AIRSWITCH_GLOBAL_TEST", "purpose": "esim"},
        )

        from airswitch.tasks import reconcile_pending_payments

        result = reconcile_pending_payments.apply()

        self.assertEqual(result.get()["settled"], 1)
        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.SUCCESS)
        self.assertTrue(EsimOrder.objects.filter(payment_reference="pi_esim").exists())

    @patch("airswitch.services.topup.get_payment_gateway")
    def test_unsettled_and_recent_payments_are_left(self, mock_get_gateway):
        gateway, _ = make_gateway(ChargeVerification(ChargeStatus.PENDING, Decimal("20.00"), "USD"))
        mock_get_gateway.return_value = gateway
        self.pending("pi_old", Transaction.TransactionType.CREDIT, amount="20.00")
        Transaction.objects.create(
            user=self.user,
            amount=Decimal("20.00"),
            currency="USD",
            transaction_type=Transaction.TransactionType.CREDIT,
            status=Transaction.Status.PENDING,
            reference="pi_new",
            provider=PaymentMethod.STRIPE,
        )

        from airswitch.tasks import reconcile_pending_payments

        result = reconcile_pending_payments.apply()

        self.assertEqual(result.get(), {"checked": 1, "settled": 0})
        gateway.verify_charge.assert_called_once_with("pi_old")
        self.assertEqual(Wallet.objects.get(user=self.user).balance_usd, Decimal("0.00"))

    def test_payment_without_plan_is_skipped(self):
        self.pending("pi_x", Transaction.TransactionType.DEBIT, metadata={"purpose": "esim"})

        from airswitch.tasks import reconcile_pending_payments

        result = reconcile_pending_payments.apply()

        self.assertEqual(result.get(), {"checked": 1, "settled": 0})

    @patch("airswitch.services.provisioning.get_payment_gateway")
    @patch("airswitch.services.provisioning.get_carrier_client")
    def test_stale_gift_payment_keeps_recipient(self, mock_get_carrier, mock_get_gateway):
        gateway, _ = make_gateway(succeeded("5.00"))
        mock_get_gateway.return_value = gateway
        mock_get_carrier.return_value = make_carrier()
        self.pending(
            "pi_gift",
            Transaction.TransactionType.DEBIT,
            metadata={
                "plan_id": "AIRSWITCH_GLOBAL_TEST",
                "purpose": "esim",
                "gift_email": "friend@example.com",
            },
        )

        from airswitch.tasks import reconcile_pending_payments

        reconcile_pending_payments.apply()

        order = EsimOrder.objects.get(payment_reference="pi_gift")
        self.assertTrue(order.is_gift)
        self.assertEqual(order.gift_email, "friend@example.com")

    @patch("airswitch.services.topup.get_payment_gateway")
    def test_abandoned_payment_is_expired_not_verified(self, mock_get_gateway):
        gateway, _ = make_gateway(ChargeVerification(ChargeStatus.PENDING, Decimal("20.00"), "USD"))
        mock_get_gateway.return_value = gateway
        tx = self.pending("pi_abandoned", Transaction.TransactionType.CREDIT, amount="20.00")
        backdate(tx, minutes=30 * 24 * 60)

        from airswitch.tasks import reconcile_pending_payments

        first = reconcile_pending_payments.apply()
        second = reconcile_pending_payments.apply()

        self.assertEqual(first.get(), {"checked": 0, "settled": 0})
        self.assertEqual(second.get(), {"checked": 0, "settled": 0})
        gateway.verify_charge.assert_not_called()
        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.FAILED)

    @override_settings(PAYMENT_RECONCILE_MAX_AGE_HOURS=2)
    @patch("airswitch.services.topup.get_payment_gateway")
    def test_max_age_is_configurable(self, mock_get_gateway):
        gateway, _ = make_gateway(succeeded("20.00"))
        mock_get_gateway.return_value = gateway
        recent = self.pending("pi_recent", Transaction.TransactionType.CREDIT, amount="20.00")
        old = self.pending("pi_old", Transaction.TransactionType.CREDIT, amount="20.00")
        backdate(old, minutes=3 * 60)

        from airswitch.tasks import reconcile_pending_payments

        result = reconcile_pending_payments.apply()

        self.assertEqual(result.get(), {"checked": 1, "settled": 1})
        gateway.verify_charge.assert_called_once_with("pi_recent")
        recent.refresh_from_db()
        old.refresh_from_db()
        self.assertEqual(recent.status, Transaction.Status.SUCCESS)
        self.assertEqual(old.status, Transaction.Status.FAILED)
