import logging

from django.db import transaction

from airswitch.exceptions import GatewayError, NotFound, PaymentNotConfirmed, ValidationError
from airswitch.models import PaymentMethod, Transaction
from airswitch.services.wallet import WalletService, clean_amount, clean_currency
from airswitch.utils.payments import ChargeStatus, get_payment_gateway

logger = logging.getLogger(__name__)


class TopUpService:
    """Wallet funding through an external processor (card or bank transfer)."""

    @staticmethod
    def initiate(user, amount, currency, method, email=None, gateway=None):
        """
        Create a processor charge and a PENDING CREDIT transaction for it.

        The processor reference becomes the transaction reference, so the
        webhook and the manual confirmation converge on the same row.

        Returns:
            (ChargeIntent, Transaction)
        """
        amount = clean_amount(amount)
        currency = clean_currency(currency)
        if method not in (PaymentMethod.STRIPE, PaymentMethod.PAYSTACK):
            raise ValidationError(f"Unsupported top-up method: {method}")

        gateway = gateway or get_payment_gateway(method)
        intent = gateway.create_charge(
            amount,
            currency,
            user.pk,
            metadata={"purpose": "topup"},
            email=email or user.email,
        )

        tx = Transaction.objects.create(
            user=user,
            amount=amount,
            currency=currency,
            transaction_type=Transaction.TransactionType.CREDIT,
            status=Transaction.Status.PENDING,
            reference=intent.reference,
            provider=method,
            description=f"Wallet top-up via {method.lower()}",
            metadata={"purpose": "topup"},
        )

        logger.info(
            "Top-up initiated: user=%s amount=%s %s provider=%s reference=%s",
            user.pk,
            amount,
            currency,
            method,
            intent.reference,
        )
        return intent, tx

    @staticmethod
    def confirm(user_id, reference, method=None, gateway=None) -> Transaction:
        """
        Verify a top-up with its processor and credit the wallet.

        The verified amount and currency are credited, not the amount the
        client asked for. Safe to call repeatedly: a confirmed reference is
        returned unchanged.

        Raises:
            NotFound: no top-up with this reference belongs to the user.
            PaymentNotConfirmed: the processor has not settled the charge.
        """
        tx = (
            Transaction.objects.filter(
                reference=reference,
                user_id=user_id,
                transaction_type=Transaction.TransactionType.CREDIT,
            )
            .exclude(status=Transaction.Status.FAILED)
            .first()
        )
        if tx is None:
            raise NotFound("Top-up not found.")
        if tx.status == Transaction.Status.SUCCESS:
            return tx

        method = method or tx.provider
        gateway = gateway or get_payment_gateway(method)
        try:
            verification = gateway.verify_charge(reference)
        except GatewayError as exc:
            logger.warning(
                "Top-up verification unavailable: reference=%s error=%s",
                reference,
                exc,
            )
            raise PaymentNotConfirmed(f"Could not verify payment: {exc.message}")

        if verification.status == ChargeStatus.FAILED:
            with transaction.atomic():
                Transaction.objects.filter(
                    pk=tx.pk, status=Transaction.Status.PENDING
                ).update(status=Transaction.Status.FAILED)
            logger.info(
                "Top-up failed at processor: reference=%s reason=%s",
                reference,
                verification.reason,
            )
            raise PaymentNotConfirmed(
                f"Payment not successful ({verification.reason or 'failed'})."
            )
        if verification.status == ChargeStatus.PENDING:
            raise PaymentNotConfirmed("Payment is still pending.")

        return WalletService.fund(
            user_id,
            verification.amount,
            verification.currency,
            reference=reference,
            provider=method,
            description=f"Wallet top-up via {method.lower()}",
        )
