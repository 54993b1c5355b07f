import logging
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction
from django.db.models import F

from airswitch.exceptions import ConsistencyViolation, NotFound, ValidationError
from airswitch.models import Currency, Transaction, Wallet

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def clean_amount(amount) -> Decimal:
    """Coerce to a positive two-decimal amount or raise ValidationError."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Amount must be a number.")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be positive.")
    if value != value.quantize(CENT):
        raise ValidationError("Amount supports at most two decimal places.")
    return value.quantize(CENT)


def clean_currency(currency) -> str:
    value = (currency or "").upper()
    if value not in Currency.values:
        raise ValidationError(f"Unsupported currency: {currency}")
    return value


class WalletService:
    """
    Balance mutations for the multi-currency wallet.

    Every mutation locks the wallet row with select_for_update() and applies
    the change as an F() expression. Debits are additionally conditional on
    the balance covering the amount, which keeps them safe under
    read-committed isolation where the lock alone is not honoured.
    """

    @staticmethod
    def create_wallet(user) -> Wallet:
        wallet, created = Wallet.objects.get_or_create(user=user)
        if created:
            logger.info("Wallet created: user=%s wallet=%s", user.pk, wallet.uuid)
        return wallet

    @staticmethod
    def get_wallet(user_id) -> Wallet:
        try:
            return Wallet.objects.get(user_id=user_id)
        except Wallet.DoesNotExist:
            raise NotFound("Wallet not found.")

    @staticmethod
    def lock_wallet(user_id) -> Wallet:
        """Lock and return the wallet row. Call inside an atomic block."""
        try:
            return Wallet.objects.select_for_update().get(user_id=user_id)
        except Wallet.DoesNotExist:
            raise NotFound("Wallet not found.")

    @staticmethod
    def credit(user_id, amount: Decimal, currency: str) -> Wallet:
        """Increment a balance. Call inside an atomic block."""
        wallet = WalletService.lock_wallet(user_id)
        field = Wallet.balance_field(currency)
        Wallet.objects.filter(pk=wallet.pk).update(**{field: F(field) + amount})
        wallet.refresh_from_db()
        return wallet

    @staticmethod
    def debit(user_id, amount: Decimal, currency: str) -> Wallet:
        """
        Decrement a balance only if it covers the amount. Call inside an
        atomic block.

        Raises:
            ConsistencyViolation: if the balance no longer covers the amount.
        """
        wallet = WalletService.lock_wallet(user_id)
        field = Wallet.balance_field(currency)
        if wallet.balance_for(currency) < amount:
            logger.warning(
                "Debit rejected (insufficient balance): user=%s balance=%s amount=%s %s",
                user_id,
                wallet.balance_for(currency),
                amount,
                currency,
            )
            raise ConsistencyViolation()

        updated = Wallet.objects.filter(
            pk=wallet.pk, **{f"{field}__gte": amount}
        ).update(**{field: F(field) - amount})
        if not updated:
            raise ConsistencyViolation()
        wallet.refresh_from_db()
        return wallet

    @staticmethod
    @transaction.atomic
    def fund(
        user_id,
        amount,
        currency: str,
        reference: str = None,
        provider: str = None,
        description: str = None,
        metadata: dict = None,
    ) -> Transaction:
        """
        Credit the wallet and record a SUCCESS CREDIT transaction.

        When a reference is given it is the idempotency gate: a reference that
        already has a SUCCESS transaction returns that transaction without
        crediting again, and a PENDING one (created when the top-up was
        initiated) is promoted to SUCCESS in the same commit as the credit.

        Returns:
            The SUCCESS Transaction (new, promoted, or pre-existing).

        Raises:
            ValidationError: bad amount/currency or a reference owned by
                another user or another kind of payment.
            NotFound: the user has no wallet.
        """
        amount = clean_amount(amount)
        currency = clean_currency(currency)
        description = description or "Wallet funding"

        existing = None
        if reference:
            existing = (
                Transaction.objects.select_for_update()
                .filter(reference=reference)
                .exclude(status=Transaction.Status.FAILED)
                .first()
            )
            if existing is not None:
                if (
                    existing.user_id != user_id
                    or existing.transaction_type != Transaction.TransactionType.CREDIT
                ):
                    logger.warning(
                        "Funding reference conflict: reference=%s owner=%s caller=%s",
                        reference,
                        existing.user_id,
                        user_id,
                    )
                    raise ValidationError("Payment reference already used.")
                if existing.status == Transaction.Status.SUCCESS:
                    logger.info(
                        "Idempotent funding request: reference=%s tx=%d",
                        reference,
                        existing.id,
                    )
                    return existing

        if existing is not None:
            existing.status = Transaction.Status.SUCCESS
            existing.amount = amount
            existing.currency = currency
            existing.provider = provider or existing.provider
            existing.save(
                update_fields=["status", "amount", "currency", "provider", "updated_at"]
            )
            tx = existing
        else:
            try:
                with transaction.atomic():
                    tx = Transaction.objects.create(
                        user_id=user_id,
                        amount=amount,
                        currency=currency,
                        transaction_type=Transaction.TransactionType.CREDIT,
                        status=Transaction.Status.SUCCESS,
                        reference=reference,
                        provider=provider,
                        description=description,
                        metadata=metadata,
                    )
            except IntegrityError:
                # A concurrent request recorded this reference first.
                winner = (
                    Transaction.objects.filter(reference=reference)
                    .exclude(status=Transaction.Status.FAILED)
                    .first()
                )
                if winner is None:
                    raise
                logger.info(
                    "Funding reference recorded concurrently: reference=%s tx=%d",
                    reference,
                    winner.id,
                )
                return winner

        wallet = WalletService.credit(user_id, amount, currency)

        logger.info(
            "Wallet funded: user=%s amount=%s %s new_balance=%s tx=%d reference=%s",
            user_id,
            amount,
            currency,
            wallet.balance_for(currency),
            tx.id,
            reference,
        )
        return tx
