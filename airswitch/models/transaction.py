from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from airswitch.models.base import BaseModel, Currency, PaymentMethod


class Transaction(BaseModel):
    """
    Append-only audit row for every wallet movement and every paid purchase.

    A top-up is created PENDING when the charge intent is issued and moves to
    SUCCESS exactly once when the processor confirms it. The external
    `reference` is the idempotency key: at most one non-FAILED row may carry
    a given reference, enforced by the database.
    """

    class TransactionType(models.TextChoices):
        CREDIT = "CREDIT", "Credit"
        DEBIT = "DEBIT", "Debit"

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        SUCCESS = "SUCCESS", "Success"
        FAILED = "FAILED", "Failed"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    currency = models.CharField(max_length=3, choices=Currency.choices)
    transaction_type = models.CharField(
        max_length=6,
        choices=TransactionType.choices,
    )
    status = models.CharField(
        max_length=7,
        choices=Status.choices,
        default=Status.PENDING,
    )
    reference = models.CharField(
        max_length=128,
        null=True,
        blank=True,
        help_text="External payment reference; idempotency key when present.",
    )
    provider = models.CharField(
        max_length=8,
        choices=PaymentMethod.choices,
        null=True,
        blank=True,
    )
    description = models.CharField(max_length=255, blank=True, default="")
    metadata = models.JSONField(null=True, blank=True)

    class Meta(BaseModel.Meta):
        constraints = [
            models.UniqueConstraint(
                fields=["reference"],
                condition=models.Q(reference__isnull=False)
                & ~models.Q(status="FAILED"),
                name="uniq_active_transaction_reference",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "status"], name="idx_tx_user_status"),
            models.Index(fields=["status", "created_at"], name="idx_tx_status_created"),
        ]

    def __str__(self):
        return (
            f"Transaction {self.id} | {self.transaction_type} | "
            f"{self.amount} {self.currency} | {self.status}"
        )

    @classmethod
    def get_stale_pending_payments(cls, older_than_minutes=30, max_age_hours=None):
        """Return PENDING processor payments whose webhook should have arrived by now."""
        now = timezone.now()
        stale = cls.objects.filter(
            status=cls.Status.PENDING,
            reference__isnull=False,
            provider__in=[PaymentMethod.STRIPE, PaymentMethod.PAYSTACK],
            created_at__lte=now - timedelta(minutes=older_than_minutes),
        )
        if max_age_hours is not None:
            stale = stale.filter(created_at__gte=now - timedelta(hours=max_age_hours))
        return stale

    @classmethod
    def expire_abandoned_payments(cls, older_than_hours):
        """Fail PENDING processor payments too old to settle; returns the count."""
        cutoff = timezone.now() - timedelta(hours=older_than_hours)
        return cls.objects.filter(
            status=cls.Status.PENDING,
            reference__isnull=False,
            provider__in=[PaymentMethod.STRIPE, PaymentMethod.PAYSTACK],
            created_at__lt=cutoff,
        ).update(status=cls.Status.FAILED, updated_at=timezone.now())
