from django.conf import settings
from django.db import models

from airswitch.models.base import BaseModel


class Referral(BaseModel):
    """
    One referrer/referee pairing attempt, keyed by a unique code.

    The status field is the idempotency gate for the award: a code moves
    PENDING -> COMPLETED at most once, in the same commit that credits the
    referrer's points.
    """

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        COMPLETED = "COMPLETED", "Completed"
        EXPIRED = "EXPIRED", "Expired"

    referrer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="referrals_made",
    )
    referee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="referrals_received",
    )
    referee_email = models.EmailField(blank=True, default="")
    referral_code = models.CharField(max_length=32, unique=True)
    status = models.CharField(
        max_length=9,
        choices=Status.choices,
        default=Status.PENDING,
    )
    points_awarded = models.PositiveIntegerField(default=0)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["referrer", "status"], name="idx_referral_referrer"),
        ]

    def __str__(self):
        return f"Referral {self.referral_code} ({self.status})"
