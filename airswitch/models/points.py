from django.conf import settings
from django.db import models

from airswitch.models.base import BaseModel


class UserPoints(BaseModel):
    """
    Loyalty points balance, created lazily on first access or referral award.

    total_points always equals available_points + redeemed_points; every
    mutation updates the affected columns in a single UPDATE so the check
    constraint holds at commit time.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="points",
    )
    total_points = models.PositiveIntegerField(default=0)
    available_points = models.PositiveIntegerField(default=0)
    redeemed_points = models.PositiveIntegerField(default=0)

    class Meta(BaseModel.Meta):
        verbose_name_plural = "user points"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    total_points=models.F("available_points")
                    + models.F("redeemed_points")
                ),
                name="points_conserved",
            ),
        ]

    def __str__(self):
        return (
            f"UserPoints user={self.user_id} total={self.total_points} "
            f"available={self.available_points} redeemed={self.redeemed_points}"
        )


class PointsTransaction(BaseModel):
    """Append-only audit row for every points mutation. Amount is signed."""

    class PointsType(models.TextChoices):
        REFERRAL = "REFERRAL", "Referral"
        REDEEM = "REDEEM", "Redeem"
        BONUS = "BONUS", "Bonus"
        PURCHASE = "PURCHASE", "Purchase"
        ADJUSTMENT = "ADJUSTMENT", "Adjustment"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="points_transactions",
    )
    user_points = models.ForeignKey(
        UserPoints,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    amount = models.IntegerField()
    points_type = models.CharField(max_length=10, choices=PointsType.choices)
    description = models.CharField(max_length=255, blank=True, default="")
    referral = models.ForeignKey(
        "airswitch.Referral",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="points_transactions",
    )

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["user", "created_at"], name="idx_points_user_created"),
        ]

    def __str__(self):
        return f"PointsTransaction {self.id} | {self.points_type} | {self.amount}"
