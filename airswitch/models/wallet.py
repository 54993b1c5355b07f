import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models

from airswitch.models.base import BaseModel, Currency


class Wallet(BaseModel):
    """
    A user's multi-currency balance.

    Balances are fixed-point decimals and never negative; the check constraints
    make the database reject any commit that would overdraw. Concurrency
    safety is handled at the service layer via select_for_update() and
    conditional F() updates.
    """

    uuid = models.UUIDField(
        default=uuid.uuid4, unique=True, editable=False, db_index=True
    )
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="wallet",
    )
    balance_usd = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    balance_ngn = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    class Meta(BaseModel.Meta):
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance_usd__gte=0), name="wallet_usd_non_negative"
            ),
            models.CheckConstraint(
                condition=models.Q(balance_ngn__gte=0), name="wallet_ngn_non_negative"
            ),
        ]

    def __str__(self):
        return (
            f"Wallet {self.uuid} (USD={self.balance_usd}, NGN={self.balance_ngn})"
        )

    @staticmethod
    def balance_field(currency: str) -> str:
        if currency == Currency.USD:
            return "balance_usd"
        if currency == Currency.NGN:
            return "balance_ngn"
        raise ValueError(f"Unsupported currency: {currency}")

    def balance_for(self, currency: str) -> Decimal:
        return getattr(self, self.balance_field(currency))
