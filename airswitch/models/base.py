from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model providing created_at / updated_at tracking for every
    ledger record.
    """

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at", "-id"]


class Currency(models.TextChoices):
    USD = "USD", "US Dollar"
    NGN = "NGN", "Nigerian Naira"


class PaymentMethod(models.TextChoices):
    WALLET = "WALLET", "Wallet"
    STRIPE = "STRIPE", "Stripe"
    PAYSTACK = "PAYSTACK", "Paystack"
