from django.conf import settings
from django.db import models

from airswitch.models.base import BaseModel, Currency, PaymentMethod


class ESim(BaseModel):
    """
    A provisioned connectivity resource mirrored from the carrier.

    Rows exist only after the carrier created the SIM; status follows the
    explicit activate/deactivate calls and carrier lifecycle webhooks.
    """

    class Status(models.TextChoices):
        INACTIVE = "INACTIVE", "Inactive"
        ACTIVE = "ACTIVE", "Active"
        EXPIRED = "EXPIRED", "Expired"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="esims",
    )
    external_id = models.CharField(max_length=128, unique=True)
    iccid = models.CharField(max_length=64)
    status = models.CharField(
        max_length=8,
        choices=Status.choices,
        default=Status.INACTIVE,
    )
    plan_id = models.CharField(max_length=64, blank=True, default="")
    region = models.CharField(max_length=64, blank=True, default="")
    qr_code_url = models.URLField(max_length=500, blank=True, default="")
    activation_code = models.CharField(max_length=255, blank=True, default="")
    smdp_address = models.CharField(max_length=255, blank=True, default="")

    def __str__(self):
        return f"ESim {self.iccid} ({self.status})"


class EsimOrder(BaseModel):
    """
    Links a payment reference to one provisioning attempt.

    payment_reference is unique among non-FAILED orders, so a duplicate
    webhook or client retry cannot record a second order for the same payment.
    """

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        ACTIVATED = "ACTIVATED", "Activated"
        FAILED = "FAILED", "Failed"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="esim_orders",
    )
    esim = models.OneToOneField(
        ESim,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="order",
    )
    plan_id = models.CharField(max_length=64)
    payment_reference = models.CharField(max_length=128)
    payment_method = models.CharField(max_length=8, choices=PaymentMethod.choices)
    external_order_id = models.CharField(max_length=128, blank=True, default="")
    status = models.CharField(
        max_length=9,
        choices=Status.choices,
        default=Status.PENDING,
    )
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    currency = models.CharField(max_length=3, choices=Currency.choices)
    points_used = models.PositiveIntegerField(default=0)
    is_gift = models.BooleanField(default=False)
    gift_email = models.EmailField(blank=True, default="")
    failure_reason = models.CharField(max_length=255, blank=True, default="")

    class Meta(BaseModel.Meta):
        constraints = [
            models.UniqueConstraint(
                fields=["payment_reference"],
                condition=~models.Q(status="FAILED"),
                name="uniq_active_order_reference",
            ),
        ]

    def __str__(self):
        return f"EsimOrder {self.id} | {self.plan_id} | {self.status}"
