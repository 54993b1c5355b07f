from django.conf import settings
from django.db import models

from airswitch.models.base import BaseModel


class PhoneNumber(BaseModel):
    """A carrier number bought by a user for SMS and voice."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="phone_numbers",
    )
    phone_number = models.CharField(max_length=32, unique=True)
    external_id = models.CharField(
        max_length=128,
        blank=True,
        default="",
        help_text="Carrier number order id.",
    )
    status = models.CharField(max_length=16, default="ACTIVE")

    def __str__(self):
        return f"PhoneNumber {self.phone_number} | user={self.user_id} | {self.status}"


class Message(BaseModel):
    """SMS seen by the carrier, upserted by its external id."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="messages",
        help_text="Owner of the number the message went through, when known.",
    )
    external_id = models.CharField(max_length=128, unique=True)
    from_number = models.CharField(max_length=32)
    to_number = models.CharField(max_length=32)
    body = models.TextField(blank=True, default="")
    direction = models.CharField(max_length=8)
    status = models.CharField(max_length=32)

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["user", "created_at"], name="idx_message_user_created"),
        ]

    def __str__(self):
        return f"Message {self.external_id} ({self.direction}, {self.status})"


class Call(BaseModel):
    """Voice call lifecycle, upserted by the carrier call control id."""

    external_id = models.CharField(max_length=128, unique=True)
    from_number = models.CharField(max_length=32, blank=True, default="")
    to_number = models.CharField(max_length=32, blank=True, default="")
    status = models.CharField(max_length=32)

    def __str__(self):
        return f"Call {self.external_id} ({self.status})"
