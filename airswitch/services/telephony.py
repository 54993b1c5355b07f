import logging
import re

from django.db import IntegrityError, transaction

from airswitch.exceptions import NotFound, ValidationError
from airswitch.models import Message, PhoneNumber
from airswitch.utils.carrier import get_carrier_client

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 50
MAX_SMS_LENGTH = 1600
E164 = re.compile(r"^\+[1-9]\d{6,14}$")


def clean_number(value: str, field: str = "phone_number") -> str:
    number = (value or "").strip().replace(" ", "")
    if not E164.match(number):
        raise ValidationError(f"{field} must be an E.164 number like +15551234567.")
    return number


class TelephonyService:
    """
    Numbers a user buys from the carrier and the SMS sent through them.

    Carrier failures propagate as GatewayError; nothing is stored locally
    unless the carrier accepted the request.
    """

    def __init__(self, carrier=None):
        self.carrier = carrier or get_carrier_client()

    def search_numbers(self, country_code: str = "US", limit: int = 10) -> list:
        country_code = (country_code or "US").strip().upper()
        if not re.match(r"^[A-Z]{2}$", country_code):
            raise ValidationError("country_code must be a two-letter ISO code.")
        if not 1 <= limit <= MAX_SEARCH_RESULTS:
            raise ValidationError(f"limit must be between 1 and {MAX_SEARCH_RESULTS}.")
        return self.carrier.search_numbers(country_code=country_code, limit=limit)

    def purchase_number(self, user, phone_number: str) -> PhoneNumber:
        phone_number = clean_number(phone_number)
        if PhoneNumber.objects.filter(phone_number=phone_number).exists():
            raise ValidationError("This number is already taken.")

        order = self.carrier.purchase_number(phone_number)
        try:
            with transaction.atomic():
                number = PhoneNumber.objects.create(
                    user=user,
                    phone_number=phone_number,
                    external_id=order["id"],
                )
        except IntegrityError:
            logger.error(
                "Number ordered but already assigned locally: number=%s order=%s user=%s",
                phone_number,
                order["id"],
                user.pk,
            )
            raise ValidationError("This number is already taken.")

        logger.info("Number purchased: user=%s number=%s order=%s", user.pk, phone_number, order["id"])
        return number

    @staticmethod
    def list_numbers(user):
        return PhoneNumber.objects.filter(user=user)

    def send_sms(self, user, to: str, from_: str, text: str) -> Message:
        """
        Send an SMS from one of the user's numbers and log it.

        The carrier's delivery webhooks update the same row by its message id,
        so a webhook that lands first is simply overwritten with the sender.
        """
        to = clean_number(to, "to")
        from_ = clean_number(from_, "from")
        text = (text or "").strip()
        if not text:
            raise ValidationError("text is required.")
        if len(text) > MAX_SMS_LENGTH:
            raise ValidationError(f"text must be at most {MAX_SMS_LENGTH} characters.")
        if not PhoneNumber.objects.filter(user=user, phone_number=from_).exists():
            raise NotFound("Sender number not found.")

        data = self.carrier.send_sms(to, from_, text)
        recipients = data.get("to") or []
        first = recipients[0] if isinstance(recipients, list) and recipients else {}
        status = (first.get("status") if isinstance(first, dict) else None) or "sent"

        message, _ = Message.objects.update_or_create(
            external_id=data["id"],
            defaults={
                "user": user,
                "from_number": from_,
                "to_number": to,
                "body": text,
                "direction": "outbound",
                "status": status,
            },
        )
        logger.info("SMS sent: user=%s message=%s status=%s", user.pk, message.external_id, status)
        return message

    @staticmethod
    def list_messages(user):
        return Message.objects.filter(user=user)
