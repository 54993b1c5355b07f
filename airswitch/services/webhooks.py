import json
import logging

from django.contrib.auth import get_user_model

from airswitch.exceptions import ValidationError
from airswitch.models import Call, ESim, Message, PaymentMethod, PhoneNumber
from airswitch.services.provisioning import ProvisioningOrchestrator, PurchaseRequest
from airswitch.services.wallet import WalletService
from airswitch.utils.carrier import verify_carrier_signature
from airswitch.utils.payments import get_payment_gateway

logger = logging.getLogger(__name__)

# Carrier SIM card statuses mapped onto ours; anything else is left alone.
SIM_STATUS_MAP = {
    "enabled": ESim.Status.ACTIVE,
    "active": ESim.Status.ACTIVE,
    "disabled": ESim.Status.INACTIVE,
    "standby": ESim.Status.INACTIVE,
    "inactive": ESim.Status.INACTIVE,
    "expired": ESim.Status.EXPIRED,
    "deleted": ESim.Status.EXPIRED,
}

CALL_EVENTS = ("call.initiated", "call.answered", "call.hangup")


class WebhookService:
    """
    Turns authenticated provider callbacks into ledger and lifecycle updates.

    Payment webhooks drive the same idempotent paths as client requests, so
    a duplicate or replayed event never charges or credits twice.
    """

    def __init__(self, orchestrator=None, gateway_factory=None):
        self._orchestrator = orchestrator
        self.gateway_factory = gateway_factory or get_payment_gateway

    @property
    def orchestrator(self) -> ProvisioningOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = ProvisioningOrchestrator(gateway_factory=self.gateway_factory)
        return self._orchestrator

    def handle_stripe(self, payload: bytes, signature: str) -> dict:
        return self.handle_charge(PaymentMethod.STRIPE, payload, signature)

    def handle_paystack(self, payload: bytes, signature: str) -> dict:
        return self.handle_charge(PaymentMethod.PAYSTACK, payload, signature)

    def handle_charge(self, method, payload: bytes, signature: str) -> dict:
        """
        Raises:
            InvalidSignature: before any side effect.
            AirswitchError: from fulfilment, so the processor redelivers.
        """
        gateway = self.gateway_factory(method)
        event = gateway.parse_webhook(payload, signature)

        if not event.succeeded:
            logger.info(
                "Webhook ignored: provider=%s event=%s reference=%s",
                method,
                event.event_type,
                event.reference,
            )
            return {"received": True, "action": "ignored"}

        user_id = self._user_id(event)
        if user_id is None:
            logger.warning(
                "Webhook without user metadata: provider=%s reference=%s",
                method,
                event.reference,
            )
            return {"received": True, "action": "ignored"}

        if event.plan_id:
            gift_email = event.metadata.get("gift_email") or ""
            result = self.orchestrator.purchase(
                PurchaseRequest(
                    user_id=user_id,
                    plan_id=event.plan_id,
                    payment_method=method,
                    payment_reference=event.reference,
                    currency=event.currency,
                    is_gift=bool(gift_email),
                    gift_email=gift_email,
                )
            )
            logger.info(
                "Webhook fulfilled purchase: provider=%s reference=%s order=%d replayed=%s",
                method,
                event.reference,
                result.order.id,
                result.replayed,
            )
            return {
                "received": True,
                "action": "provisioned",
                "order_id": result.order.id,
                "replayed": result.replayed,
            }

        if event.purpose == "topup":
            tx = WalletService.fund(
                user_id,
                event.amount,
                event.currency,
                reference=event.reference,
                provider=method,
                description=f"Wallet top-up via {method.lower()}",
            )
            return {"received": True, "action": "funded", "transaction_id": tx.id}

        logger.warning(
            "Webhook with unknown purpose: provider=%s reference=%s metadata=%s",
            method,
            event.reference,
            event.metadata,
        )
        return {"received": True, "action": "ignored"}

    @staticmethod
    def _user_id(event):
        try:
            user_id = int(event.user_id)
        except (TypeError, ValueError):
            return None
        if not get_user_model().objects.filter(pk=user_id).exists():
            return None
        return user_id

    def handle_carrier(self, payload: bytes, signature=None, timestamp=None) -> dict:
        """Upsert SIM, message and call state from a carrier event envelope."""
        verify_carrier_signature(payload, signature, timestamp)
        try:
            event = json.loads(payload)
        except ValueError:
            raise ValidationError("Malformed carrier event.")
        if not isinstance(event, dict):
            raise ValidationError("Malformed carrier event.")
        data = event.get("data") or {}
        if not isinstance(data, dict):
            raise ValidationError("Malformed carrier event.")
        event_type = data.get("event_type") or ""
        body = data.get("payload") or {}
        if not isinstance(event_type, str) or not isinstance(body, dict):
            raise ValidationError("Malformed carrier event.")

        if event_type.startswith("sim_card."):
            return self._sim_card_event(event_type, body)
        if event_type.startswith("message."):
            return self._message_event(event_type, body)
        if event_type in CALL_EVENTS:
            return self._call_event(event_type, body)

        logger.info("Carrier event ignored: type=%s", event_type)
        return {"received": True, "action": "ignored"}

    def _sim_card_event(self, event_type, payload):
        sim_id = payload.get("sim_card_id") or payload.get("id")
        status = SIM_STATUS_MAP.get((payload.get("status") or "").lower())
        if not sim_id or status is None:
            logger.info("Carrier SIM event ignored: type=%s sim=%s", event_type, sim_id)
            return {"received": True, "action": "ignored"}

        updated = ESim.objects.filter(external_id=sim_id).update(status=status)
        logger.info("Carrier SIM status: sim=%s status=%s rows=%d", sim_id, status, updated)
        return {"received": True, "action": "sim_updated", "updated": updated}

    def _message_event(self, event_type, payload):
        message_id = payload.get("id")
        if not message_id:
            raise ValidationError("Message event without id.")

        recipients = payload.get("to") or [{}]
        if not isinstance(recipients, list):
            raise ValidationError("Message event recipients must be a list.")
        recipient = recipients[0] or {}
        sender = payload.get("from") or {}
        if not isinstance(recipient, dict) or not isinstance(sender, dict):
            raise ValidationError("Message event parties must be objects.")

        inbound = event_type == "message.received"
        status = recipient.get("status") or event_type.split(".", 1)[1]
        from_number = sender.get("phone_number") or ""
        to_number = recipient.get("phone_number") or ""

        defaults = {
            "from_number": from_number,
            "to_number": to_number,
            "body": payload.get("text") or "",
            "direction": "inbound" if inbound else "outbound",
            "status": status,
        }
        owned = PhoneNumber.objects.filter(
            phone_number=to_number if inbound else from_number
        ).first()
        if owned is not None:
            defaults["user_id"] = owned.user_id

        message, created = Message.objects.update_or_create(
            external_id=message_id, defaults=defaults
        )
        logger.info("Carrier message %s: id=%s status=%s", "stored" if created else "updated", message_id, status)
        return {"received": True, "action": "message_saved", "id": message.id}

    def _call_event(self, event_type, payload):
        call_id = payload.get("call_control_id")
        if not call_id:
            raise ValidationError("Call event without call_control_id.")

        status = event_type.split(".", 1)[1]
        defaults = {"status": status}
        if payload.get("from"):
            defaults["from_number"] = payload["from"]
        if payload.get("to"):
            defaults["to_number"] = payload["to"]

        call, _ = Call.objects.update_or_create(external_id=call_id, defaults=defaults)
        logger.info("Carrier call %s: id=%s", status, call_id)
        return {"received": True, "action": "call_saved", "id": call.id}
