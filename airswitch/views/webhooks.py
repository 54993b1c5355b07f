import logging

from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from airswitch.exceptions import AirswitchError
from airswitch.services import WebhookService
from airswitch.views.base import error_response

logger = logging.getLogger(__name__)


class WebhookView(APIView):
    """
    Base for provider callbacks. Authenticated by signature, not by session,
    and always read from the raw body so the signature can be checked.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def handle_event(self, request) -> dict:
        raise NotImplementedError

    def post(self, request, *args, **kwargs):
        try:
            result = self.handle_event(request)
        except AirswitchError as exc:
            logger.warning(
                "Webhook rejected: view=%s code=%s error=%s",
                self.__class__.__name__,
                exc.code,
                exc.message,
            )
            return error_response(exc)
        return Response(result)


class StripeWebhookView(WebhookView):
    """POST /webhooks/stripe/"""

    def handle_event(self, request):
        return WebhookService().handle_stripe(
            request.body, request.META.get("HTTP_STRIPE_SIGNATURE", "")
        )


class PaystackWebhookView(WebhookView):
    """POST /webhooks/paystack/"""

    def handle_event(self, request):
        return WebhookService().handle_paystack(
            request.body, request.META.get("HTTP_X_PAYSTACK_SIGNATURE", "")
        )


class TelnyxWebhookView(WebhookView):
    """POST /webhooks/telnyx/"""

    def handle_event(self, request):
        return WebhookService().handle_carrier(
            request.body,
            request.META.get("HTTP_TELNYX_SIGNATURE_ED25519"),
            request.META.get("HTTP_TELNYX_TIMESTAMP"),
        )
