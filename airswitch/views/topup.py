import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from airswitch.exceptions import AirswitchError
from airswitch.serializers import TopUpSerializer, TransactionSerializer, WalletSerializer
from airswitch.services import TopUpService, WalletService
from airswitch.views.base import error_response

logger = logging.getLogger(__name__)


class CreateTopUpView(APIView):
    """
    POST /wallet/topups/ — Start a card or bank top-up.

    Request body: {"amount": "20.00", "currency": "USD", "method": "STRIPE"}
    Returns the processor handle (client secret or checkout URL) and the reference.
    """

    def post(self, request, *args, **kwargs):
        serializer = TopUpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            intent, tx = TopUpService.initiate(
                request.user,
                data["amount"],
                data["currency"],
                data["method"],
                email=data.get("email"),
            )
        except AirswitchError as exc:
            return error_response(exc)

        return Response(
            {
                "reference": intent.reference,
                "client_handle": intent.client_handle,
                "transaction": TransactionSerializer(tx).data,
            },
            status=status.HTTP_201_CREATED,
        )


class ConfirmTopUpView(APIView):
    """POST /wallet/topups/<reference>/confirm/ — Verify with the processor and credit."""

    def post(self, request, reference, *args, **kwargs):
        try:
            tx = TopUpService.confirm(request.user.pk, reference)
            wallet = WalletService.get_wallet(request.user.pk)
        except AirswitchError as exc:
            return error_response(exc)

        return Response(
            {
                "wallet": WalletSerializer(wallet).data,
                "transaction": TransactionSerializer(tx).data,
            }
        )
