import logging

from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from airswitch.exceptions import AirswitchError
from airswitch.serializers import FundWalletSerializer, TransactionSerializer, WalletSerializer
from airswitch.services import WalletService
from airswitch.views.base import error_response

logger = logging.getLogger(__name__)


class RetrieveWalletView(APIView):
    """GET /wallet/ — The caller's balances."""

    def get(self, request, *args, **kwargs):
        try:
            wallet = WalletService.get_wallet(request.user.pk)
        except AirswitchError as exc:
            return error_response(exc)
        return Response(WalletSerializer(wallet).data)


class FundWalletView(APIView):
    """
    POST /wallet/fund/ — Operator credit to a user's wallet.

    Request body: {"user_id": <id>, "amount": "10.00", "currency": "USD", "reference": "<unique>"}
    A repeated reference returns the original transaction without crediting again.
    """

    permission_classes = [IsAdminUser]

    def post(self, request, *args, **kwargs):
        serializer = FundWalletSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            tx = WalletService.fund(
                data["user_id"],
                data["amount"],
                data["currency"],
                reference=data["reference"],
                description=data.get("description") or "Manual credit",
            )
            wallet = WalletService.get_wallet(data["user_id"])
        except AirswitchError as exc:
            return error_response(exc)

        return Response(
            {
                "wallet": WalletSerializer(wallet).data,
                "transaction": TransactionSerializer(tx).data,
            },
            status=status.HTTP_200_OK,
        )
