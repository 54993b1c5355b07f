import logging

from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from airswitch.exceptions import AirswitchError
from airswitch.serializers import (
    BonusPointsSerializer,
    PointsTransactionSerializer,
    RedeemPointsSerializer,
    TransactionSerializer,
    UserPointsSerializer,
)
from airswitch.services import PointsService
from airswitch.views.base import error_response

logger = logging.getLogger(__name__)


class PointsView(APIView):
    """GET /points/ — Balance, created on first access."""

    def get(self, request, *args, **kwargs):
        points = PointsService.get_or_create(request.user.pk)
        return Response(UserPointsSerializer(points).data)


class PointsHistoryPagination(LimitOffsetPagination):
    default_limit = 50
    max_limit = 200


class PointsHistoryView(ListAPIView):
    """GET /points/history/?limit=&offset= — Points movements, newest first."""

    serializer_class = PointsTransactionSerializer
    pagination_class = PointsHistoryPagination

    def get_queryset(self):
        return PointsService.history(self.request.user.pk)


class PointsBreakdownView(APIView):
    """GET /points/breakdown/ — Points earned per source and redeemed."""

    def get(self, request, *args, **kwargs):
        return Response(PointsService.breakdown(request.user.pk))


class RedeemPointsView(APIView):
    """
    POST /points/redeem/ — Convert points into wallet balance.

    Request body: {"points": 500, "currency": "USD"}
    """

    def post(self, request, *args, **kwargs):
        serializer = RedeemPointsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            redemption = PointsService.redeem(
                request.user.pk,
                serializer.validated_data["points"],
                serializer.validated_data["currency"],
            )
        except AirswitchError as exc:
            return error_response(exc)

        points = PointsService.get_or_create(request.user.pk)
        return Response(
            {
                "credited": str(redemption.amount),
                "currency": redemption.currency,
                "points": UserPointsSerializer(points).data,
                "transaction": TransactionSerializer(redemption.transaction).data,
            },
            status=status.HTTP_200_OK,
        )


class BonusPointsView(APIView):
    """POST /points/bonus/ — Operator grant of bonus points."""

    permission_classes = [IsAdminUser]

    def post(self, request, *args, **kwargs):
        serializer = BonusPointsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            ptx = PointsService.award_bonus(data["user_id"], data["points"], data.get("reason", ""))
        except AirswitchError as exc:
            return error_response(exc)

        return Response(PointsTransactionSerializer(ptx).data, status=status.HTTP_201_CREATED)
