import logging

from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from airswitch.exceptions import AirswitchError
from airswitch.serializers import (
    MessageSerializer,
    NumberSearchSerializer,
    PhoneNumberSerializer,
    PurchaseNumberSerializer,
    SendSmsSerializer,
)
from airswitch.services import TelephonyService
from airswitch.views.base import error_response

logger = logging.getLogger(__name__)


class NumberSearchView(APIView):
    """GET /numbers/search/?country_code=US&limit=10 — Numbers the carrier can sell."""

    def get(self, request, *args, **kwargs):
        serializer = NumberSearchSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        try:
            numbers = TelephonyService().search_numbers(**serializer.validated_data)
        except AirswitchError as exc:
            return error_response(exc)
        return Response({"numbers": numbers})


class PhoneNumberListView(ListAPIView):
    """GET /numbers/ — Numbers the caller owns."""

    serializer_class = PhoneNumberSerializer

    def get_queryset(self):
        return TelephonyService.list_numbers(self.request.user)


class PurchaseNumberView(APIView):
    """
    POST /numbers/purchase/ — Buy a number found through the search.

    Request body: {"phone_number": "+15551234567"}
    """

    def post(self, request, *args, **kwargs):
        serializer = PurchaseNumberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            number = TelephonyService().purchase_number(
                request.user, serializer.validated_data["phone_number"]
            )
        except AirswitchError as exc:
            return error_response(exc)
        return Response(PhoneNumberSerializer(number).data, status=status.HTTP_201_CREATED)


class MessagePagination(LimitOffsetPagination):
    default_limit = 50
    max_limit = 200


class MessageListView(ListAPIView):
    """
    GET /messages/?limit=&offset= — The caller's SMS, newest first.
    POST /messages/ — Send an SMS from a number the caller owns.

    Request body: {"to": "+15557654321", "from": "+15551234567", "text": "Hi"}
    """

    serializer_class = MessageSerializer
    pagination_class = MessagePagination

    def get_queryset(self):
        return TelephonyService.list_messages(self.request.user)

    def post(self, request, *args, **kwargs):
        serializer = SendSmsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            message = TelephonyService().send_sms(
                request.user, data["to"], data["from"], data["text"]
            )
        except AirswitchError as exc:
            return error_response(exc)
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)
