import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from airswitch.exceptions import AirswitchError
from airswitch.models import PaymentMethod
from airswitch.serializers import (
    EsimOrderSerializer,
    EsimPaymentSerializer,
    ESimSerializer,
    PurchaseSerializer,
    TransactionSerializer,
)
from airswitch.services import ProvisioningOrchestrator, PurchaseRequest
from airswitch.utils.plans import list_plans
from airswitch.views.base import error_response

logger = logging.getLogger(__name__)


class PlanListView(APIView):
    """GET /esims/plans/ — The plan catalog with prices per currency."""

    def get(self, request, *args, **kwargs):
        return Response([plan.as_dict() for plan in list_plans()])


class CreateEsimPaymentView(APIView):
    """
    POST /esims/payments/ — Open a card or bank charge for a plan.

    Request body: {"plan_id": "...", "method": "PAYSTACK", "currency": "NGN"}
    The processor webhook provisions the eSIM once the charge settles.
    """

    def post(self, request, *args, **kwargs):
        serializer = EsimPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            intent, tx = ProvisioningOrchestrator().create_payment(
                request.user,
                data["plan_id"],
                data["method"],
                currency=data["currency"],
                email=data.get("email"),
                gift_email=data.get("gift_email", ""),
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


class PurchaseEsimView(APIView):
    """
    POST /esims/purchase/ — Pay for a plan and provision the eSIM.

    Request body: {"plan_id": "...", "payment_method": "WALLET", "currency": "USD", "use_points": false}
    Wallet purchases should send an Idempotency-Key header; card purchases send
    the processor's payment_reference. Replays return 200 with the original order.
    """

    def post(self, request, *args, **kwargs):
        serializer = PurchaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        reference = data.get("payment_reference")
        if data["payment_method"] == PaymentMethod.WALLET:
            reference = request.META.get("HTTP_IDEMPOTENCY_KEY") or reference
        gift_email = data.get("gift_email", "")

        try:
            result = ProvisioningOrchestrator().purchase(
                PurchaseRequest(
                    user_id=request.user.pk,
                    plan_id=data["plan_id"],
                    payment_method=data["payment_method"],
                    payment_reference=reference,
                    currency=data["currency"],
                    use_points=data["use_points"],
                    is_gift=bool(gift_email),
                    gift_email=gift_email,
                )
            )
        except AirswitchError as exc:
            return error_response(exc)

        return Response(
            {
                "order": EsimOrderSerializer(result.order).data,
                "activated": result.activated,
                "replayed": result.replayed,
            },
            status=status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED,
        )


class ESimListView(APIView):
    """GET /esims/ — The caller's eSIMs."""

    def get(self, request, *args, **kwargs):
        esims = ProvisioningOrchestrator.list_esims(request.user.pk)
        return Response(ESimSerializer(esims, many=True).data)


class ActivateEsimView(APIView):
    """POST /esims/<id>/activate/"""

    def post(self, request, id, *args, **kwargs):
        try:
            esim = ProvisioningOrchestrator().activate_esim(request.user.pk, id)
        except AirswitchError as exc:
            return error_response(exc)
        return Response(ESimSerializer(esim).data)


class DeactivateEsimView(APIView):
    """POST /esims/<id>/deactivate/"""

    def post(self, request, id, *args, **kwargs):
        try:
            esim = ProvisioningOrchestrator().deactivate_esim(request.user.pk, id)
        except AirswitchError as exc:
            return error_response(exc)
        return Response(ESimSerializer(esim).data)


class EsimUsageView(APIView):
    """GET /esims/<id>/usage/ — Data used against the plan limit, from the carrier."""

    def get(self, request, id, *args, **kwargs):
        try:
            usage = ProvisioningOrchestrator().get_usage(request.user.pk, id)
        except AirswitchError as exc:
            return error_response(exc)
        return Response(
            {
                "data_usage": usage.data_usage,
                "data_limit": usage.data_limit,
                "unit": usage.unit,
            }
        )
