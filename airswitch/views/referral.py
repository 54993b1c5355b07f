import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from airswitch.exceptions import AirswitchError
from airswitch.models import Referral
from airswitch.serializers import (
    ClaimReferralSerializer,
    InviteSerializer,
    ReferralHistorySerializer,
    ReferralSerializer,
)
from airswitch.services import ReferralService
from airswitch.views.base import error_response

logger = logging.getLogger(__name__)


class ReferralCodeView(APIView):
    """GET /referrals/code/ — The caller's shareable referral code."""

    def get(self, request, *args, **kwargs):
        try:
            referral = ReferralService.get_or_create_code(request.user)
        except AirswitchError as exc:
            return error_response(exc)
        return Response(ReferralSerializer(referral).data)


class InviteView(APIView):
    """
    POST /referrals/invite/ — Issue a referral code for a specific invitee.

    Request body: {"email": "friend@example.com"}
    """

    def post(self, request, *args, **kwargs):
        serializer = InviteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            referral = ReferralService.invite(request.user, serializer.validated_data["email"])
        except AirswitchError as exc:
            return error_response(exc)
        return Response(ReferralSerializer(referral).data, status=status.HTTP_201_CREATED)


class ReferralProgressView(APIView):
    """GET /referrals/progress/ — Counts, points earned and the caller's referrals."""

    def get(self, request, *args, **kwargs):
        progress = ReferralService.progress(request.user)
        referrals = Referral.objects.filter(referrer=request.user)
        progress["referrals"] = ReferralSerializer(referrals, many=True).data
        return Response(progress)


class ClaimReferralView(APIView):
    """
    POST /referrals/claim/ — Called once for a newly registered user.

    Request body: {"referral_code": "AIR-1A2B3C4D"}
    Unknown, expired or own codes are not errors; the response says nothing was claimed.
    """

    def post(self, request, *args, **kwargs):
        serializer = ClaimReferralSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        claim = ReferralService.claim(serializer.validated_data["referral_code"], request.user)
        if claim is None:
            return Response({"claimed": False})
        return Response(
            {
                "claimed": claim.awarded,
                "referral": ReferralSerializer(claim.referral).data,
            }
        )


class ReferralHistoryView(APIView):
    """GET /referrals/history/ — The caller's 50 most recent referrals with referee details."""

    def get(self, request, *args, **kwargs):
        referrals = ReferralService.history(request.user)
        return Response(ReferralHistorySerializer(referrals, many=True).data)
