from rest_framework import serializers

from airswitch.models import Referral


class ReferralSerializer(serializers.ModelSerializer):
    class Meta:
        model = Referral
        fields = (
            "referral_code",
            "referee_email",
            "status",
            "points_awarded",
            "completed_at",
            "created_at",
        )
        read_only_fields = fields


class ReferralHistorySerializer(serializers.ModelSerializer):
    email = serializers.SerializerMethodField()
    name = serializers.SerializerMethodField()

    class Meta:
        model = Referral
        fields = (
            "id",
            "referral_code",
            "status",
            "email",
            "name",
            "points_awarded",
            "completed_at",
            "created_at",
        )
        read_only_fields = fields

    def get_email(self, obj):
        if obj.referee is not None:
            return obj.referee.email or obj.referee_email
        return obj.referee_email

    def get_name(self, obj):
        if obj.referee is None:
            return ""
        return obj.referee.get_full_name() or obj.referee.username


class InviteSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ClaimReferralSerializer(serializers.Serializer):
    referral_code = serializers.CharField(max_length=32)
