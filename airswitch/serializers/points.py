from rest_framework import serializers

from airswitch.models import Currency, PointsTransaction, UserPoints


class UserPointsSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserPoints
        fields = ("total_points", "available_points", "redeemed_points", "updated_at")
        read_only_fields = fields


class PointsTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = PointsTransaction
        fields = ("id", "amount", "points_type", "description", "created_at")
        read_only_fields = fields


class RedeemPointsSerializer(serializers.Serializer):
    points = serializers.IntegerField(min_value=1)
    currency = serializers.ChoiceField(choices=Currency.choices, default=Currency.USD)


class BonusPointsSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
    points = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
