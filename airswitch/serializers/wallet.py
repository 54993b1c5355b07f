from rest_framework import serializers

from airswitch.models import Currency, PaymentMethod, Wallet


class WalletSerializer(serializers.ModelSerializer):
    class Meta:
        model = Wallet
        fields = ("uuid", "balance_usd", "balance_ngn", "created_at", "updated_at")
        read_only_fields = fields


class AmountSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=18, decimal_places=2)
    currency = serializers.ChoiceField(choices=Currency.choices, default=Currency.USD)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be positive.")
        return value


class FundWalletSerializer(AmountSerializer):
    """Operator credit. The reference makes a repeated submission a no-op."""

    user_id = serializers.IntegerField(min_value=1)
    reference = serializers.CharField(max_length=128)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)


class TopUpSerializer(AmountSerializer):
    method = serializers.ChoiceField(
        choices=[PaymentMethod.STRIPE, PaymentMethod.PAYSTACK]
    )
    email = serializers.EmailField(required=False)
