from rest_framework import serializers

from airswitch.models import Currency, ESim, EsimOrder, PaymentMethod


class ESimSerializer(serializers.ModelSerializer):
    class Meta:
        model = ESim
        fields = (
            "id",
            "iccid",
            "status",
            "plan_id",
            "region",
            "qr_code_url",
            "activation_code",
            "smdp_address",
            "created_at",
        )
        read_only_fields = fields


class EsimOrderSerializer(serializers.ModelSerializer):
    esim = ESimSerializer(read_only=True)

    class Meta:
        model = EsimOrder
        fields = (
            "id",
            "plan_id",
            "payment_reference",
            "payment_method",
            "status",
            "amount",
            "currency",
            "points_used",
            "is_gift",
            "gift_email",
            "esim",
            "created_at",
        )
        read_only_fields = fields


class PurchaseSerializer(serializers.Serializer):
    """
    Validates purchase requests.

    payment_reference is the processor reference for stripe/paystack; wallet
    purchases use the Idempotency-Key header instead.
    """

    plan_id = serializers.CharField(max_length=64)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    payment_reference = serializers.CharField(max_length=128, required=False)
    currency = serializers.ChoiceField(choices=Currency.choices, default=Currency.USD)
    use_points = serializers.BooleanField(default=False)
    gift_email = serializers.EmailField(required=False)

    def validate(self, attrs):
        if attrs["payment_method"] != PaymentMethod.WALLET and not attrs.get(
            "payment_reference"
        ):
            raise serializers.ValidationError(
                {"payment_reference": "Required for card and bank payments."}
            )
        return attrs


class EsimPaymentSerializer(serializers.Serializer):
    plan_id = serializers.CharField(max_length=64)
    method = serializers.ChoiceField(
        choices=[PaymentMethod.STRIPE, PaymentMethod.PAYSTACK]
    )
    currency = serializers.ChoiceField(choices=Currency.choices, default=Currency.USD)
    email = serializers.EmailField(required=False)
    gift_email = serializers.EmailField(required=False)
