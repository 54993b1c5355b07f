from rest_framework import serializers

from airswitch.models import Message, PhoneNumber


class PhoneNumberSerializer(serializers.ModelSerializer):
    class Meta:
        model = PhoneNumber
        fields = ("id", "phone_number", "status", "created_at")
        read_only_fields = fields


class MessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Message
        fields = (
            "id",
            "from_number",
            "to_number",
            "body",
            "direction",
            "status",
            "created_at",
        )
        read_only_fields = fields


class NumberSearchSerializer(serializers.Serializer):
    country_code = serializers.CharField(max_length=2, required=False, default="US")
    limit = serializers.IntegerField(required=False, default=10, min_value=1, max_value=50)


class PurchaseNumberSerializer(serializers.Serializer):
    phone_number = serializers.CharField(max_length=32)


class SendSmsSerializer(serializers.Serializer):
    to = serializers.CharField(max_length=32)
    text = serializers.CharField(max_length=1600)

    def get_fields(self):
        fields = super().get_fields()
        # "from" is a keyword, so the field is declared by name.
        fields["from"] = serializers.CharField(max_length=32)
        return fields
