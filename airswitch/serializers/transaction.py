from rest_framework import serializers

from airswitch.models import Transaction


class TransactionSerializer(serializers.ModelSerializer):
    """Read-only serializer for transaction responses."""

    class Meta:
        model = Transaction
        fields = (
            "id",
            "amount",
            "currency",
            "transaction_type",
            "status",
            "reference",
            "provider",
            "description",
            "metadata",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields
