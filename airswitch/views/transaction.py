from rest_framework.generics import ListAPIView, RetrieveAPIView

from airswitch.models import Transaction
from airswitch.serializers import TransactionSerializer


class TransactionListView(ListAPIView):
    """
    GET /wallet/transactions/ — The caller's transactions, newest first.

    Query params:
        - status: Filter by transaction status (PENDING, SUCCESS, FAILED)
        - type: Filter by transaction type (CREDIT, DEBIT)
        - currency: Filter by currency (USD, NGN)
    """

    serializer_class = TransactionSerializer

    def get_queryset(self):
        queryset = Transaction.objects.filter(user=self.request.user)

        tx_status = self.request.query_params.get("status")
        if tx_status:
            queryset = queryset.filter(status=tx_status.upper())

        tx_type = self.request.query_params.get("type")
        if tx_type:
            queryset = queryset.filter(transaction_type=tx_type.upper())

        currency = self.request.query_params.get("currency")
        if currency:
            queryset = queryset.filter(currency=currency.upper())

        return queryset


class TransactionDetailView(RetrieveAPIView):
    """GET /wallet/transactions/<id>/ — A single transaction owned by the caller."""

    serializer_class = TransactionSerializer
    lookup_field = "id"

    def get_queryset(self):
        return Transaction.objects.filter(user=self.request.user)
