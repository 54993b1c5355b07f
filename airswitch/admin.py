from django.contrib import admin

from airswitch.models import (
    Call,
    CompensationTask,
    ESim,
    EsimOrder,
    Message,
    PhoneNumber,
    PointsTransaction,
    Referral,
    Transaction,
    UserPoints,
    Wallet,
)


class ReadOnlyAdminMixin:
    """
    Mixin that makes an admin model completely read-only.
    Ledger rows change only through the services, never by hand.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Wallet)
class WalletAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "uuid", "user", "balance_usd", "balance_ngn", "updated_at")
    search_fields = ("uuid", "user__email", "user__username")


@admin.register(Transaction)
class TransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "user",
        "transaction_type",
        "amount",
        "currency",
        "status",
        "provider",
        "reference",
        "created_at",
    )
    list_filter = ("transaction_type", "status", "currency", "provider")
    search_fields = ("reference", "user__email")


@admin.register(UserPoints)
class UserPointsAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "user", "total_points", "available_points", "redeemed_points")
    search_fields = ("user__email", "user__username")


@admin.register(PointsTransaction)
class PointsTransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "user", "points_type", "amount", "description", "created_at")
    list_filter = ("points_type",)
    search_fields = ("user__email",)


@admin.register(Referral)
class ReferralAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "referral_code",
        "referrer",
        "referee",
        "referee_email",
        "status",
        "points_awarded",
        "completed_at",
    )
    list_filter = ("status",)
    search_fields = ("referral_code", "referee_email", "referrer__email")


@admin.register(ESim)
class ESimAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "user", "iccid", "external_id", "plan_id", "status", "created_at")
    list_filter = ("status", "plan_id")
    search_fields = ("iccid", "external_id", "user__email")


@admin.register(EsimOrder)
class EsimOrderAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "user",
        "plan_id",
        "payment_method",
        "payment_reference",
        "amount",
        "currency",
        "points_used",
        "status",
        "created_at",
    )
    list_filter = ("status", "payment_method")
    search_fields = ("payment_reference", "external_order_id", "user__email")


@admin.register(CompensationTask)
class CompensationTaskAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "action",
        "external_id",
        "payment_reference",
        "status",
        "attempts",
        "completed_at",
        "created_at",
    )
    list_filter = ("status", "action")
    search_fields = ("external_id", "payment_reference")


@admin.register(PhoneNumber)
class PhoneNumberAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "user", "phone_number", "external_id", "status", "created_at")
    search_fields = ("phone_number", "external_id", "user__email")


@admin.register(Message)
class MessageAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "user", "external_id", "from_number", "to_number", "direction", "status")
    search_fields = ("external_id", "from_number", "to_number")


@admin.register(Call)
class CallAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "external_id", "from_number", "to_number", "status")
    search_fields = ("external_id",)
