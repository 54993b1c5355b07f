from django.urls import path

from airswitch.views import (
    ActivateEsimView,
    BonusPointsView,
    ClaimReferralView,
    ConfirmTopUpView,
    CreateEsimPaymentView,
    CreateTopUpView,
    DeactivateEsimView,
    ESimListView,
    EsimUsageView,
    FundWalletView,
    InviteView,
    MessageListView,
    NumberSearchView,
    PaystackWebhookView,
    PhoneNumberListView,
    PlanListView,
    PointsBreakdownView,
    PointsHistoryView,
    PointsView,
    PurchaseEsimView,
    PurchaseNumberView,
    RedeemPointsView,
    ReferralCodeView,
    ReferralHistoryView,
    ReferralProgressView,
    RetrieveWalletView,
    StripeWebhookView,
    TelnyxWebhookView,
    TransactionDetailView,
    TransactionListView,
)

urlpatterns = [
    # Wallet
    path("wallet/", RetrieveWalletView.as_view(), name="wallet-detail"),
    path("wallet/fund/", FundWalletView.as_view(), name="wallet-fund"),
    path("wallet/topups/", CreateTopUpView.as_view(), name="wallet-topup"),
    path(
        "wallet/topups/<str:reference>/confirm/",
        ConfirmTopUpView.as_view(),
        name="wallet-topup-confirm",
    ),
    path(
        "wallet/transactions/",
        TransactionListView.as_view(),
        name="wallet-transactions",
    ),
    path(
        "wallet/transactions/<int:id>/",
        TransactionDetailView.as_view(),
        name="transaction-detail",
    ),
    # Points
    path("points/", PointsView.as_view(), name="points-detail"),
    path("points/history/", PointsHistoryView.as_view(), name="points-history"),
    path("points/breakdown/", PointsBreakdownView.as_view(), name="points-breakdown"),
    path("points/redeem/", RedeemPointsView.as_view(), name="points-redeem"),
    path("points/bonus/", BonusPointsView.as_view(), name="points-bonus"),
    # Referrals
    path("referrals/code/", ReferralCodeView.as_view(), name="referral-code"),
    path("referrals/invite/", InviteView.as_view(), name="referral-invite"),
    path("referrals/progress/", ReferralProgressView.as_view(), name="referral-progress"),
    path("referrals/history/", ReferralHistoryView.as_view(), name="referral-history"),
    path("referrals/claim/", ClaimReferralView.as_view(), name="referral-claim"),
    # eSIMs
    path("esims/plans/", PlanListView.as_view(), name="esim-plans"),
    path("esims/payments/", CreateEsimPaymentView.as_view(), name="esim-payment"),
    path("esims/purchase/", PurchaseEsimView.as_view(), name="esim-purchase"),
    path("esims/", ESimListView.as_view(), name="esim-list"),
    path("esims/<int:id>/activate/", ActivateEsimView.as_view(), name="esim-activate"),
    path("esims/<int:id>/deactivate/", DeactivateEsimView.as_view(), name="esim-deactivate"),
    path("esims/<int:id>/usage/", EsimUsageView.as_view(), name="esim-usage"),
    # Numbers and messaging
    path("numbers/search/", NumberSearchView.as_view(), name="number-search"),
    path("numbers/purchase/", PurchaseNumberView.as_view(), name="number-purchase"),
    path("numbers/", PhoneNumberListView.as_view(), name="number-list"),
    path("messages/", MessageListView.as_view(), name="message-list"),
    # Provider callbacks
    path("webhooks/stripe/", StripeWebhookView.as_view(), name="webhook-stripe"),
    path("webhooks/paystack/", PaystackWebhookView.as_view(), name="webhook-paystack"),
    path("webhooks/telnyx/", TelnyxWebhookView.as_view(), name="webhook-telnyx"),
]
