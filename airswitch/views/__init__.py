from airswitch.views.wallet import FundWalletView, RetrieveWalletView
from airswitch.views.topup import ConfirmTopUpView, CreateTopUpView
from airswitch.views.transaction import TransactionDetailView, TransactionListView
from airswitch.views.points import (
    BonusPointsView,
    PointsBreakdownView,
    PointsHistoryView,
    PointsView,
    RedeemPointsView,
)
from airswitch.views.referral import (
    ClaimReferralView,
    InviteView,
    ReferralCodeView,
    ReferralHistoryView,
    ReferralProgressView,
)
from airswitch.views.esim import (
    ActivateEsimView,
    CreateEsimPaymentView,
    DeactivateEsimView,
    ESimListView,
    EsimUsageView,
    PlanListView,
    PurchaseEsimView,
)
from airswitch.views.telephony import (
    MessageListView,
    NumberSearchView,
    PhoneNumberListView,
    PurchaseNumberView,
)
from airswitch.views.webhooks import (
    PaystackWebhookView,
    StripeWebhookView,
    TelnyxWebhookView,
)

__all__ = [
    "RetrieveWalletView",
    "FundWalletView",
    "CreateTopUpView",
    "ConfirmTopUpView",
    "TransactionListView",
    "TransactionDetailView",
    "PointsView",
    "PointsHistoryView",
    "PointsBreakdownView",
    "RedeemPointsView",
    "BonusPointsView",
    "ReferralCodeView",
    "InviteView",
    "ReferralProgressView",
    "ReferralHistoryView",
    "ClaimReferralView",
    "PlanListView",
    "CreateEsimPaymentView",
    "PurchaseEsimView",
    "ESimListView",
    "ActivateEsimView",
    "DeactivateEsimView",
    "EsimUsageView",
    "NumberSearchView",
    "PhoneNumberListView",
    "PurchaseNumberView",
    "MessageListView",
    "StripeWebhookView",
    "PaystackWebhookView",
    "TelnyxWebhookView",
]
