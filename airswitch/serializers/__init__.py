from airswitch.serializers.wallet import (
    FundWalletSerializer,
    TopUpSerializer,
    WalletSerializer,
)
from airswitch.serializers.transaction import TransactionSerializer
from airswitch.serializers.points import (
    BonusPointsSerializer,
    PointsTransactionSerializer,
    RedeemPointsSerializer,
    UserPointsSerializer,
)
from airswitch.serializers.referral import (
    ClaimReferralSerializer,
    InviteSerializer,
    ReferralHistorySerializer,
    ReferralSerializer,
)
from airswitch.serializers.esim import (
    EsimOrderSerializer,
    EsimPaymentSerializer,
    ESimSerializer,
    PurchaseSerializer,
)
from airswitch.serializers.telephony import (
    MessageSerializer,
    NumberSearchSerializer,
    PhoneNumberSerializer,
    PurchaseNumberSerializer,
    SendSmsSerializer,
)

__all__ = [
    "WalletSerializer",
    "FundWalletSerializer",
    "TopUpSerializer",
    "TransactionSerializer",
    "UserPointsSerializer",
    "PointsTransactionSerializer",
    "RedeemPointsSerializer",
    "BonusPointsSerializer",
    "ReferralSerializer",
    "ReferralHistorySerializer",
    "InviteSerializer",
    "ClaimReferralSerializer",
    "ESimSerializer",
    "EsimOrderSerializer",
    "PurchaseSerializer",
    "EsimPaymentSerializer",
    "PhoneNumberSerializer",
    "MessageSerializer",
    "NumberSearchSerializer",
    "PurchaseNumberSerializer",
    "SendSmsSerializer",
]
