from airswitch.services.compensation import CompensationService
from airswitch.services.points import PointsService
from airswitch.services.provisioning import (
    ProvisioningOrchestrator,
    PurchaseRequest,
    PurchaseResult,
)
from airswitch.services.referral import ReferralService
from airswitch.services.telephony import TelephonyService
from airswitch.services.topup import TopUpService
from airswitch.services.wallet import WalletService
from airswitch.services.webhooks import WebhookService

__all__ = [
    "CompensationService",
    "PointsService",
    "ProvisioningOrchestrator",
    "PurchaseRequest",
    "PurchaseResult",
    "ReferralService",
    "TelephonyService",
    "TopUpService",
    "WalletService",
    "WebhookService",
]
