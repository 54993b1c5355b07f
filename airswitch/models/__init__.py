from airswitch.models.base import BaseModel, Currency, PaymentMethod
from airswitch.models.wallet import Wallet
from airswitch.models.transaction import Transaction
from airswitch.models.points import PointsTransaction, UserPoints
from airswitch.models.referral import Referral
from airswitch.models.esim import ESim, EsimOrder
from airswitch.models.compensation import CompensationTask
from airswitch.models.telephony import Call, Message, PhoneNumber

__all__ = [
    "BaseModel",
    "Currency",
    "PaymentMethod",
    "Wallet",
    "Transaction",
    "UserPoints",
    "PointsTransaction",
    "Referral",
    "ESim",
    "EsimOrder",
    "CompensationTask",
    "PhoneNumber",
    "Message",
    "Call",
]
