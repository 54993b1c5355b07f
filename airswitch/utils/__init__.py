from airswitch.utils.carrier import CarrierClient, get_carrier_client
from airswitch.utils.fx import FixedRateProvider, get_rate_provider
from airswitch.utils.payments import get_payment_gateway
from airswitch.utils.plans import get_plan, list_plans
from airswitch.utils.token import TokenGrant, TokenManager

__all__ = [
    "CarrierClient",
    "get_carrier_client",
    "FixedRateProvider",
    "get_rate_provider",
    "get_payment_gateway",
    "get_plan",
    "list_plans",
    "TokenGrant",
    "TokenManager",
]
