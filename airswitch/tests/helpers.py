from decimal import Decimal
from unittest.mock import MagicMock

from django.contrib.auth import get_user_model

from airswitch.models import Wallet
from airswitch.utils.carrier import ProvisionedResource, UsageReport
from airswitch.utils.payments import ChargeStatus, ChargeVerification


def make_user(username="alice", **extra):
    return get_user_model().objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="pass-1234",
        **extra,
    )


def set_balance(user, usd="0.00", ngn="0.00"):
    Wallet.objects.filter(user=user).update(
        balance_usd=Decimal(usd), balance_ngn=Decimal(ngn)
    )


def make_resource(n=1):
    iccid = f"8901{n:012d}"
    return ProvisionedResource(
        external_id=f"sim-{n}",
        iccid=iccid,
        activation_code=f"LPA:1$rsp.telnyx.com${iccid}",
        smdp_address="rsp.telnyx.com",
        qr_url=f"https://qr.example.com/{iccid}.png",
        status="standby",
    )


def make_carrier(*resources):
    carrier = MagicMock()
    carrier.create_resource.side_effect = list(resources) or [make_resource()]
    carrier.activate.return_value = {}
    carrier.deactivate.return_value = {}
    carrier.get_usage.return_value = UsageReport(data_usage=120.5, data_limit=1024)
    return carrier


def succeeded(amount, currency="USD"):
    return ChargeVerification(ChargeStatus.SUCCEEDED, Decimal(amount), currency)


def make_gateway(verification=None):
    """A processor double and the factory the services take."""
    gateway = MagicMock()
    if verification is not None:
        gateway.verify_charge.return_value = verification
    return gateway, lambda method: gateway
