from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.conf import settings

from airswitch.exceptions import NotFound, ValidationError


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    region: str
    data: str
    prices: dict

    def price_in(self, currency: str) -> Decimal:
        if currency not in self.prices:
            raise ValidationError(f"Plan {self.id} is not sold in {currency}.")
        return self.prices[currency]

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "region": self.region,
            "data": self.data,
            "prices": {currency: str(price) for currency, price in self.prices.items()},
        }


def _build(raw: dict) -> Plan:
    return Plan(
        id=raw["id"],
        name=raw.get("name", raw["id"]),
        region=raw.get("region", ""),
        data=raw.get("data", ""),
        prices={
            currency.upper(): Decimal(str(price))
            for currency, price in raw.get("prices", {}).items()
        },
    )


def list_plans() -> list:
    return [_build(raw) for raw in getattr(settings, "ESIM_PLANS", [])]


def get_plan(plan_id: Optional[str]) -> Plan:
    for plan in list_plans():
        if plan.id == plan_id:
            return plan
    raise NotFound(f"Plan not found: {plan_id}")
