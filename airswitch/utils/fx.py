from decimal import Decimal
from typing import Optional, Protocol

from django.conf import settings


class RateProvider(Protocol):
    def get_rate(self, base: str, quote: str) -> Decimal:
        ...


class FixedRateProvider:
    """
    Conversion rates from the FX_RATES setting, e.g. {"USD": {"NGN": "1500"}}.

    The inverse of a configured pair is derived; unknown pairs raise ValueError.
    """

    def __init__(self, rates: Optional[dict] = None):
        configured = rates if rates is not None else getattr(settings, "FX_RATES", {})
        self.rates = {
            base: {quote: Decimal(str(rate)) for quote, rate in quotes.items()}
            for base, quotes in configured.items()
        }

    def get_rate(self, base: str, quote: str) -> Decimal:
        if base == quote:
            return Decimal("1")
        if quote in self.rates.get(base, {}):
            return self.rates[base][quote]
        if base in self.rates.get(quote, {}):
            return Decimal("1") / self.rates[quote][base]
        raise ValueError(f"No FX rate for {base}->{quote}")


def get_rate_provider() -> RateProvider:
    return FixedRateProvider()
