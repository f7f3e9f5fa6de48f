"""Currency display lookup."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from coupon_tracker.models.coupon import CurrencyInfo


DEFAULT_CURRENCIES = [
    CurrencyInfo(code="USD", symbol="$", name="US Dollar"),
    CurrencyInfo(code="EUR", symbol="€", name="Euro"),
    CurrencyInfo(code="GBP", symbol="£", name="British Pound"),
    CurrencyInfo(code="JPY", symbol="¥", name="Japanese Yen"),
    CurrencyInfo(code="CAD", symbol="C$", name="Canadian Dollar"),
    CurrencyInfo(code="AUD", symbol="A$", name="Australian Dollar"),
    CurrencyInfo(code="CHF", symbol="CHF", name="Swiss Franc"),
    CurrencyInfo(code="CNY", symbol="¥", name="Chinese Yuan"),
    CurrencyInfo(code="INR", symbol="₹", name="Indian Rupee"),
    CurrencyInfo(code="ILS", symbol="₪", name="Israeli Shekel"),
]


class CurrencyLookup:
    """
    Maps currency codes to display symbols.

    Codes are not validated: an unknown code is displayed as itself.
    """

    def __init__(self, currencies: Optional[list[CurrencyInfo]] = None):
        self._currencies = list(currencies or DEFAULT_CURRENCIES)
        self._by_code = {c.code.upper(): c for c in self._currencies}

    @property
    def currencies(self) -> list[CurrencyInfo]:
        return list(self._currencies)

    def get(self, code: str) -> Optional[CurrencyInfo]:
        return self._by_code.get(code.strip().upper())

    def symbol_for(self, code: str) -> str:
        info = self.get(code)
        return info.symbol if info else code

    def format_amount(self, amount: Optional[Decimal], code: str) -> str:
        """Render e.g. '$10.00'. A missing amount renders as zero."""
        value = (amount or Decimal("0")).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return f"{self.symbol_for(code)}{value}"
