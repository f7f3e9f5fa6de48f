"""
Aggregation Engine

DESIGN DECISION: Membership is computed on every read, never stored.
An ordinary list's members are the coupons stored under its id. A smart
list's members are found by scanning every registered list, so a coupon
edited in one place shows up correctly everywhere without any index to
keep in sync.

GUARANTEES:
- A coupon appears at most once in any membership (first list wins)
- Totals only add up balances that exist (None counts as zero)
- Totals never mix currencies
"""

from collections import OrderedDict
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional
from uuid import UUID

from coupon_tracker.models.coupon import Coupon, CurrencyTotal
from coupon_tracker.models.lists import CouponList
from coupon_tracker.queries.conditions import matches

if TYPE_CHECKING:
    from coupon_tracker.services.lists import ListRegistry
    from coupon_tracker.services.records import RecordStore


class AggregationEngine:
    """
    Read-side queries across lists: membership, totals, counts and lookups.
    """

    def __init__(self, registry: "ListRegistry", records: "RecordStore"):
        self._registry = registry
        self._records = records

    def members_of(self, coupon_list: CouponList) -> list[Coupon]:
        """
        Coupons that belong to a list, in display order.

        Recently Deleted yields the deleted coupons, newest first.
        """
        if coupon_list.is_recently_deleted or not coupon_list.is_smart:
            return self._records.load(coupon_list.id)

        return [
            coupon
            for coupon, source_name in self._stored_with_source()
            if matches(coupon, source_name, coupon_list)
        ]

    def count_of(self, coupon_list: CouponList) -> int:
        if coupon_list.is_recently_deleted:
            return len(self._records.deleted())
        return len(self.members_of(coupon_list))

    def totals_by_currency(self, coupons: Iterable[Coupon]) -> list[CurrencyTotal]:
        """Remaining balance per currency, sorted by currency code."""
        totals: dict[str, Decimal] = {}
        for coupon in coupons:
            code = coupon.currency_code
            totals[code] = totals.get(code, Decimal("0")) + (coupon.remaining_value or Decimal("0"))
        return [
            CurrencyTotal(currency_code=code, total=totals[code])
            for code in sorted(totals)
        ]

    def locate(self, coupon_id: UUID) -> Optional[UUID]:
        """The list that physically stores a coupon, if any."""
        for coupon_list in self._registry.list_all():
            if any(c.id == coupon_id for c in self._records.load(coupon_list.id)):
                return coupon_list.id
        return None

    def smart_lists_containing(self, coupon: Coupon, source_list_name: str) -> list[CouponList]:
        """Every smart list a coupon shows up in. Smart lists may overlap."""
        return [
            coupon_list
            for coupon_list in self._registry.list_all()
            if coupon_list.is_smart and matches(coupon, source_list_name, coupon_list)
        ]

    def _stored_with_source(self) -> list[tuple[Coupon, str]]:
        """Every stored coupon with the name of the list holding it."""
        seen: "OrderedDict[UUID, tuple[Coupon, str]]" = OrderedDict()
        for coupon_list in self._registry.list_all():
            for coupon in self._records.load(coupon_list.id):
                if coupon.id not in seen:
                    seen[coupon.id] = (coupon, coupon_list.name)
        return list(seen.values())
