"""
Coupon Tracker - Source Package

Keeps track of gift cards, discount coupons and store credits organized
into ordinary and smart lists.

DESIGN PRINCIPLES:
1. Lists are views, records live in exactly one list-scope
2. Derived data (membership, totals, groups) is recomputed on every read
3. Expected failures never raise - they refuse and report
4. Every state change is auditable
5. Storage is swappable (local tier + mirrored remote replica)
"""

__version__ = "1.0.0"
__author__ = "Coupon Tracker Team"
