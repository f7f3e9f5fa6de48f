"""Input validation package."""

from coupon_tracker.validation.validator import CouponValidator

__all__ = ["CouponValidator"]
