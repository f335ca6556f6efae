"""
Coupons — code-activated discounts with eligibility rules.

    from pricing import coupons

    validator = coupons.CouponValidator(book)
    result = await validator.validate("save10", order_amount)
"""

from pricing.coupons._source import (
    CouponSource,
    CouponLedger,
    UsageReservation,
    InMemoryCouponBook,
    remaining_from_counts,
)
from pricing.coupons._validate import coupon_discount, check_coupon, CouponValidator

__all__ = (
    "CouponSource",
    "CouponLedger",
    "UsageReservation",
    "InMemoryCouponBook",
    "remaining_from_counts",
    "coupon_discount",
    "check_coupon",
    "CouponValidator",
)
