"""
Coupon validation.

Checks run in a fixed order and stop at the first failure:

    1. lookup            → CouponNotFound
    2. record sanity     → InvalidDiscountConfiguration
    3. active window     → CouponInactive
    4. minimum purchase  → CouponBelowMinimum
    5. usage limit       → CouponUsageExceeded

The order amount is the subtotal after offer discounts: offers apply
before the coupon.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import combinators as C

from pricing._log import get_logger
from pricing._types import (
    ZERO,
    Amount,
    Clock,
    Error,
    LazyCoroResult,
    NoError,
    Ok,
    Result,
    as_utc,
    clamp,
    money,
    to_cents,
    utc_now,
)
from pricing.coupons._source import CouponSource, remaining_from_counts
from pricing.domain import (
    AppliedCoupon,
    Coupon,
    CouponBelowMinimum,
    CouponError,
    CouponInactive,
    CouponNotFound,
    CouponUsageExceeded,
    DiscountType,
    InvalidDiscountConfiguration,
    normalize_code,
)

logger = get_logger("coupons")


def coupon_discount(coupon: Coupon, order_amount: Decimal) -> Decimal:
    """Discount for an eligible coupon, capped and clamped to [0, order_amount]."""
    match coupon.discount_type:
        case DiscountType.PERCENTAGE:
            raw = order_amount * coupon.discount_value / 100
            if coupon.max_discount is not None:
                raw = min(raw, coupon.max_discount)
        case DiscountType.FIXED:
            raw = coupon.discount_value
    return clamp(to_cents(raw), ZERO, max(order_amount, ZERO))


def check_coupon(
    code: str,
    coupon: Coupon | None,
    order_amount: Amount,
    now: datetime,
    remaining_uses: int | None = None,
) -> Result[AppliedCoupon, CouponError]:
    """
    Pure eligibility check.

    remaining_uses comes from the usage collaborator; when it is None the
    coupon's own counters decide.
    """
    if coupon is None:
        return Error(CouponNotFound(normalize_code(code)))

    problem = coupon.problem()
    if problem is not None:
        return Error(InvalidDiscountConfiguration(coupon.code, problem))

    moment = as_utc(now)
    if not coupon.is_active:
        return Error(CouponInactive(coupon.code, "disabled"))
    if moment < as_utc(coupon.start_date):
        return Error(CouponInactive(coupon.code, "not_started"))
    if moment > as_utc(coupon.end_date):
        return Error(CouponInactive(coupon.code, "expired"))

    amount = money(order_amount)
    if amount < coupon.min_purchase:
        return Error(CouponBelowMinimum(coupon.code, coupon.min_purchase, amount))

    left = remaining_uses if remaining_uses is not None else remaining_from_counts(coupon)
    if coupon.has_usage_limit and left is not None and left <= 0:
        return Error(CouponUsageExceeded(coupon.code, coupon.usage_limit or 0))

    return Ok(AppliedCoupon(coupon, coupon_discount(coupon, amount)))


class CouponValidator:
    """Async front for check_coupon over a CouponSource."""

    def __init__(self, source: CouponSource, clock: Clock = utc_now) -> None:
        self._source = source
        self._clock = clock

    @property
    def source(self) -> CouponSource:
        return self._source

    async def validate(
        self, code: str, order_amount: Amount
    ) -> Result[AppliedCoupon, CouponError]:
        coupon = await self._source.coupon_by_code(normalize_code(code))
        remaining = await self._source.remaining_uses(coupon) if coupon is not None else None
        result = check_coupon(code, coupon, order_amount, self._clock(), remaining)

        match result:
            case Ok(applied):
                logger.debug(
                    "coupon %s accepted: discount %s on %s",
                    applied.coupon.code, applied.discount_amount, order_amount,
                )
            case Error(e):
                logger.info("coupon %s rejected: %s", normalize_code(code), e.code)
                if isinstance(e, InvalidDiscountConfiguration):
                    logger.warning("%s", e.message)
        return result

    async def available(self, order_amount: Amount) -> list[AppliedCoupon]:
        """
        Coupons this order amount qualifies for, largest discount first.

        Remaining uses are looked up for all coupons in parallel.
        """
        now = self._clock()

        def with_remaining(coupon: Coupon) -> LazyCoroResult[tuple[Coupon, int | None], NoError]:
            async def run() -> Result[tuple[Coupon, int | None], NoError]:
                return Ok((coupon, await self._source.remaining_uses(coupon)))

            return LazyCoroResult(run)

        eligible: list[AppliedCoupon] = []
        match await C.traverse_par(await self._source.list_coupons(), with_remaining)():
            case Ok(counted):
                for coupon, remaining in counted:
                    match check_coupon(coupon.code, coupon, order_amount, now, remaining):
                        case Ok(applied):
                            eligible.append(applied)
                        case Error(_):
                            continue
            case Error(e):
                raise e
        eligible.sort(key=lambda a: (-a.discount_amount, a.coupon.code))
        return eligible


__all__ = ("coupon_discount", "check_coupon", "CouponValidator")
