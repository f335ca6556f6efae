"""
Tests for coupon eligibility, discount math and the in-memory coupon book.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from decimal import Decimal

import pytest
from kungfu import Error, Ok

from pricing.coupons import (
    CouponValidator,
    InMemoryCouponBook,
    check_coupon,
    coupon_discount,
    remaining_from_counts,
)
from pricing.domain import (
    CouponBelowMinimum,
    CouponInactive,
    CouponNotFound,
    CouponUsageExceeded,
    InvalidDiscountConfiguration,
)
from tests.factories import FIXED, NOW, PCT, coupon, fixed_clock


class SlowUsageBook(InMemoryCouponBook):
    """Tracks how many remaining_uses lookups overlap."""

    def __init__(self) -> None:
        super().__init__()
        self.in_flight = 0
        self.max_in_flight = 0

    async def remaining_uses(self, coupon):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await super().remaining_uses(coupon)
        finally:
            self.in_flight -= 1


def _error(result):
    match result:
        case Error(e):
            return e
        case Ok(v):
            pytest.fail(f"expected rejection, got {v}")


def _applied(result):
    match result:
        case Ok(v):
            return v
        case Error(e):
            pytest.fail(f"expected acceptance, got {e!r}")


SAVE10 = coupon("SAVE10", PCT, 10, min_purchase=100, max_discount=50)


class TestCouponDiscount:
    def test_percentage_capped_by_max_discount(self):
        assert coupon_discount(SAVE10, Decimal("800")) == Decimal("50.00")

    def test_percentage_below_cap(self):
        assert coupon_discount(SAVE10, Decimal("300")) == Decimal("30.00")

    def test_fixed_clamped_to_order_amount(self):
        flat = coupon("FLAT500", FIXED, 500)
        assert coupon_discount(flat, Decimal("120")) == Decimal("120.00")

    def test_rounded_to_cents(self):
        c = coupon("ODD", PCT, 7)
        assert coupon_discount(c, Decimal("10.05")) == Decimal("0.70")


class TestCheckCoupon:
    def test_save10_on_800(self):
        applied = _applied(check_coupon("SAVE10", SAVE10, 800, NOW))
        assert applied.discount_amount == Decimal("50.00")
        assert applied.coupon is SAVE10

    def test_save10_below_minimum(self):
        err = _error(check_coupon("SAVE10", SAVE10, 80, NOW))
        assert isinstance(err, CouponBelowMinimum)
        assert err.code == "COUPON_BELOW_MINIMUM"
        assert err.min_purchase == Decimal("100")
        assert "100.00" in err.message

    def test_minimum_is_inclusive(self):
        assert _applied(check_coupon("SAVE10", SAVE10, 100, NOW)).discount_amount == Decimal("10.00")

    def test_not_found(self):
        err = _error(check_coupon(" nope ", None, 800, NOW))
        assert isinstance(err, CouponNotFound)
        assert err.code_entered == "NOPE"

    @pytest.mark.parametrize(
        "kwargs, reason",
        [
            ({"is_active": False}, "disabled"),
            ({"start": NOW + timedelta(seconds=1)}, "not_started"),
            ({"end": NOW - timedelta(seconds=1)}, "expired"),
        ],
    )
    def test_inactive(self, kwargs, reason):
        err = _error(check_coupon("X1", coupon("X1", **kwargs), 800, NOW))
        assert isinstance(err, CouponInactive)
        assert err.reason == reason

    def test_window_bounds_are_inclusive(self):
        starts_now = coupon("EDGE", start=NOW, end=NOW + timedelta(days=1))
        ends_now = coupon("EDGE", start=NOW - timedelta(days=1), end=NOW)
        _applied(check_coupon("EDGE", starts_now, 800, NOW))
        _applied(check_coupon("EDGE", ends_now, 800, NOW))

    def test_inactive_checked_before_minimum(self):
        c = coupon("LATE", min_purchase=1000, is_active=False)
        assert isinstance(_error(check_coupon("LATE", c, 5, NOW)), CouponInactive)

    def test_usage_exceeded_from_counts(self):
        c = coupon("ONCE", usage_limit=1, used_count=1)
        err = _error(check_coupon("ONCE", c, 800, NOW))
        assert isinstance(err, CouponUsageExceeded)
        assert err.usage_limit == 1

    def test_usage_exceeded_from_remaining_uses(self):
        c = coupon("TWICE", usage_limit=2, used_count=0)
        assert isinstance(_error(check_coupon("TWICE", c, 800, NOW, remaining_uses=0)), CouponUsageExceeded)

    def test_zero_usage_limit_is_unlimited(self):
        c = coupon("FREE4ALL", usage_limit=0, used_count=10_000)
        _applied(check_coupon("FREE4ALL", c, 800, NOW))

    def test_minimum_checked_before_usage(self):
        c = coupon("ONCE", min_purchase=500, usage_limit=1, used_count=1)
        assert isinstance(_error(check_coupon("ONCE", c, 100, NOW)), CouponBelowMinimum)

    @pytest.mark.parametrize(
        "bad",
        [
            coupon("PCT150", PCT, 150),
            coupon("NEGFIX", FIXED, -5),
            coupon("lower", PCT, 10),
            coupon("BACKWARDS", start=NOW, end=NOW - timedelta(days=1)),
        ],
    )
    def test_misconfigured_coupon(self, bad):
        err = _error(check_coupon(bad.code, bad, 800, NOW))
        assert isinstance(err, InvalidDiscountConfiguration)
        assert err.record_id == bad.code

    def test_discount_never_exceeds_order_amount(self):
        flat = coupon("BIG", FIXED, 1000)
        assert _applied(check_coupon("BIG", flat, "250.50", NOW)).discount_amount == Decimal("250.50")


class TestCouponValidator:
    @pytest.mark.asyncio
    async def test_lookup_is_case_insensitive(self, coupon_book, validator):
        coupon_book.put(SAVE10)
        applied = _applied(await validator.validate("  save10 ", Decimal("800")))
        assert applied.discount_amount == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_unknown_code(self, validator):
        assert isinstance(_error(await validator.validate("GHOST", 100)), CouponNotFound)

    @pytest.mark.asyncio
    async def test_rejection_logged(self, coupon_book, validator, caplog):
        coupon_book.put(SAVE10)
        with caplog.at_level(logging.INFO, logger="pricing"):
            await validator.validate("SAVE10", 10)
        assert "COUPON_BELOW_MINIMUM" in caplog.text

    @pytest.mark.asyncio
    async def test_uses_live_usage_count(self, coupon_book, validator):
        stale = coupon("ONCE", usage_limit=1, used_count=0)
        coupon_book.put(stale)
        await coupon_book.reserve_usage("ONCE")
        assert isinstance(_error(await validator.validate("ONCE", 800)), CouponUsageExceeded)

    @pytest.mark.asyncio
    async def test_available_sorted_by_discount(self, coupon_book, validator):
        coupon_book.put(coupon("SAVE5", PCT, 5))
        coupon_book.put(coupon("FLAT100", FIXED, 100))
        coupon_book.put(coupon("FLAT20", FIXED, 20))
        coupon_book.put(coupon("BIGSPEND", FIXED, 300, min_purchase=5000))
        coupon_book.put(coupon("GONE", FIXED, 400, is_active=False))

        available = await validator.available(Decimal("1000"))
        assert [a.coupon.code for a in available] == ["FLAT100", "SAVE5", "FLAT20"]
        assert [a.discount_amount for a in available] == [
            Decimal("100.00"),
            Decimal("50.00"),
            Decimal("20.00"),
        ]


    @pytest.mark.asyncio
    async def test_available_looks_up_usage_in_parallel(self):
        book = SlowUsageBook()
        book.put(coupon("FLAT30", FIXED, 30))
        book.put(coupon("FLAT10", FIXED, 10, usage_limit=5, used_count=1))
        book.put(coupon("FLAT50", FIXED, 50, usage_limit=2, used_count=2))
        book.put(coupon("FLAT20", FIXED, 20, usage_limit=3))
        validator = CouponValidator(book, clock=fixed_clock)

        available = await validator.available(Decimal("500"))

        assert book.max_in_flight > 1
        assert [a.coupon.code for a in available] == ["FLAT30", "FLAT20", "FLAT10"]


class TestRemainingFromCounts:
    @pytest.mark.parametrize(
        ("usage_limit", "used_count", "expected"),
        [
            (None, 0, None),
            (0, 7, None),
            (3, 1, 2),
            (3, 3, 0),
            (3, 5, 0),
        ],
    )
    def test_remaining(self, usage_limit, used_count, expected):
        assert remaining_from_counts(coupon(usage_limit=usage_limit, used_count=used_count)) == expected


class TestCouponErrorsAsExceptions:
    @pytest.mark.asyncio
    async def test_raised_through_async_context_manager(self):
        exited = []

        @asynccontextmanager
        async def transaction():
            try:
                yield
            finally:
                exited.append(True)

        with pytest.raises(CouponUsageExceeded) as caught:
            async with transaction():
                raise CouponUsageExceeded("ONCE", 1)

        assert exited == [True]
        assert caught.value.coupon_code == "ONCE"
        assert caught.value.__traceback__ is not None

    @pytest.mark.asyncio
    async def test_reserve_failure_keeps_its_type_through_context_manager(self):
        book = InMemoryCouponBook()
        book.put(coupon("ONCE", usage_limit=1, used_count=1))

        @asynccontextmanager
        async def transaction():
            yield book

        with pytest.raises(CouponUsageExceeded):
            async with transaction() as ledger:
                await ledger.reserve_usage("ONCE")

class TestInMemoryCouponBook:
    @pytest.mark.asyncio
    async def test_reserve_until_limit(self):
        book = InMemoryCouponBook()
        book.put(coupon("TWICE", usage_limit=2))

        first = await book.reserve_usage("twice")
        second = await book.reserve_usage("TWICE")
        assert first.reservation_id != second.reservation_id
        with pytest.raises(CouponUsageExceeded):
            await book.reserve_usage("TWICE")

        current = await book.coupon_by_code("TWICE")
        assert current is not None
        assert current.used_count == 2

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self):
        book = InMemoryCouponBook()
        book.put(coupon("ONCE", usage_limit=1))
        reservation = await book.reserve_usage("ONCE")

        await book.release_usage(reservation)
        await book.release_usage(reservation)

        current = await book.coupon_by_code("ONCE")
        assert current is not None
        assert current.used_count == 0
        assert await book.remaining_uses(current) == 1

    @pytest.mark.asyncio
    async def test_reserve_unknown(self):
        with pytest.raises(CouponNotFound):
            await InMemoryCouponBook().reserve_usage("NOPE")

    @pytest.mark.asyncio
    async def test_unlimited_remaining_is_none(self):
        book = InMemoryCouponBook()
        c = coupon("ANY")
        book.put(c)
        assert await book.remaining_uses(c) is None
