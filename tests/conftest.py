"""Shared fixtures: in-memory sources wired to a fixed clock."""

import pytest

from pricing.catalog import InMemoryOfferSource, OfferCatalog
from pricing.coupons import CouponValidator, InMemoryCouponBook
from tests.factories import fixed_clock


@pytest.fixture
def offer_source() -> InMemoryOfferSource:
    return InMemoryOfferSource()


@pytest.fixture
def coupon_book() -> InMemoryCouponBook:
    return InMemoryCouponBook()


@pytest.fixture
def catalog(offer_source: InMemoryOfferSource) -> OfferCatalog:
    return OfferCatalog(offer_source, clock=fixed_clock, cache_ttl=None)


@pytest.fixture
def validator(coupon_book: InMemoryCouponBook) -> CouponValidator:
    return CouponValidator(coupon_book, clock=fixed_clock)
