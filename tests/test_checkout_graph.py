"""
Tests for the async pricing pipeline (BreakdownNode.execute).
"""

from decimal import Decimal

import pytest
from kungfu import Error, Ok

from pricing.catalog import InMemoryOfferSource, OfferCatalog
from pricing import graph as G
from pricing.checkout import BreakdownNode, CheckoutRequest, OfferSnapshotNode
from pricing.config import PricingRules
from pricing.coupons import CouponValidator, InMemoryCouponBook
from pricing.domain import CouponBelowMinimum, CouponNotFound
from tests.factories import FIXED, PCT, category_offer, coupon, fixed_clock, line, product_offer


class UnreachableCoupons(InMemoryCouponBook):
    async def coupon_by_code(self, code):
        raise ConnectionError("coupon store down")


class FlakyOffers(InMemoryOfferSource):
    async def product_offers(self, product_id):
        raise TimeoutError("offers timed out")

    async def category_offers(self, category_id):
        raise TimeoutError("offers timed out")


def _quote(result):
    match result:
        case Ok(q):
            return q
        case Error(e):
            pytest.fail(f"expected a quote, got {e.code}: {e.message}")


class TestExecute:
    @pytest.mark.asyncio
    async def test_category_offer_and_coupon(self, offer_source, coupon_book, catalog, validator):
        offer_source.add(category_offer(category_id="A", discount_type=PCT, value=10))
        coupon_book.put(coupon("FLAT100", FIXED, 100, min_purchase=500))
        request = CheckoutRequest((line("p1", price=500, quantity=2, category_id="A"),), "flat100")

        q = _quote(await BreakdownNode.execute(request, catalog, validator))

        b = q.breakdown
        assert q.coupon_error is None
        assert (b.subtotal, b.offer_discount, b.tax, b.shipping, b.coupon_discount) == (
            Decimal("1000.00"),
            Decimal("100.00"),
            Decimal("180"),
            Decimal("100.00"),
            Decimal("100.00"),
        )
        assert b.grand_total == Decimal("1080.00")
        assert b.coupon_code == "FLAT100"

    @pytest.mark.asyncio
    async def test_no_coupon(self, offer_source, catalog, validator):
        offer_source.add(product_offer(product_id="p1", discount_type=FIXED, value=50))
        request = CheckoutRequest((line("p1", price=200, quantity=3),))

        q = _quote(await BreakdownNode.execute(request, catalog, validator))
        assert q.breakdown.offer_discount == Decimal("150.00")
        assert q.breakdown.coupon_code is None
        assert q.coupon_error is None

    @pytest.mark.asyncio
    async def test_blank_coupon_code_is_no_coupon(self, catalog, validator):
        request = CheckoutRequest((line(price=50),), "   ")
        q = _quote(await BreakdownNode.execute(request, catalog, validator))
        assert q.coupon_error is None

    @pytest.mark.asyncio
    async def test_rejected_coupon_rides_along(self, offer_source, coupon_book, catalog, validator):
        # 600 - 200 offer = 400, below the 500 minimum
        offer_source.add(product_offer(product_id="p1", discount_type=FIXED, value=200))
        coupon_book.put(coupon("FLAT100", FIXED, 100, min_purchase=500))
        request = CheckoutRequest((line("p1", price=600),), "FLAT100")

        q = _quote(await BreakdownNode.execute(request, catalog, validator))
        assert isinstance(q.coupon_error, CouponBelowMinimum)
        assert q.breakdown.coupon_discount == Decimal("0.00")
        assert q.breakdown.offer_discount == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_unknown_coupon(self, catalog, validator):
        request = CheckoutRequest((line(price=100),), "GHOST")
        q = _quote(await BreakdownNode.execute(request, catalog, validator))
        assert isinstance(q.coupon_error, CouponNotFound)

    @pytest.mark.asyncio
    async def test_unreachable_coupon_store_fails(self, catalog):
        validator = CouponValidator(UnreachableCoupons(), clock=fixed_clock)
        request = CheckoutRequest((line(price=100),), "SAVE10")

        match await BreakdownNode.execute(request, catalog, validator):
            case Error(e):
                assert e.code == "COUPON_LOOKUP_FAILED"
                assert "coupon store down" in e.message
            case Ok(_):
                pytest.fail("expected a lookup failure")

    @pytest.mark.asyncio
    async def test_offer_outage_prices_without_offers(self, validator):
        catalog = OfferCatalog(FlakyOffers(), clock=fixed_clock)
        request = CheckoutRequest((line("p1", price=400, category_id="A"),))

        q = _quote(await BreakdownNode.execute(request, catalog, validator))
        assert q.breakdown.offer_discount == Decimal("0.00")
        assert q.breakdown.subtotal == Decimal("400.00")

    @pytest.mark.asyncio
    async def test_custom_rules(self, catalog, validator):
        rules = PricingRules.of(tax_rate="0.10", free_shipping_threshold=100, shipping_fee=15)
        request = CheckoutRequest((line(price=100),))

        q = _quote(await BreakdownNode.execute(request, catalog, validator, rules))
        assert q.breakdown.tax == Decimal("10")
        assert q.breakdown.shipping == Decimal("15.00")
        assert q.breakdown.grand_total == Decimal("125.00")

    @pytest.mark.asyncio
    async def test_best_offer_per_line(self, offer_source, catalog, validator):
        offer_source.add(
            product_offer(id="po-a", product_id="a", discount_type=PCT, value=30),
            category_offer(id="co-x", category_id="X", discount_type=FIXED, value=40),
        )
        request = CheckoutRequest((line("a", price=200, category_id="X"), line("b", price=200, category_id="X")))

        q = _quote(await BreakdownNode.execute(request, catalog, validator))
        applied = [p.applied_offer_id for p in q.breakdown.lines]
        assert applied == ["po-a", "co-x"]
        assert q.breakdown.offer_discount == Decimal("100.00")


class TestGraphRunner:
    def test_agent_built_once_per_target(self):
        assert G.agent_for(BreakdownNode) is G.agent_for(BreakdownNode)

    def test_runner_surface(self):
        assert set(G.__all__) == {"node", "agent_for", "Run", "run"}

    @pytest.mark.asyncio
    async def test_run_intermediate_node(self, offer_source, catalog):
        offer_source.add(product_offer(id="po", product_id="p1"), category_offer(id="co", category_id="c1"))
        request = CheckoutRequest((line("p1", price=100, category_id="c1"),), None)

        node = await G.run(OfferSnapshotNode).inject_as(CheckoutRequest, request).inject_as(OfferCatalog, catalog)

        assert node.data.by_product["p1"].id == "po"
        assert node.data.by_category["c1"].id == "co"
