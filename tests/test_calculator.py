"""
Tests for the pure checkout breakdown.
"""

from decimal import Decimal

import pytest
from kungfu import Error, Ok

from pricing.calculator import (
    assemble,
    compute_checkout_totals,
    order_amount,
    price_lines,
    quote,
    shipping_for,
    tax_for,
)
from pricing.config import PricingRules
from pricing.coupons import check_coupon
from pricing.domain import CartLine, CouponBelowMinimum, CouponNotFound, InvalidCartLine
from pricing.resolver import EMPTY_SNAPSHOT, OfferSnapshot
from tests.factories import FIXED, NOW, PCT, category_offer, coupon, line, product_offer

FLAT100 = coupon("FLAT100", FIXED, 100, min_purchase=500)


def _totals(lines, offers=EMPTY_SNAPSHOT, coupon_record=None, code=None):
    priced = price_lines(lines, offers)
    outcome = None
    if code is not None:
        outcome = check_coupon(code, coupon_record, order_amount(priced), NOW)
    return compute_checkout_totals(lines, offers, outcome)


class TestEndToEnd:
    def test_category_offer_and_flat_coupon(self):
        lines = [line("p1", price=500, quantity=2, category_id="A")]
        offers = OfferSnapshot({}, {"A": category_offer(category_id="A", discount_type=PCT, value=10)})

        b = _totals(lines, offers, FLAT100, "FLAT100")

        assert b.subtotal == Decimal("1000.00")
        assert b.offer_discount == Decimal("100.00")
        assert b.tax == Decimal("180")
        # exactly at the threshold: not strictly above, so the fee applies
        assert b.shipping == Decimal("100.00")
        assert b.coupon_discount == Decimal("100.00")
        assert b.coupon_code == "FLAT100"
        assert b.grand_total == Decimal("1080.00")

    def test_grand_total_identity(self):
        lines = [line("p1", 399, 2, "A"), line("p2", "49.99", 3, "B")]
        offers = OfferSnapshot({"p1": product_offer(value=15)}, {"B": category_offer(category_id="B", discount_type=FIXED, value=5)})
        b = _totals(lines, offers, coupon("SAVE10", PCT, 10, max_discount=50), "SAVE10")
        assert b.grand_total == b.subtotal + b.tax + b.shipping - b.offer_discount - b.coupon_discount


class TestShipping:
    def test_fee_at_exact_threshold(self):
        assert shipping_for(Decimal("1000")) == Decimal("100")

    def test_free_just_above_threshold(self):
        assert shipping_for(Decimal("1000.01")) == Decimal("0")

    def test_threshold_uses_subtotal_before_discounts(self):
        lines = [line(price="1000.01")]
        offers = OfferSnapshot({"p1": product_offer(value=50)})
        assert _totals(lines, offers).shipping == Decimal("0.00")

    def test_custom_rules(self):
        rules = PricingRules.of(free_shipping_threshold=500, shipping_fee=40)
        assert shipping_for(Decimal("500"), rules) == Decimal("40")
        assert shipping_for(Decimal("501"), rules) == Decimal("0")


class TestTax:
    def test_rounded_to_whole_units(self):
        assert tax_for(Decimal("1000")) == Decimal("180")
        # 25 * 0.18 = 4.5 → 5
        assert tax_for(Decimal("25")) == Decimal("5")
        # 102.5 * 0.18 = 18.45 → 18
        assert tax_for(Decimal("102.5")) == Decimal("18")

    def test_tax_on_subtotal_not_discounted_amount(self):
        lines = [line(price=1000)]
        offers = OfferSnapshot({"p1": product_offer(value=50)})
        assert _totals(lines, offers).tax == Decimal("180")


class TestPurity:
    LINES = [
        line("p1", 300, 1, "A"),
        line("p2", "120.50", 4, "B"),
        line("p3", 75, 2, "A"),
    ]
    OFFERS = OfferSnapshot(
        {"p2": product_offer(id="po-2", product_id="p2", value=20)},
        {"A": category_offer(category_id="A", discount_type=FIXED, value=10)},
    )

    def test_identical_inputs_identical_output(self):
        first = _totals(self.LINES, self.OFFERS, FLAT100, "FLAT100")
        second = _totals(self.LINES, self.OFFERS, FLAT100, "FLAT100")
        assert first == second

    def test_line_order_does_not_change_totals(self):
        forward = _totals(self.LINES, self.OFFERS, FLAT100, "FLAT100")
        backward = _totals(list(reversed(self.LINES)), self.OFFERS, FLAT100, "FLAT100")
        assert forward.subtotal == backward.subtotal
        assert forward.offer_discount == backward.offer_discount
        assert forward.grand_total == backward.grand_total

    def test_inputs_not_mutated(self):
        lines = list(self.LINES)
        _totals(lines, self.OFFERS)
        assert lines == self.LINES


class TestCouponInTotals:
    def test_coupon_evaluated_on_post_offer_amount(self):
        # subtotal 600, offer 200 → order amount 400 < 500 minimum
        lines = [line(price=600)]
        offers = OfferSnapshot({"p1": product_offer(discount_type=FIXED, value=200)})
        result = quote(lines, offers, "FLAT100", FLAT100, NOW)
        assert isinstance(result.coupon_error, CouponBelowMinimum)
        assert result.breakdown.coupon_discount == Decimal("0.00")
        assert result.breakdown.coupon_code is None

    def test_replacing_coupon_is_not_additive(self):
        lines = [line(price=800)]
        flat = _totals(lines, EMPTY_SNAPSHOT, FLAT100, "FLAT100")
        save = _totals(lines, EMPTY_SNAPSHOT, coupon("SAVE10", PCT, 10, max_discount=50), "SAVE10")
        assert flat.coupon_discount == Decimal("100.00")
        assert save.coupon_discount == Decimal("50.00")
        assert save.coupon_code == "SAVE10"

    def test_removing_coupon_keeps_offer_discount(self):
        lines = [line(price=800)]
        offers = OfferSnapshot({"p1": product_offer(value=10)})
        with_coupon = _totals(lines, offers, FLAT100, "FLAT100")
        without = _totals(lines, offers)
        assert without.coupon_discount == Decimal("0.00")
        assert without.offer_discount == with_coupon.offer_discount
        assert without.grand_total - with_coupon.grand_total == Decimal("100.00")

    def test_unknown_coupon_reported_in_quote(self):
        result = quote([line(price=800)], EMPTY_SNAPSHOT, "nope", None, NOW)
        assert isinstance(result.coupon_error, CouponNotFound)
        assert result.breakdown.grand_total == Decimal("1044.00")

    def test_assemble_with_rejected_outcome(self):
        priced = price_lines([line(price=50)], EMPTY_SNAPSHOT)
        rejected = Error(CouponNotFound("X"))
        assert assemble(priced, rejected).coupon_discount == Decimal("0.00")

    def test_assemble_with_accepted_outcome(self):
        priced = price_lines([line(price=800)], EMPTY_SNAPSHOT)
        outcome = check_coupon("FLAT100", FLAT100, order_amount(priced), NOW)
        assert isinstance(outcome, Ok)
        assert assemble(priced, outcome).coupon_discount == Decimal("100.00")


class TestEdgeCarts:
    def test_empty_cart(self):
        b = compute_checkout_totals([])
        assert b.subtotal == Decimal("0.00")
        assert b.shipping == Decimal("100.00")
        assert b.grand_total == Decimal("100.00")

    def test_grand_total_never_negative(self):
        b = _totals([line(price=0)])
        assert b.grand_total >= Decimal("0")

    def test_display_strings(self):
        b = _totals([line(price="19.9", quantity=3)])
        shown = b.display()
        assert shown["subtotal"] == "59.70"
        assert shown["tax"] == "11.00"
        assert shown["grand_total"] == "170.70"


class TestCartLineValidation:
    @pytest.mark.parametrize(
        "product_id, price, quantity",
        [
            ("p1", None, 1),
            ("p1", -1, 1),
            ("p1", "abc", 1),
            ("p1", "NaN", 1),
            ("p1", 10, 0),
            ("p1", 10, -2),
            ("p1", 10, True),
            ("", 10, 1),
        ],
    )
    def test_rejected(self, product_id, price, quantity):
        with pytest.raises(InvalidCartLine) as info:
            CartLine.create(product_id, "c1", price, quantity)
        assert info.value.code == "INVALID_CART_LINE"

    def test_float_price_normalised(self):
        assert CartLine.create("p1", None, 0.1, 3).amount == Decimal("0.3")
