"""
Calculator — the checkout price breakdown.

    subtotal        = Σ price × quantity
    offer_discount  = Σ per-line best offer (resolver)
    tax             = round(subtotal × tax_rate)             whole units
    shipping        = 0 if subtotal > threshold else fee     strict >
    coupon_discount = coupon on (subtotal − offer_discount)
    grand_total     = max(0, subtotal + tax + shipping − offer_discount − coupon_discount)

A pure function of (cart snapshot, offer snapshot, coupon outcome, rules):
no hidden state, and line order does not change any total.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pricing._types import ZERO, Error, Result, Ok, to_cents, to_units
from pricing.config import PricingRules
from pricing.coupons import check_coupon
from pricing.domain import (
    AppliedCoupon,
    CartLine,
    Coupon,
    CouponError,
    LinePricing,
    PricingBreakdown,
)
from pricing.resolver import EMPTY_SNAPSHOT, OfferSnapshot, compute_line_pricing

DEFAULT_RULES = PricingRules()

type CouponOutcome = Result[AppliedCoupon, CouponError] | None
"""None: no coupon entered. Error: rejected, contributes nothing."""


def price_lines(lines: Iterable[CartLine], offers: OfferSnapshot) -> tuple[LinePricing, ...]:
    return tuple(compute_line_pricing(line, offers) for line in lines)


def order_amount(priced: Iterable[LinePricing]) -> Decimal:
    """Amount a coupon is evaluated against: subtotal after offers."""
    return sum((p.line_amount - p.discount for p in priced), start=ZERO)


def tax_for(subtotal: Decimal, rules: PricingRules = DEFAULT_RULES) -> Decimal:
    return to_units(subtotal * rules.tax_rate)


def shipping_for(subtotal: Decimal, rules: PricingRules = DEFAULT_RULES) -> Decimal:
    if subtotal > rules.free_shipping_threshold:
        return ZERO
    return rules.shipping_fee


def assemble(
    priced: tuple[LinePricing, ...],
    coupon: CouponOutcome = None,
    rules: PricingRules = DEFAULT_RULES,
) -> PricingBreakdown:
    """Combine already-priced lines with a coupon outcome."""
    subtotal = sum((p.line_amount for p in priced), start=ZERO)
    offer_discount = sum((p.discount for p in priced), start=ZERO)
    tax = tax_for(subtotal, rules)
    shipping = shipping_for(subtotal, rules)

    coupon_discount = ZERO
    coupon_code: str | None = None
    match coupon:
        case Ok(applied):
            coupon_discount = applied.discount_amount
            coupon_code = applied.coupon.code
        case _:
            pass

    grand_total = subtotal + tax + shipping - offer_discount - coupon_discount
    return PricingBreakdown(
        lines=priced,
        subtotal=to_cents(subtotal),
        offer_discount=to_cents(offer_discount),
        tax=tax,
        shipping=to_cents(shipping),
        coupon_discount=to_cents(coupon_discount),
        coupon_code=coupon_code,
        grand_total=to_cents(max(grand_total, ZERO)),
    )


def compute_checkout_totals(
    lines: Iterable[CartLine],
    offers: OfferSnapshot = EMPTY_SNAPSHOT,
    coupon: CouponOutcome = None,
    rules: PricingRules = DEFAULT_RULES,
) -> PricingBreakdown:
    """
    Full breakdown for a cart snapshot.

    The coupon outcome must have been validated against
    order_amount(price_lines(lines, offers)); see pricing.checkout for the
    async flow that does both.
    """
    return assemble(price_lines(lines, offers), coupon, rules)


@dataclass(frozen=True, slots=True)
class CheckoutQuote:
    """Breakdown plus the reason a coupon was refused, if one was."""

    breakdown: PricingBreakdown
    coupon_error: CouponError | None = None


def quote(
    lines: Iterable[CartLine],
    offers: OfferSnapshot,
    coupon_code: str | None,
    coupon: Coupon | None,
    now: datetime,
    rules: PricingRules = DEFAULT_RULES,
    remaining_uses: int | None = None,
) -> CheckoutQuote:
    """
    Price and validate in one pure step, with the coupon record in hand.

    A refused coupon never fails the quote; it contributes zero and the
    reason rides along for the caller to show.
    """
    priced = price_lines(lines, offers)
    outcome: CouponOutcome = None
    if coupon_code:
        outcome = check_coupon(coupon_code, coupon, order_amount(priced), now, remaining_uses)
    coupon_error: CouponError | None = None
    match outcome:
        case Error(e):
            coupon_error = e
        case _:
            pass
    return CheckoutQuote(assemble(priced, outcome, rules), coupon_error)


__all__ = (
    "DEFAULT_RULES",
    "CouponOutcome",
    "price_lines",
    "order_amount",
    "tax_for",
    "shipping_for",
    "assemble",
    "compute_checkout_totals",
    "CheckoutQuote",
    "quote",
)
