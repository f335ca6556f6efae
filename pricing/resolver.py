"""
Resolver — best offer per cart line.

Product-level and category-level offers are both evaluated and the one
giving the larger discount wins:

    line_amount = price * quantity
    percentage  → line_amount * value / 100
    fixed       → min(line_amount, value * quantity)
    discount    = clamp(max(product, category, 0), 0, line_amount)

On an exact tie the product offer wins (PREFER_ON_TIE): it is the more
specific match. Pure functions only; offers arrive as an OfferSnapshot
built by the catalog.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from pricing._types import ZERO, clamp, to_cents
from pricing.domain import (
    AppliedOffer,
    CartLine,
    CategoryOffer,
    DiscountType,
    LinePricing,
    Offer,
    OfferScope,
    ProductOffer,
)

PREFER_ON_TIE = OfferScope.PRODUCT


# ═══════════════════════════════════════════════════════════════════════════════
# Offer Snapshot
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OfferSnapshot:
    """Active offers keyed by product and category id. Missing key → no offer."""

    by_product: dict[str, ProductOffer] = field(default_factory=dict[str, ProductOffer])
    by_category: dict[str, CategoryOffer] = field(default_factory=dict[str, CategoryOffer])

    def for_line(self, line: CartLine) -> tuple[ProductOffer | None, CategoryOffer | None]:
        category_offer = self.by_category.get(line.category_id) if line.category_id else None
        return self.by_product.get(line.product_id), category_offer


EMPTY_SNAPSHOT = OfferSnapshot()


# ═══════════════════════════════════════════════════════════════════════════════
# Discount Math
# ═══════════════════════════════════════════════════════════════════════════════


def offer_discount(offer: Offer, line_amount: Decimal, quantity: int) -> Decimal:
    """Raw discount one offer gives on a line, clamped to [0, line_amount]."""
    match offer.discount_type:
        case DiscountType.PERCENTAGE:
            raw = line_amount * offer.discount_value / 100
        case DiscountType.FIXED:
            raw = min(line_amount, offer.discount_value * quantity)
    return clamp(raw, ZERO, line_amount)


def resolve_line(
    line: CartLine,
    product_offer: ProductOffer | None,
    category_offer: CategoryOffer | None,
) -> LinePricing:
    line_amount = line.amount

    candidates: list[tuple[Decimal, Offer]] = []
    if product_offer is not None:
        candidates.append((offer_discount(product_offer, line_amount, line.quantity), product_offer))
    if category_offer is not None:
        candidates.append((offer_discount(category_offer, line_amount, line.quantity), category_offer))

    best: tuple[Decimal, Offer] | None = None
    for amount, offer in candidates:
        if amount <= ZERO:
            continue
        if best is None or amount > best[0] or (amount == best[0] and offer.scope is PREFER_ON_TIE):
            best = (amount, offer)

    if best is None:
        return LinePricing(line, line_amount, ZERO, None)

    discount = clamp(to_cents(best[0]), ZERO, line_amount)
    return LinePricing(line, line_amount, discount, AppliedOffer.of(best[1]))


def compute_line_pricing(line: CartLine, offers: OfferSnapshot = EMPTY_SNAPSHOT) -> LinePricing:
    """Price one line against a snapshot of active offers."""
    product_offer, category_offer = offers.for_line(line)
    return resolve_line(line, product_offer, category_offer)


__all__ = (
    "PREFER_ON_TIE",
    "OfferSnapshot",
    "EMPTY_SNAPSHOT",
    "offer_discount",
    "resolve_line",
    "compute_line_pricing",
)
