"""
Domain — offers, coupons, cart lines and the pricing breakdown.

Offers and coupons are owned by the admin side; pricing only reads them.
Cart lines are immutable snapshots taken from the cart at pricing time.
Everything here is a frozen value so a computation can never mutate its
inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pricing._types import ZERO, Amount, as_utc, money


# ═══════════════════════════════════════════════════════════════════════════════
# Discount Terms
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountType(StrEnum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class OfferScope(StrEnum):
    PRODUCT = "product"
    CATEGORY = "category"


def _terms_problem(discount_type: DiscountType, value: Decimal) -> str | None:
    if discount_type is DiscountType.PERCENTAGE and not (ZERO < value <= 100):
        return f"percentage discount must be in (0, 100], got {value}"
    if discount_type is DiscountType.FIXED and value <= ZERO:
        return f"fixed discount must be positive, got {value}"
    return None


def _window_problem(start: datetime, end: datetime) -> str | None:
    if as_utc(end) <= as_utc(start):
        return "end date must be after start date"
    return None


def _window_open(start: datetime, end: datetime, now: datetime) -> bool:
    return as_utc(start) <= as_utc(now) <= as_utc(end)


# ═══════════════════════════════════════════════════════════════════════════════
# Offers
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ProductOffer:
    id: str
    product_id: str
    discount_type: DiscountType
    discount_value: Decimal
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    name: str = ""

    scope = OfferScope.PRODUCT

    @property
    def target_id(self) -> str:
        return self.product_id

    def is_current(self, now: datetime) -> bool:
        return self.is_active and _window_open(self.start_date, self.end_date, now)

    def problem(self) -> str | None:
        return _terms_problem(self.discount_type, self.discount_value) or _window_problem(
            self.start_date, self.end_date
        )


@dataclass(frozen=True, slots=True)
class CategoryOffer:
    id: str
    category_id: str
    discount_type: DiscountType
    discount_value: Decimal
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    name: str = ""

    scope = OfferScope.CATEGORY

    @property
    def target_id(self) -> str:
        return self.category_id

    def is_current(self, now: datetime) -> bool:
        return self.is_active and _window_open(self.start_date, self.end_date, now)

    def problem(self) -> str | None:
        return _terms_problem(self.discount_type, self.discount_value) or _window_problem(
            self.start_date, self.end_date
        )


type Offer = ProductOffer | CategoryOffer


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════


def normalize_code(code: str) -> str:
    return code.strip().upper()


@dataclass(frozen=True, slots=True)
class Coupon:
    code: str
    description: str
    discount_type: DiscountType
    discount_value: Decimal
    start_date: datetime
    end_date: datetime
    min_purchase: Decimal = ZERO
    max_discount: Decimal | None = None  # percentage coupons only
    usage_limit: int | None = None  # None or 0 → unlimited
    used_count: int = 0
    is_active: bool = True

    @property
    def has_usage_limit(self) -> bool:
        return bool(self.usage_limit)

    def problem(self) -> str | None:
        if not self.code or not self.code.isalnum() or self.code != self.code.upper():
            return f"coupon code must be uppercase alphanumeric, got {self.code!r}"
        if self.min_purchase < ZERO:
            return "minimum purchase cannot be negative"
        if self.max_discount is not None and self.max_discount <= ZERO:
            return "maximum discount must be positive when set"
        return _terms_problem(self.discount_type, self.discount_value) or _window_problem(
            self.start_date, self.end_date
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    """One cart entry as priced. Build through create() to get validation."""

    product_id: str
    category_id: str | None
    price: Decimal
    quantity: int
    size: str | None = None

    @classmethod
    def create(
        cls,
        product_id: str,
        category_id: str | None,
        price: Amount | None,
        quantity: int,
        size: str | None = None,
    ) -> CartLine:
        if not product_id:
            raise InvalidCartLine(product_id, "product id is required")
        if price is None:
            raise InvalidCartLine(product_id, "price is required")
        try:
            amount = money(price)
        except ArithmeticError:
            raise InvalidCartLine(product_id, f"price is not a number: {price!r}") from None
        if not amount.is_finite() or amount < ZERO:
            raise InvalidCartLine(product_id, f"price must be a non-negative number, got {price}")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidCartLine(product_id, f"quantity must be a positive integer, got {quantity!r}")
        return cls(product_id, category_id or None, amount, quantity, size)

    @property
    def amount(self) -> Decimal:
        return self.price * self.quantity


# ═══════════════════════════════════════════════════════════════════════════════
# Pricing Results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class AppliedOffer:
    """Which offer won a line, kept for receipts."""

    offer_id: str
    scope: OfferScope
    discount_type: DiscountType
    discount_value: Decimal
    name: str = ""

    @classmethod
    def of(cls, offer: Offer) -> AppliedOffer:
        return cls(offer.id, offer.scope, offer.discount_type, offer.discount_value, offer.name)


@dataclass(frozen=True, slots=True)
class LinePricing:
    line: CartLine
    line_amount: Decimal
    discount: Decimal
    applied_offer: AppliedOffer | None

    @property
    def applied_offer_id(self) -> str | None:
        return self.applied_offer.offer_id if self.applied_offer else None

    @property
    def net_amount(self) -> Decimal:
        return self.line_amount - self.discount


@dataclass(frozen=True, slots=True)
class AppliedCoupon:
    coupon: Coupon
    discount_amount: Decimal


@dataclass(frozen=True, slots=True)
class PricingBreakdown:
    lines: tuple[LinePricing, ...]
    subtotal: Decimal
    offer_discount: Decimal
    tax: Decimal
    shipping: Decimal
    coupon_discount: Decimal
    coupon_code: str | None
    grand_total: Decimal

    def display(self) -> dict[str, str]:
        """Currency fields formatted to 2 decimal places."""
        return {
            "subtotal": f"{self.subtotal:.2f}",
            "offer_discount": f"{self.offer_discount:.2f}",
            "tax": f"{self.tax:.2f}",
            "shipping": f"{self.shipping:.2f}",
            "coupon_discount": f"{self.coupon_discount:.2f}",
            "grand_total": f"{self.grand_total:.2f}",
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class InvalidCartLine(Exception):
    """Malformed cart line; rejected before pricing starts."""

    code = "INVALID_CART_LINE"

    def __init__(self, product_id: str | None, reason: str) -> None:
        super().__init__(f"{product_id or '<unknown>'}: {reason}")
        self.product_id = product_id
        self.reason = reason
        self.message = str(self)


@dataclass(slots=True, eq=False)
class OfferUnavailable(Exception):
    """Offer lookup failed; the line is priced without an offer."""

    scope: OfferScope
    target_id: str
    reason: str

    def __str__(self) -> str:
        return f"{self.scope} offer for {self.target_id} unavailable: {self.reason}"


@dataclass(slots=True, eq=False)
class InvalidDiscountConfiguration(Exception):
    """An offer or coupon record breaks its own invariants."""

    record_id: str
    reason: str

    code = "INVALID_DISCOUNT_CONFIGURATION"

    @property
    def message(self) -> str:
        return f"Discount {self.record_id} is misconfigured: {self.reason}"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True, eq=False)
class CouponNotFound(Exception):
    code_entered: str

    code = "COUPON_NOT_FOUND"

    @property
    def message(self) -> str:
        return "Invalid coupon code"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True, eq=False)
class CouponInactive(Exception):
    coupon_code: str
    reason: str  # disabled | not_started | expired

    code = "COUPON_INACTIVE"

    @property
    def message(self) -> str:
        match self.reason:
            case "not_started":
                return "This coupon is not yet valid"
            case "expired":
                return "This coupon has expired"
            case _:
                return "This coupon is not active"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True, eq=False)
class CouponBelowMinimum(Exception):
    coupon_code: str
    min_purchase: Decimal
    order_amount: Decimal

    code = "COUPON_BELOW_MINIMUM"

    @property
    def message(self) -> str:
        return f"Minimum purchase of {self.min_purchase:.2f} required for this coupon"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True, eq=False)
class CouponUsageExceeded(Exception):
    coupon_code: str
    usage_limit: int

    code = "COUPON_USAGE_EXCEEDED"

    @property
    def message(self) -> str:
        return "This coupon has reached its usage limit"

    def __str__(self) -> str:
        return self.message


type CouponError = (
    CouponNotFound
    | CouponInactive
    | CouponBelowMinimum
    | CouponUsageExceeded
    | InvalidDiscountConfiguration
)


class CheckoutError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


__all__ = (
    "DiscountType",
    "OfferScope",
    "ProductOffer",
    "CategoryOffer",
    "Offer",
    "normalize_code",
    "Coupon",
    "CartLine",
    "AppliedOffer",
    "LinePricing",
    "AppliedCoupon",
    "PricingBreakdown",
    "InvalidCartLine",
    "OfferUnavailable",
    "InvalidDiscountConfiguration",
    "CouponNotFound",
    "CouponInactive",
    "CouponBelowMinimum",
    "CouponUsageExceeded",
    "CouponError",
    "CheckoutError",
)
