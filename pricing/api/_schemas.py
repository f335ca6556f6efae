"""
Schemas — pydantic request/response models.

Requests expose to_domain(), responses from_domain(); routes stay thin.
Money goes out as 2-decimal strings.
"""

from __future__ import annotations

from decimal import Decimal

from kungfu import Ok, Error, Result
from pydantic import BaseModel, Field

from pricing._types import to_cents
from pricing.calculator import CheckoutQuote
from pricing.checkout import CheckoutRequest
from pricing.domain import (
    AppliedCoupon,
    AppliedOffer,
    CartLine,
    CouponError,
    LinePricing,
)


def _money(value: Decimal) -> str:
    return f"{to_cents(value):.2f}"


# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════


class CartLineIn(BaseModel):
    product_id: str
    category_id: str | None = None
    price: Decimal | None = None
    quantity: int = 1
    size: str | None = None

    def to_domain(self) -> CartLine:
        """Raises InvalidCartLine."""
        return CartLine.create(
            self.product_id, self.category_id, self.price, self.quantity, self.size
        )


class LinePricingIn(BaseModel):
    line: CartLineIn

    def to_domain(self) -> CartLine:
        return self.line.to_domain()


class CouponValidateIn(BaseModel):
    code: str
    order_amount: Decimal = Field(ge=0)


class CheckoutTotalsIn(BaseModel):
    lines: list[CartLineIn]
    coupon_code: str | None = None

    def to_domain(self) -> CheckoutRequest:
        return CheckoutRequest(
            tuple(line.to_domain() for line in self.lines), self.coupon_code
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorOut(BaseModel):
    code: str
    message: str

    @classmethod
    def from_domain(cls, dom: CouponError | Exception) -> ErrorOut:
        return cls(
            code=getattr(dom, "code", "ERROR"),
            message=getattr(dom, "message", None) or str(dom),
        )


class AppliedOfferOut(BaseModel):
    offer_id: str
    scope: str
    discount_type: str
    discount_value: str
    name: str

    @classmethod
    def from_domain(cls, dom: AppliedOffer) -> AppliedOfferOut:
        return cls(
            offer_id=dom.offer_id,
            scope=dom.scope.value,
            discount_type=dom.discount_type.value,
            discount_value=str(dom.discount_value),
            name=dom.name,
        )


class LinePricingOut(BaseModel):
    product_id: str
    quantity: int
    line_amount: str
    discount: str
    net_amount: str
    applied_offer: AppliedOfferOut | None

    @classmethod
    def from_domain(cls, dom: LinePricing) -> LinePricingOut:
        return cls(
            product_id=dom.line.product_id,
            quantity=dom.line.quantity,
            line_amount=_money(dom.line_amount),
            discount=_money(dom.discount),
            net_amount=_money(dom.net_amount),
            applied_offer=AppliedOfferOut.from_domain(dom.applied_offer)
            if dom.applied_offer
            else None,
        )


class AppliedCouponOut(BaseModel):
    code: str
    description: str
    discount_type: str
    discount_value: str
    discount_amount: str

    @classmethod
    def from_domain(cls, dom: AppliedCoupon) -> AppliedCouponOut:
        return cls(
            code=dom.coupon.code,
            description=dom.coupon.description,
            discount_type=dom.coupon.discount_type.value,
            discount_value=str(dom.coupon.discount_value),
            discount_amount=_money(dom.discount_amount),
        )


class CouponValidateOut(BaseModel):
    valid: bool
    coupon: AppliedCouponOut | None = None
    error: ErrorOut | None = None

    @classmethod
    def from_domain(cls, dom: Result[AppliedCoupon, CouponError]) -> CouponValidateOut:
        match dom:
            case Ok(applied):
                return cls(valid=True, coupon=AppliedCouponOut.from_domain(applied))
            case Error(e):
                return cls(valid=False, error=ErrorOut.from_domain(e))


class CheckoutTotalsOut(BaseModel):
    lines: list[LinePricingOut]
    subtotal: str
    offer_discount: str
    tax: str
    shipping: str
    coupon_discount: str
    coupon_code: str | None
    grand_total: str
    coupon_error: ErrorOut | None = None

    @classmethod
    def from_domain(cls, dom: CheckoutQuote) -> CheckoutTotalsOut:
        b = dom.breakdown
        shown = b.display()
        return cls(
            lines=[LinePricingOut.from_domain(p) for p in b.lines],
            subtotal=shown["subtotal"],
            offer_discount=shown["offer_discount"],
            tax=shown["tax"],
            shipping=shown["shipping"],
            coupon_discount=shown["coupon_discount"],
            coupon_code=b.coupon_code,
            grand_total=shown["grand_total"],
            coupon_error=ErrorOut.from_domain(dom.coupon_error) if dom.coupon_error else None,
        )


__all__ = (
    "CartLineIn",
    "LinePricingIn",
    "CouponValidateIn",
    "CheckoutTotalsIn",
    "ErrorOut",
    "AppliedOfferOut",
    "LinePricingOut",
    "AppliedCouponOut",
    "CouponValidateOut",
    "CheckoutTotalsOut",
)
