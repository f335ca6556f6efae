"""
Session — one shopper's checkout, from first quote to confirmed order.

    Idle → PricingComputed → (CouponApplied | CouponRejected)
         → OrderSubmitted → (OrderConfirmed | PaymentFailed)

Every change (cart, coupon) recomputes the quote from scratch. A quote is
kept only if it is the most recent computation started and the cart
signature it was computed for is still current, so a slow computation can
never overwrite a newer one.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

from kungfu import Ok, Error, Result

from pricing._log import get_logger
from pricing._types import Clock, utc_now
from pricing.calculator import DEFAULT_RULES, CheckoutQuote
from pricing.catalog import OfferCatalog
from pricing.checkout._input import CheckoutRequest
from pricing.checkout._order import (
    CheckoutState,
    OrderConfirmation,
    OrderRecord,
    PaymentGateway,
    new_order_id,
    submit_order,
)
from pricing.checkout._totals import BreakdownNode
from pricing.config import PricingRules
from pricing.coupons import CouponLedger, CouponValidator
from pricing.domain import CartLine, CheckoutError, normalize_code

logger = get_logger("checkout")

_LOCKED = frozenset({CheckoutState.ORDER_SUBMITTED, CheckoutState.ORDER_CONFIRMED})
_SUBMITTABLE = frozenset({
    CheckoutState.PRICING_COMPUTED,
    CheckoutState.COUPON_APPLIED,
    CheckoutState.COUPON_REJECTED,
})


def cart_signature(lines: Iterable[CartLine], coupon_code: str | None) -> str:
    """Identity of a cart state. Line order does not matter."""
    parts = sorted(
        f"{line.product_id}|{line.category_id or ''}|{line.price.normalize()}|{line.quantity}|{line.size or ''}"
        for line in lines
    )
    parts.append(f"coupon={normalize_code(coupon_code) if coupon_code else ''}")
    return hashlib.sha256("\n".join(parts).encode()).hexdigest()


class CheckoutSession:
    """Holds the current cart snapshot, coupon code, quote and state."""

    def __init__(
        self,
        catalog: OfferCatalog,
        validator: CouponValidator,
        rules: PricingRules = DEFAULT_RULES,
        ledger: CouponLedger | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._catalog = catalog
        self._validator = validator
        self._rules = rules
        self._ledger = ledger
        self._clock = clock

        self._lines: tuple[CartLine, ...] = ()
        self._coupon_code: str | None = None
        self._quote: CheckoutQuote | None = None
        self._state = CheckoutState.IDLE
        self._order: OrderRecord | None = None
        self._generation = 0

    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return self._lines

    @property
    def coupon_code(self) -> str | None:
        return self._coupon_code

    @property
    def quote(self) -> CheckoutQuote | None:
        """Latest accepted quote for the current cart signature."""
        return self._quote

    @property
    def order(self) -> OrderRecord | None:
        return self._order

    @property
    def signature(self) -> str:
        return cart_signature(self._lines, self._coupon_code)

    # ───────────────────────────────────────────────────────────────────────────
    # Cart and coupon changes
    # ───────────────────────────────────────────────────────────────────────────

    async def set_cart(self, lines: Iterable[CartLine]) -> Result[CheckoutQuote, CheckoutError]:
        if self._state in _LOCKED:
            return Error(self._locked())
        self._lines = tuple(lines)
        self._invalidate()
        return await self.refresh()

    async def apply_coupon(self, code: str) -> Result[CheckoutQuote, CheckoutError]:
        """Replace any coupon already applied; coupons never stack."""
        if self._state in _LOCKED:
            return Error(self._locked())
        self._coupon_code = normalize_code(code) or None
        self._invalidate()
        return await self.refresh()

    async def remove_coupon(self) -> Result[CheckoutQuote, CheckoutError]:
        if self._state in _LOCKED:
            return Error(self._locked())
        self._coupon_code = None
        self._invalidate()
        return await self.refresh()

    async def refresh(self) -> Result[CheckoutQuote, CheckoutError]:
        """
        Recompute for the current cart. Also the hook for offer changes.

        Returns Error(STALE_QUOTE) when the cart changed or a newer refresh
        started while computing; the newer computation's result is kept.
        """
        if self._state in _LOCKED:
            return Error(self._locked())
        self._generation += 1
        ticket = self._generation
        signature = self.signature
        request = CheckoutRequest(self._lines, self._coupon_code)

        result = await BreakdownNode.execute(request, self._catalog, self._validator, self._rules)

        if ticket != self._generation or signature != self.signature or self._state in _LOCKED:
            logger.debug("discarding superseded quote for cart %s", signature[:12])
            return Error(CheckoutError("STALE_QUOTE", "A newer quote superseded this one"))

        match result:
            case Ok(quote):
                self._accept(quote)
            case Error(_):
                self._invalidate()
        return result

    def _accept(self, quote: CheckoutQuote) -> None:
        self._quote = quote
        if self._coupon_code is None:
            self._state = CheckoutState.PRICING_COMPUTED
        elif quote.coupon_error is not None:
            self._state = CheckoutState.COUPON_REJECTED
        else:
            self._state = CheckoutState.COUPON_APPLIED

    def _invalidate(self) -> None:
        self._quote = None
        self._state = CheckoutState.IDLE

    def _locked(self) -> CheckoutError:
        return CheckoutError("ORDER_LOCKED", f"Checkout is {self._state}; start a new session")

    # ───────────────────────────────────────────────────────────────────────────
    # Submission
    # ───────────────────────────────────────────────────────────────────────────

    async def submit(self, gateway: PaymentGateway) -> Result[OrderConfirmation, CheckoutError]:
        """
        Freeze the current quote into an order and pay for it.

        Any failure during submission (coupon reservation or payment) moves
        to PAYMENT_FAILED with the coupon use rolled back; the session can
        then be refreshed and submitted again.
        """
        if self._state not in _SUBMITTABLE or self._quote is None:
            return Error(CheckoutError("INVALID_STATE", f"Cannot submit from {self._state}"))
        if not self._lines:
            return Error(CheckoutError("CART_EMPTY", "Cart is empty"))

        now = self._clock()
        order = OrderRecord(new_order_id(now), self._lines, self._quote.breakdown, now)
        self._order = order
        self._state = CheckoutState.ORDER_SUBMITTED

        match await submit_order(order, gateway, self._ledger):
            case Ok(confirmation):
                self._state = CheckoutState.ORDER_CONFIRMED
                return Ok(confirmation)
            case Error(failed):
                self._state = CheckoutState.PAYMENT_FAILED
                return Error(failed.error)


__all__ = ("cart_signature", "CheckoutSession")
