"""
Coupon — validate the entered code against the post-offer amount.
"""

import combinators as C
from kungfu import Ok, Error

from pricing import graph as G
from pricing.calculator import CouponOutcome
from pricing.checkout._input import CheckoutInputNode
from pricing.checkout._lines import LinesNode
from pricing.coupons import CouponValidator
from pricing.domain import CheckoutError


@G.node
class CouponNode:
    """
    Outcome of the coupon check, or None when no code was entered.

    A rejected coupon is a value here, not a failure. Only an unreachable
    coupon store fails the computation.
    """

    def __init__(self, outcome: CouponOutcome) -> None:
        self.outcome = outcome

    @classmethod
    async def __compose__(
        cls,
        request: CheckoutInputNode,
        lines: LinesNode,
        validator: CouponValidator,
    ) -> "CouponNode":
        code = request.coupon_code
        if code is None:
            return cls(None)

        result = await C.catching_async(
            lambda: validator.validate(code, lines.order_amount),
            on_error=lambda e: CheckoutError("COUPON_LOOKUP_FAILED", str(e)),
        )
        match result:
            case Ok(outcome):
                return cls(outcome)
            case Error(e):
                raise e


__all__ = ("CouponNode",)
