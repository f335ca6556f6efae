"""
Totals — the final breakdown node and the async entry point.
"""

import time

from kungfu import Ok, Error, Result

from pricing import graph as G
from pricing._log import get_logger
from pricing.calculator import DEFAULT_RULES, CheckoutQuote, assemble
from pricing.catalog import OfferCatalog
from pricing.checkout._coupon import CouponNode
from pricing.checkout._input import CheckoutRequest
from pricing.checkout._lines import LinesNode
from pricing.config import PricingRules
from pricing.coupons import CouponValidator
from pricing.domain import CheckoutError

logger = get_logger("checkout")


@G.node
class BreakdownNode:
    """Terminal node: lines + coupon outcome + rules → quote."""

    def __init__(self, data: CheckoutQuote) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        lines: LinesNode,
        coupon: CouponNode,
        rules: PricingRules,
    ) -> "BreakdownNode":
        coupon_error = None
        match coupon.outcome:
            case Error(e):
                coupon_error = e
            case _:
                pass
        return cls(CheckoutQuote(assemble(lines.priced, coupon.outcome, rules), coupon_error))

    @classmethod
    async def execute(
        cls,
        request: CheckoutRequest,
        catalog: OfferCatalog,
        validator: CouponValidator,
        rules: PricingRules = DEFAULT_RULES,
    ) -> Result[CheckoutQuote, CheckoutError]:
        """
        Price a cart snapshot end to end.

            snapshot offers (parallel, cached) → price lines → check coupon → totals

        Offer lookup failures degrade to "no offer"; a refused coupon rides
        along in the quote. Only infrastructure failures come back as Error.
        """
        start = time.perf_counter()
        try:
            result = await (
                G.run(cls)
                .inject_as(CheckoutRequest, request)
                .inject_as(OfferCatalog, catalog)
                .inject_as(CouponValidator, validator)
                .inject_as(PricingRules, rules)
            )
        except CheckoutError as e:
            logger.warning("checkout pricing failed: %s %s", e.code, e.message)
            return Error(e)

        elapsed = (time.perf_counter() - start) * 1000
        logger.debug(
            "priced %d lines in %.1fms, grand total %s",
            len(request.lines), elapsed, result.data.breakdown.grand_total,
        )
        return Ok(result.data)


__all__ = ("BreakdownNode",)
