"""
Lines — per-line best offer.
"""

from decimal import Decimal

from pricing import graph as G
from pricing.calculator import order_amount, price_lines
from pricing.checkout._input import CheckoutInputNode
from pricing.checkout._offers import OfferSnapshotNode
from pricing.domain import LinePricing


@G.node
class LinesNode:
    def __init__(self, priced: tuple[LinePricing, ...], order_amount: Decimal) -> None:
        self.priced = priced
        self.order_amount = order_amount

    @classmethod
    async def __compose__(
        cls,
        request: CheckoutInputNode,
        offers: OfferSnapshotNode,
    ) -> "LinesNode":
        priced = price_lines(request.lines, offers.data)
        return cls(priced, order_amount(priced))


__all__ = ("LinesNode",)
