"""
Offers — one snapshot of active offers for the whole cart.
"""

from pricing import graph as G
from pricing.catalog import OfferCatalog
from pricing.checkout._input import CheckoutInputNode
from pricing.resolver import OfferSnapshot


@G.node
class OfferSnapshotNode:
    """All offer lookups for the cart, finished before any line is priced."""

    def __init__(self, data: OfferSnapshot) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: CheckoutInputNode,
        catalog: OfferCatalog,
    ) -> "OfferSnapshotNode":
        return cls(await catalog.snapshot(request.lines))


__all__ = ("OfferSnapshotNode",)
