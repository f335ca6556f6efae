"""
Offer sources — where offer records live.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from pricing.domain import CategoryOffer, ProductOffer


class OfferSource(Protocol):
    """
    Read access to offer records, owned by the admin side.

    Returns every record for the id, active or not; the catalog decides
    which one applies. May raise on backend failure.
    """

    async def product_offers(self, product_id: str) -> list[ProductOffer]:
        ...

    async def category_offers(self, category_id: str) -> list[CategoryOffer]:
        ...


@dataclass
class InMemoryOfferSource:
    _products: dict[str, list[ProductOffer]] = field(default_factory=dict[str, list[ProductOffer]])
    _categories: dict[str, list[CategoryOffer]] = field(
        default_factory=dict[str, list[CategoryOffer]]
    )

    def add(self, *offers: ProductOffer | CategoryOffer) -> None:
        for offer in offers:
            match offer:
                case ProductOffer():
                    self._products.setdefault(offer.product_id, []).append(offer)
                case CategoryOffer():
                    self._categories.setdefault(offer.category_id, []).append(offer)

    def replace(self, offer: ProductOffer | CategoryOffer) -> None:
        """Swap the record with the same id (admin edit)."""
        match offer:
            case ProductOffer():
                bucket = self._products.setdefault(offer.product_id, [])
            case CategoryOffer():
                bucket = self._categories.setdefault(offer.category_id, [])
        bucket[:] = [o for o in bucket if o.id != offer.id]
        bucket.append(offer)

    def clear(self) -> None:
        self._products.clear()
        self._categories.clear()

    async def product_offers(self, product_id: str) -> list[ProductOffer]:
        return list(self._products.get(product_id, ()))

    async def category_offers(self, category_id: str) -> list[CategoryOffer]:
        return list(self._categories.get(category_id, ()))


__all__ = ("OfferSource", "InMemoryOfferSource")
