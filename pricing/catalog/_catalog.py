"""
OfferCatalog — the single active offer for a product or category.

Raw records are cached per id; the active-window filter runs on every
read with the injected clock, so an offer that expires while cached
stops applying immediately.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

import combinators as C

from pricing._log import get_logger
from pricing._types import Clock, LazyCoroResult, Ok, Error, Result, NoError, as_utc, utc_now
from pricing.cache import CacheError, LocalTier, cache
from pricing.catalog._source import OfferSource
from pricing.domain import (
    CartLine,
    CategoryOffer,
    InvalidDiscountConfiguration,
    Offer,
    OfferScope,
    OfferUnavailable,
    ProductOffer,
)
from pricing.resolver import OfferSnapshot

logger = get_logger("catalog")


@dataclass(frozen=True, slots=True)
class OfferRecords[T]:
    """Cached lookup result. Empty is a valid, cacheable answer."""

    offers: tuple[T, ...] = ()


# ═══════════════════════════════════════════════════════════════════════════════
# Selection
# ═══════════════════════════════════════════════════════════════════════════════


def select_active[O: (ProductOffer, CategoryOffer)](offers: Iterable[O], now: datetime) -> O | None:
    """
    Pick the one offer that applies at `now`.

    Misconfigured records are logged and skipped. Among several current
    offers the most recently started wins, then the larger value, then
    the larger id.
    """
    current: list[O] = []
    for offer in offers:
        problem = offer.problem()
        if problem is not None:
            logger.warning("%s", InvalidDiscountConfiguration(offer.id, problem))
            continue
        if offer.is_current(now):
            current.append(offer)
    if not current:
        return None
    return max(current, key=lambda o: (as_utc(o.start_date), o.discount_value, o.id))


def _product_key(product_id: str) -> str:
    return f"offers:product:{product_id}"


def _category_key(category_id: str) -> str:
    return f"offers:category:{category_id}"


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class OfferCatalog:
    """
    Read-through view over an OfferSource.

    Example:
        catalog = OfferCatalog(source, cache_ttl=30)
        offers = await catalog.snapshot(lines)
    """

    def __init__(
        self,
        source: OfferSource,
        clock: Clock = utc_now,
        cache_ttl: float | None = 30.0,
        cache_size: int = 1000,
    ) -> None:
        self._source = source
        self._clock = clock
        self._products = (
            cache(_product_key, self._fetch_product)
            .tier(LocalTier[OfferRecords[ProductOffer]](max_size=cache_size, ttl=cache_ttl))
            .build()
        )
        self._categories = (
            cache(_category_key, self._fetch_category)
            .tier(LocalTier[OfferRecords[CategoryOffer]](max_size=cache_size, ttl=cache_ttl))
            .build()
        )

    def _fetch_product(
        self, product_id: str
    ) -> LazyCoroResult[OfferRecords[ProductOffer], OfferUnavailable]:
        return C.catching_async(
            lambda: self._source.product_offers(product_id),
            on_error=lambda e: OfferUnavailable(OfferScope.PRODUCT, product_id, str(e)),
        ).map(lambda offers: OfferRecords(tuple(offers)))

    def _fetch_category(
        self, category_id: str
    ) -> LazyCoroResult[OfferRecords[CategoryOffer], OfferUnavailable]:
        return C.catching_async(
            lambda: self._source.category_offers(category_id),
            on_error=lambda e: OfferUnavailable(OfferScope.CATEGORY, category_id, str(e)),
        ).map(lambda offers: OfferRecords(tuple(offers)))

    async def active_offer_for_product(self, product_id: str) -> ProductOffer | None:
        match await self._products.get(product_id):
            case Ok(cached):
                return select_active(cached.value.offers, self._clock())
            case Error(e):
                logger.warning("%s", e)
                return None

    async def active_offer_for_category(self, category_id: str) -> CategoryOffer | None:
        match await self._categories.get(category_id):
            case Ok(cached):
                return select_active(cached.value.offers, self._clock())
            case Error(e):
                logger.warning("%s", e)
                return None

    async def snapshot(self, lines: Sequence[CartLine]) -> OfferSnapshot:
        """
        Active offers for every distinct product and category in the cart.

        Lookups run in parallel and all finish before the snapshot exists;
        a failed lookup means "no offer" for that id.
        """
        keys: list[tuple[OfferScope, str]] = [
            (OfferScope.PRODUCT, pid) for pid in dict.fromkeys(line.product_id for line in lines)
        ]
        keys += [
            (OfferScope.CATEGORY, cid)
            for cid in dict.fromkeys(line.category_id for line in lines if line.category_id)
        ]

        def lookup(key: tuple[OfferScope, str]) -> LazyCoroResult[tuple[str, Offer | None], NoError]:
            scope, target_id = key

            async def run() -> Result[tuple[str, Offer | None], NoError]:
                offer: Offer | None
                if scope is OfferScope.PRODUCT:
                    offer = await self.active_offer_for_product(target_id)
                else:
                    offer = await self.active_offer_for_category(target_id)
                return Ok((target_id, offer))

            return LazyCoroResult(run)

        by_product: dict[str, ProductOffer] = {}
        by_category: dict[str, CategoryOffer] = {}
        match await C.traverse_par(keys, lookup)():
            case Ok(found):
                for target_id, offer in found:
                    match offer:
                        case ProductOffer():
                            by_product[target_id] = offer
                        case CategoryOffer():
                            by_category[target_id] = offer
                        case None:
                            pass
            case Error(e):
                raise e
        return OfferSnapshot(by_product, by_category)

    # ───────────────────────────────────────────────────────────────────────────
    # Invalidation
    # ───────────────────────────────────────────────────────────────────────────

    async def invalidate_product(self, product_id: str) -> None:
        _report(await self._products.invalidate(product_id))

    async def invalidate_category(self, category_id: str) -> None:
        _report(await self._categories.invalidate(category_id))

    async def invalidate_all(self) -> None:
        _report(await self._products.invalidate_pattern("offers:product:*"))
        _report(await self._categories.invalidate_pattern("offers:category:*"))


def _report(result: Result[object, CacheError]) -> None:
    match result:
        case Ok(_):
            pass
        case Error(e):
            logger.warning("offer cache invalidation failed: %s", e.message)


__all__ = ("OfferRecords", "select_active", "OfferCatalog")
