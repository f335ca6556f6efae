"""
Catalog — active product and category offers.

    from pricing.catalog import OfferCatalog, InMemoryOfferSource

    catalog = OfferCatalog(source, cache_ttl=30)
    offer = await catalog.active_offer_for_product("sku-1")
"""

from pricing.catalog._source import OfferSource, InMemoryOfferSource
from pricing.catalog._catalog import OfferRecords, OfferCatalog, select_active

__all__ = (
    "OfferSource",
    "InMemoryOfferSource",
    "OfferRecords",
    "OfferCatalog",
    "select_active",
)
