"""
Store — SQLAlchemy persistence for offers and coupons.

    session_factory, engine = await create_database("sqlite+aiosqlite:///pricing.db")
    catalog = OfferCatalog(SqlOfferSource(session_factory))
    validator = CouponValidator(SqlCouponSource(session_factory))
"""

from pricing.store._tables import (
    Base,
    ProductOfferTable,
    CategoryOfferTable,
    CouponTable,
    CouponUsageTable,
    create_database,
)
from pricing.store._sources import SqlOfferSource, SqlCouponSource

__all__ = (
    "Base",
    "ProductOfferTable",
    "CategoryOfferTable",
    "CouponTable",
    "CouponUsageTable",
    "create_database",
    "SqlOfferSource",
    "SqlCouponSource",
)
